# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Running SlackBuilds with their output going to the console and a log file.
"""
from __future__ import annotations

import logging
import os
import queue
import subprocess
import sys
import threading
from types import TracebackType
from typing import BinaryIO, Mapping, Optional, Sequence, Type

from dlackware.common import (
    CHUNK_SIZE,
    DlackwareException,
    OutputError,
    PathLike,
    SpawnError,
)

log = logging.getLogger(__name__)

# Chunks a sink may fall behind before the build output is held up.
TEE_QUEUE_SIZE = 256


class _Channel:
    """
    A sink and the thread feeding it.
    """

    def __init__(self, name: str, sink: BinaryIO, maxsize: int) -> None:
        self.name = name
        self.sink = sink
        self.error: Optional[BaseException] = None
        self.queue: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize)
        self.thread = threading.Thread(
            target=self._drain, name=f"tee-{name}", daemon=True
        )
        self.thread.start()

    def _drain(self) -> None:
        while True:
            data = self.queue.get()
            if data is None:
                break
            if self.error is not None:
                continue
            try:
                self.sink.write(data)
            except (OSError, ValueError) as exc:
                self.error = exc
                log.error("Unable to write build output to %s: %s", self.name, exc)
        if self.error is None:
            try:
                self.sink.flush()
            except (OSError, ValueError) as exc:
                self.error = exc
                log.error("Unable to flush build output to %s: %s", self.name, exc)


class TeeWriter:
    """
    Write the same byte stream to several sinks.

    Every sink is written by its own thread so a slow sink doesn't hold up
    the others until it falls ``maxsize`` chunks behind, after which ``write``
    waits for it. Nothing is dropped for a sink that is merely slow. A sink
    that fails to write is detached: its remaining data is dropped while the
    other sinks keep receiving the whole stream. The failure is raised as
    ``OutputError`` by ``close``, never by ``write``.

    :param sinks: Binary file objects to write to
    :type sinks: file
    :param names: Names of the sinks used in error messages
    :type names: list, optional
    :param maxsize: Number of pending chunks per sink before ``write`` blocks,
        0 for no limit
    :type maxsize: int
    """

    def __init__(
        self,
        *sinks: BinaryIO,
        names: Optional[Sequence[str]] = None,
        maxsize: int = 0,
    ) -> None:
        if names is None:
            names = [f"sink {_}" for _ in range(len(sinks))]
        if len(names) != len(sinks):
            raise ValueError("Every sink needs exactly one name")
        self._channels = [
            _Channel(name, sink, maxsize) for name, sink in zip(names, sinks)
        ]
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failed(self) -> list[str]:
        """
        Names of the sinks that failed so far.
        """
        return [_.name for _ in self._channels if _.error is not None]

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed TeeWriter")
        if data:
            for channel in self._channels:
                channel.queue.put(bytes(data))
        return len(data)

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        for channel in self._channels:
            channel.queue.put(None)
        for channel in self._channels:
            channel.thread.join()

    def close(self) -> None:
        """
        Wait until every sink received all data.

        :raises OutputError: If writing to any of the sinks failed
        """
        self._shutdown()
        for channel in self._channels:
            if channel.error is not None:
                raise OutputError(
                    f"Unable to write to {channel.name}: {channel.error}"
                ) from channel.error

    def __enter__(self) -> "TeeWriter":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            self._shutdown()


def console_sink() -> BinaryIO:
    return sys.stdout.buffer


def run_slackbuild(
    slackbuild: PathLike,
    env: Mapping[str, str],
    logfile: PathLike,
    console: Optional[BinaryIO] = None,
) -> int:
    """
    Run a SlackBuild.

    Standard output and standard error of the script are merged and copied to
    the console and to the log file, which is created or truncated.

    :param slackbuild: The path to the SlackBuild
    :type slackbuild: str
    :param env: Variables added to the environment of the script
    :type env: dict
    :param logfile: Where to write the log
    :type logfile: str
    :param console: Where to echo the output, defaults to ``sys.stdout``
    :type console: file

    :raises SpawnError: If the script could not be started
    :raises OutputError: If the output could not be written to the log or console

    :return: The exit status of the script
    :rtype: int
    """
    if console is None:
        console = console_sink()
    process_env = os.environ.copy()
    process_env.update(env)
    cmd = ["sh", os.fspath(slackbuild)]

    try:
        logfp = open(logfile, "wb")
    except OSError as exc:
        raise OutputError(f"Unable to open log file {logfile}: {exc}") from exc

    with logfp:
        log.debug("Running command: %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=process_env,
            )
        except OSError as exc:
            raise SpawnError(f"Unable to run {slackbuild}: {exc}") from exc
        tee = TeeWriter(
            console,
            logfp,
            names=("console", os.fspath(logfile)),
            maxsize=TEE_QUEUE_SIZE,
        )
        with proc, tee:
            if proc.stdout is None:
                raise DlackwareException("Process pipes are unavailable")
            fd = proc.stdout.fileno()
            for chunk in iter(lambda: os.read(fd, CHUNK_SIZE), b""):
                tee.write(chunk)
            proc.wait()
    log.debug("%s exited with %d", slackbuild, proc.returncode)
    return proc.returncode
