# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Common classes and values used around dlackware.
"""
from __future__ import annotations

import contextlib
import hashlib
import http.client
import logging
import os
import selectors
import subprocess
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import IO, Any, BinaryIO, Iterator, Optional, Union, cast

# dlackware package version
__version__ = "0.3.0"

log = logging.getLogger(__name__)

DEFAULT_CONFIG = "etc/dlackware.yaml"

PACKAGE_CACHE = "/var/cache/dlackware"
PACKAGE_DATABASE = "/var/lib/pkgtools/packages"
UPGRADEPKG = "/sbin/upgradepkg"

# Tag appended to the build number of every package built here.
PACKAGE_TAG = "_dlack"
PACKAGE_EXT = "txz"

REQUEST_HEADERS = {"User-Agent": f"dlackware {__version__}"}

CHUNK_SIZE = 1024 * 64

PathLike = Union[str, os.PathLike[str]]


class DlackwareException(Exception):
    """
    Base class for exeptions generated from dlackware.
    """


class ConfigurationError(DlackwareException):
    """
    Raised when the configuration file is missing or malformed.
    """


class FetchError(DlackwareException):
    """
    Raised when a url could not be fetched.
    """


class UnsupportedURLError(DlackwareException):
    """
    Raised when no downloader handles the scheme of a url.
    """


class SpawnError(DlackwareException):
    """
    Raised when an external command could not be started.
    """


class CommandError(DlackwareException):
    """
    Raised when an external command exits with a non zero status.
    """

    def __init__(self, cmd: list[str], returncode: int) -> None:
        super().__init__(
            "Command '{}' failed with status {}".format(" ".join(cmd), returncode)
        )
        self.cmd = cmd
        self.returncode = returncode


class OutputError(DlackwareException):
    """
    Raised when build output could not be written to one of its sinks.
    """


def md5sum(data: Union[PathLike, BinaryIO]) -> str:
    """
    Compute the md5 hex digest of a file or a binary stream.

    The content is read in chunks so large archives are never held in memory.

    :param data: A path to a file or an open binary file object
    :type data: str or file

    :return: The hex digest
    :rtype: str
    """
    hsh = hashlib.md5()
    if isinstance(data, (str, os.PathLike)):
        with open(data, "rb") as fp:
            for chunk in iter(lambda: fp.read(CHUNK_SIZE), b""):
                hsh.update(chunk)
    else:
        for chunk in iter(lambda: data.read(CHUNK_SIZE), b""):
            hsh.update(chunk)
    return hsh.hexdigest()


def verify_checksum(file: PathLike, checksum: Optional[str]) -> bool:
    """
    True when the file exists and its md5 digest equals the checksum.

    :param file: The path to the file to check
    :type file: str
    :param checksum: The expected md5 hex digest
    :type checksum: str

    :return: Whether the file is present and valid
    :rtype: bool
    """
    if checksum is None:
        log.error("Can't verify checksum because none was given")
        return False
    try:
        file_checksum = md5sum(file)
    except OSError as exc:
        log.debug("Unable to read %s: %s", file, exc)
        return False
    return file_checksum == checksum.lower()


def url_filename(url: str) -> str:
    """
    The final path segment of a url.
    """
    path = urllib.parse.urlsplit(url).path
    return posix_basename(urllib.parse.unquote(path))


def posix_basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def get_download_location(url: str, dest: PathLike) -> str:
    """
    Get the full path to where the url will be downloaded to.

    :param url: The url to donwload
    :type url: str
    :param dest: Where to download the url to
    :type dest: str

    :return: The path to where the url will be downloaded to
    :rtype: str
    """
    return os.path.join(os.fspath(dest), url_filename(url))


def fetch_url(url: str, fp: BinaryIO, timeout: float = 60) -> str:
    """
    Fetch the contents of a url.

    This method will store the contents in the given file like object and
    hash them on the way through.

    :raises FetchError: On any transport failure or non success status

    :return: The md5 hex digest of the fetched content
    :rtype: str
    """
    req = urllib.request.Request(url, headers=REQUEST_HEADERS)
    hsh = hashlib.md5()
    last = time.time()
    try:
        response = urllib.request.urlopen(req, timeout=timeout)
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        raise FetchError(f"Error fetching url {url} {exc}") from exc
    log.debug("url opened %s", url)
    try:
        total = 0
        while True:
            block = response.read(CHUNK_SIZE)
            if not block:
                break
            total += len(block)
            if time.time() - last > 10:
                log.info("%s > %d", url, total)
                last = time.time()
            hsh.update(block)
            fp.write(block)
    except (http.client.HTTPException, OSError) as exc:
        raise FetchError(f"Error reading url {url} {exc}") from exc
    finally:
        response.close()
    log.debug("Download complete %s", url)
    return hsh.hexdigest()


def download_url(url: str, dest: PathLike, timeout: float = 60) -> tuple[str, str]:
    """
    Download the url to the provided destination.

    This method assumes the last part of the url is a filename. (https://foo.com/bar/myfile.tar.xz)

    :param url: The url to download
    :type url: str
    :param dest: Where to download the url to
    :type dest: str

    :raises FetchError: If the url was unable to be downloaded or saved

    :return: The path to the downloaded content and its md5 digest
    :rtype: tuple(str, str)
    """
    local = get_download_location(url, dest)
    log.debug("Downloading %s -> %s", url, local)
    try:
        with open(local, "wb") as fout:
            digest = fetch_url(url, fout, timeout)
    except (FetchError, OSError) as exc:
        log.error("Unable to download: %s\n%s", url, exc)
        try:
            os.unlink(local)
        except OSError:
            pass
        if isinstance(exc, FetchError):
            raise
        raise FetchError(f"Unable to save {url} to {local}: {exc}") from exc
    return local, digest


@contextlib.contextmanager
def chdir(path: PathLike) -> Iterator[None]:
    """
    Context manager that changes to the specified directory and back.

    :param path: The path to temporarily change to
    :type path: str
    """
    cwd = os.getcwd()
    try:
        os.chdir(path)
        yield
    finally:
        os.chdir(cwd)


def runcmd(cmd: list[str], **kwargs: Any) -> subprocess.Popen[str]:
    """
    Run a command.

    Run the provided command, logging its stdout at info level and its stderr
    at error level. Keyword arguments are passed through to ``subprocess.Popen``.

    :return: The finished process
    :rtype: ``subprocess.Popen``

    :raises SpawnError: If the command could not be started
    :raises CommandError: If the command finishes with a non zero exit code
    """
    if not cmd:
        raise DlackwareException("No command provided to runcmd")
    log.debug("Running command: %s", " ".join(map(str, cmd)))
    kwargs["stdout"] = subprocess.PIPE
    kwargs["stderr"] = subprocess.PIPE
    kwargs.setdefault("universal_newlines", True)
    kwargs.setdefault("errors", "replace")
    try:
        p = subprocess.Popen(cmd, **kwargs)
    except OSError as exc:
        raise SpawnError(f"Unable to run {cmd[0]}: {exc}") from exc
    stdout_stream = p.stdout
    stderr_stream = p.stderr
    if stdout_stream is None or stderr_stream is None:
        p.wait()
        raise DlackwareException("Process pipes are unavailable")
    # Read both stdout and stderr simultaneously
    with selectors.DefaultSelector() as sel:
        sel.register(stdout_stream, selectors.EVENT_READ)
        sel.register(stderr_stream, selectors.EVENT_READ)
        while sel.get_map():
            for key, _ in sel.select():
                stream = cast(IO[str], key.fileobj)
                line = stream.readline()
                if not line:
                    sel.unregister(stream)
                    continue
                if stream is stdout_stream:
                    log.info(line.rstrip("\n"))
                else:
                    log.error(line.rstrip("\n"))
    p.wait()
    stdout_stream.close()
    stderr_stream.close()
    if p.returncode != 0:
        raise CommandError([str(_) for _ in cmd], p.returncode)
    return p
