# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
The ``dlackware build``, ``dlackware download`` and ``dlackware install`` commands.

Compile orders are processed one after another. The packages of a compile
order are processed in file order and the first failure stops the run.
"""
from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from typing import Optional

from .arch import build_arch
from .common import (
    DEFAULT_CONFIG,
    ConfigurationError,
    DlackwareException,
    PathLike,
    chdir,
)
from .compileorder import CompileOrderParseError, Step, parse_compile_order
from .config import Config, load_config
from .error import PackageError, ParseError
from .info import InfoParseError, PackageInfo, parse_info_file
from .package import (
    PackageAction,
    PackageEnvironment,
    build_package,
    download_package_source,
    install_package,
)

log = logging.getLogger(__name__)

RUN_LOG = "dlackware.log"


def resolve(repo: PathLike, pkgname: str) -> PackageInfo:
    """
    Read the info file of a package.

    :param repo: The directory holding the package directories
    :type repo: str
    :param pkgname: The name of the package
    :type pkgname: str

    :raises ParseError: If the info file can't be read or is malformed
    """
    info_file = pathlib.Path(repo) / pkgname / f"{pkgname}.info"
    try:
        content = info_file.read_text(encoding="utf-8")
        return parse_info_file(str(info_file), content)
    except (OSError, UnicodeDecodeError, InfoParseError) as exc:
        raise ParseError(pkgname, exc) from exc


def do_package(
    penv: PackageEnvironment, action: PackageAction, repo: PathLike, step: Step
) -> None:
    """
    Apply an action to the package of a compile order step.

    The action runs inside the directory of the package.

    :raises PackageError: If the package could not be processed
    """
    repo_dir = pathlib.Path(repo).resolve()
    package_dir = repo_dir / step.name
    if not package_dir.is_dir():
        exc = DlackwareException(f"No package directory {package_dir}")
        raise ParseError(step.name, exc) from exc
    with chdir(package_dir):
        pkg = resolve(repo_dir, step.name)
        action(penv, pkg, step.old)


def run_compile_order(
    penv: PackageEnvironment, action: PackageAction, compile_order: PathLike
) -> Optional[PackageError]:
    """
    Apply an action to every package of a compile order.

    :param compile_order: The path to the compile order
    :type compile_order: str

    :return: The first failure, after which no other package is processed
    :rtype: ``PackageError`` or None
    """
    path = pathlib.Path(compile_order)
    try:
        content = path.read_text(encoding="utf-8")
        steps = parse_compile_order(str(path), content)
    except (OSError, UnicodeDecodeError, CompileOrderParseError) as exc:
        return ParseError(str(path), exc)

    repo = path.parent
    for step in steps:
        try:
            do_package(penv, action, repo, step)
        except PackageError as exc:
            return exc
    return None


def do_compile_order(
    penv: PackageEnvironment, action: PackageAction, compile_order: PathLike
) -> None:
    """
    Apply an action to every package of a compile order, exiting on failure.
    """
    error = run_compile_order(penv, action, compile_order)
    if error is not None:
        log.critical("%s", error)
        sys.exit(1)


def get_compile_orders(config: Config) -> list[pathlib.Path]:
    """
    The paths of the configured compile orders, in configuration order.
    """
    return [config.repos_root / _ for _ in config.repos]


def setup_logging(
    log_level: str = "INFO", logging_directory: Optional[PathLike] = None
) -> None:
    """
    Log to the console and, if given, to a run log in the logging directory.
    """
    root_log = logging.getLogger(None)
    root_log.setLevel(logging.NOTSET)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.getLevelName(log_level.upper()))
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    root_log.addHandler(stream_handler)

    if logging_directory is not None:
        file_handler = logging.FileHandler(pathlib.Path(logging_directory) / RUN_LOG)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        root_log.addHandler(file_handler)


def collect_run_information(config_path: Optional[PathLike] = None) -> PackageEnvironment:
    """
    Load the configuration and find out the host architecture.

    :raises ConfigurationError: If the configuration can't be loaded
    """
    config = load_config(config_path)
    try:
        os.makedirs(config.logging_directory, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create {config.logging_directory}: {exc}"
        ) from exc
    return PackageEnvironment(uname_m=build_arch(), config=config)


def run(penv: PackageEnvironment, action: PackageAction) -> None:
    """
    Apply an action to every configured compile order.
    """
    for compile_order in get_compile_orders(penv.config):
        log.debug("Processing %s", compile_order)
        do_compile_order(penv, action, compile_order)


def build(penv: PackageEnvironment) -> None:
    os.makedirs(penv.config.temporary_directory, exist_ok=True)
    run(penv, build_package)


def download_source(penv: PackageEnvironment) -> None:
    run(penv, download_package_source)


def install(penv: PackageEnvironment) -> None:
    run(penv, install_package)


COMMANDS = {
    "build": (build, "Build and install the packages of every compile order"),
    "download": (download_source, "Download the sources of every compile order"),
    "install": (install, "Install the already built packages of every compile order"),
}


def setup_parser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    """
    Setup the subparsers for the ``build``, ``download`` and ``install`` commands.

    :param subparsers: The subparsers object returned from ``add_subparsers``
    :type subparsers: argparse._SubParsersAction
    """
    for name, (_, description) in COMMANDS.items():
        subparser = subparsers.add_parser(name, description=description)
        subparser.set_defaults(func=main, command=name)
        subparser.add_argument(
            "--config",
            default=DEFAULT_CONFIG,
            type=str,
            help="The configuration file [default: %(default)s]",
        )
        subparser.add_argument(
            "--log-level",
            default="info",
            choices=(
                "critical",
                "error",
                "warning",
                "info",
                "debug",
            ),
            help="Log level determines how verbose the output will be.",
        )


def main(args: argparse.Namespace) -> None:
    """
    The entrypoint to the commands.

    :param args: The arguments to the command
    :type args: ``argparse.Namespace``
    """
    try:
        penv = collect_run_information(args.config)
    except ConfigurationError as exc:
        setup_logging(args.log_level)
        log.critical("%s", exc)
        sys.exit(1)
    setup_logging(args.log_level, penv.config.logging_directory)
    func, _ = COMMANDS[args.command]
    func(penv)
