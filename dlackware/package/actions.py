# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
The actions that can be applied to a package of a compile order.

Each action is called with the working directory set to the directory of
the package and raises a ``PackageError`` on failure.
"""
from __future__ import annotations

import logging
import pathlib
from typing import Callable, NamedTuple, Optional

from dlackware.arch import grep_slackbuild
from dlackware.common import (
    PACKAGE_EXT,
    PACKAGE_TAG,
    CommandError,
    DlackwareException,
    FetchError,
    OutputError,
    SpawnError,
    UnsupportedURLError,
    runcmd,
)
from dlackware.config import Config
from dlackware.error import (
    BuildError,
    ChecksumMismatch,
    DownloadError,
    InstallError,
    UnsupportedDownload,
)
from dlackware.info import PackageInfo

from .download import Download, get_download
from .process import run_slackbuild

log = logging.getLogger(__name__)


class PackageEnvironment(NamedTuple):
    """
    Read only settings shared by every action of a run.
    """

    uname_m: str
    config: Config


PackageAction = Callable[[PackageEnvironment, PackageInfo, Optional[str]], None]


def build_full_package_name(pkg: PackageInfo, arch: str, build_number: str) -> str:
    """
    The name of the package a SlackBuild produces, without extension.
    """
    return f"{pkg.pkgname}-{pkg.version}-{arch}-{build_number}{PACKAGE_TAG}"


def slackbuild_path(pkg: PackageInfo) -> pathlib.Path:
    return pathlib.Path(f"{pkg.pkgname}.SlackBuild")


def full_package_name(penv: PackageEnvironment, pkg: PackageInfo) -> str:
    """
    Read the SlackBuild of the package and compute the package name.

    :raises OSError: If the SlackBuild can't be read
    """
    content = slackbuild_path(pkg).read_text(encoding="utf-8", errors="replace")
    build_number, arch = grep_slackbuild(penv.uname_m, content)
    return build_full_package_name(pkg, arch, build_number)


def installpkg(penv: PackageEnvironment, old: Optional[str], full_pkg_name: str) -> None:
    """
    Install or upgrade to a built package.

    :param old: The name of the package being replaced, if it was renamed
    :type old: str
    :param full_pkg_name: The package to install, without extension
    :type full_pkg_name: str

    :raises InstallError: If upgradepkg failed
    """
    full_path = penv.config.package_cache / f"{full_pkg_name}.{PACKAGE_EXT}"
    target = f"{old}%{full_path}" if old else str(full_path)
    cmd = [penv.config.upgradepkg, "--reinstall", "--install-new", target]
    try:
        runcmd(cmd)
    except DlackwareException as exc:
        raise InstallError(full_pkg_name, exc) from exc


def download_package_source(
    penv: PackageEnvironment, pkg: PackageInfo, old: Optional[str] = None
) -> None:
    """
    Download the sources of a package that are not cached yet.

    Every url is checked for support before anything is fetched. The
    downloads run one after another in the order of the info file.

    :raises UnsupportedDownload: If a url has no downloader
    :raises DownloadError: If a download failed
    :raises ChecksumMismatch: If any downloaded file has an unexpected md5 sum
    """
    log.info("Downloading the sources for %s", pkg.pkgname)

    queued: list[Download] = []
    for url, checksum in zip(pkg.downloads, pkg.checksums):
        download = get_download(url, checksum)
        if download is None:
            exc = UnsupportedURLError(f"Unsupported download url {url}")
            raise UnsupportedDownload(pkg.pkgname, exc) from exc
        if download.cached():
            log.debug("%s already downloaded, skipping.", url)
            continue
        queued.append(download)

    sums: list[str] = []
    for download in queued:
        try:
            sums.append(download.fetch())
        except FetchError as exc:
            raise DownloadError(pkg.pkgname, exc) from exc

    if sums != [_.checksum for _ in queued]:
        mismatches = ", ".join(
            f"{_.url} expected={_.checksum} found={found}"
            for _, found in zip(queued, sums)
            if _.checksum != found
        )
        raise ChecksumMismatch(pkg.pkgname, DlackwareException(mismatches))


def build_package(
    penv: PackageEnvironment, pkg: PackageInfo, old: Optional[str] = None
) -> None:
    """
    Build and install a package unless that exact package is installed.

    :raises BuildError: If the SlackBuild failed
    :raises InstallError: If the built package could not be installed
    """
    try:
        full_pkg_name = full_package_name(penv, pkg)
    except OSError as exc:
        raise BuildError(pkg.pkgname, exc) from exc

    if (penv.config.package_database / full_pkg_name).exists():
        log.debug("%s is already installed", full_pkg_name)
        return

    log.info("Building package %s", pkg.pkgname)

    download_package_source(penv, pkg, old)

    slackbuild = slackbuild_path(pkg)
    logfile = penv.config.logging_directory / f"{pkg.pkgname}-{pkg.version}.log"
    try:
        code = run_slackbuild(slackbuild, {"VERSION": pkg.version}, logfile)
    except (SpawnError, OutputError) as exc:
        raise BuildError(pkg.pkgname, exc) from exc

    if code != 0:
        exc = CommandError(["sh", str(slackbuild)], code)
        raise BuildError(pkg.pkgname, exc) from exc
    installpkg(penv, old, full_pkg_name)


def install_package(
    penv: PackageEnvironment, pkg: PackageInfo, old: Optional[str] = None
) -> None:
    """
    Install an already built package.

    :raises InstallError: If the package could not be installed
    """
    try:
        full_pkg_name = full_package_name(penv, pkg)
    except OSError as exc:
        raise InstallError(pkg.pkgname, exc) from exc
    installpkg(penv, old, full_pkg_name)
