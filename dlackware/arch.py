# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Host architecture and SlackBuild metadata lookup.
"""
from __future__ import annotations

import fnmatch
import logging
import platform
import re
from typing import Optional

log = logging.getLogger(__name__)

DEFAULT_BUILD = "1"

_BUILD = re.compile(
    r"""^\s*(?:export\s+)?BUILD=(?:\$\{BUILD:-(?P<default>[^}]*)\}|["']?(?P<value>[^"'\s;]+)["']?)"""
)
_ARCH = re.compile(r"""(?:^|[\s;])(?:export\s+)?ARCH=(?P<value>"[^"]*"|'[^']*'|[^\s;]+)""")
_ARCH_DEFAULT = re.compile(r"^\$\{ARCH:-(?P<default>[^}]*)\}$")
_CASE_UNAME = re.compile(r"^\s*case\s.*uname\s+-m.*\sin\s*$")
_ESAC = re.compile(r"^\s*esac\b")
_BRANCH = re.compile(r"^\s*\(?(?P<patterns>[^()\s]+)\)(?P<rest>.*)$")


def uname(machine: str) -> str:
    """
    Normalize the output of ``uname -m`` the way SlackBuilds do.

    :param machine: The machine hardware name
    :type machine: str

    :return: The architecture used in package names
    :rtype: str
    """
    machine = machine.strip()
    if fnmatch.fnmatchcase(machine, "i?86"):
        return "i586"
    if machine.startswith("arm"):
        return "arm"
    return machine


def build_arch() -> str:
    """
    Return the architecture of the current machine.
    """
    return uname(platform.machine())


def _literal_arch(value: str) -> Optional[str]:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    match = _ARCH_DEFAULT.match(value)
    if match:
        value = match.group("default")
    if not value or "$" in value or "`" in value:
        return None
    return value


def grep_slackbuild(uname_m: str, slackbuild: str) -> tuple[str, str]:
    """
    Find the build number and architecture a SlackBuild produces a package for.

    A literal ``ARCH`` assignment outside of a ``case "$( uname -m )"`` block
    fixes the architecture (``noarch`` packages). Otherwise the branch of that
    block matching the host is used. Everything else builds for the host.

    :param uname_m: The host architecture
    :type uname_m: str
    :param slackbuild: The contents of the SlackBuild
    :type slackbuild: str

    :return: The build number and the architecture
    :rtype: tuple(str, str)
    """
    build_number: Optional[str] = None
    fixed_arch: Optional[str] = None
    host_arch: Optional[str] = None

    in_case = False
    patterns: list[str] = []
    for line in slackbuild.splitlines():
        code = line.split("#", 1)[0]
        if build_number is None:
            match = _BUILD.match(code)
            if match:
                build_number = match.group("default") or match.group("value")
        if _CASE_UNAME.match(code):
            in_case = True
            continue
        if in_case:
            if _ESAC.match(code):
                in_case = False
                patterns = []
                continue
            branch = _BRANCH.match(code)
            if branch:
                patterns = branch.group("patterns").split("|")
                code = branch.group("rest")
            arch = _ARCH.search(code)
            if arch and patterns and host_arch is None:
                if any(_ != "*" and fnmatch.fnmatchcase(uname_m, _) for _ in patterns):
                    host_arch = _literal_arch(arch.group("value")) or uname_m
            if ";;" in code:
                patterns = []
            continue
        arch = _ARCH.search(code)
        if arch and fixed_arch is None:
            fixed_arch = _literal_arch(arch.group("value"))

    if not build_number:
        build_number = DEFAULT_BUILD
    result_arch = fixed_arch or host_arch or uname_m
    log.debug("SlackBuild builds %s for %s", build_number, result_arch)
    return build_number, result_arch
