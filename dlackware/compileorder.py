# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Parser for compile order files.

A compile order lists the packages of a repository in the order they have to
be built, one per line. A package that replaces a differently named one is
written ``old%new``, the same notation ``upgradepkg`` uses::

    # Frameworks
    extra-cmake-modules
    kcoreaddons
    kdelibs4support%kf5-kdelibs4support
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional

from .common import DlackwareException

_NAME = re.compile(r"^[A-Za-z0-9_+.-]+$")


class CompileOrderParseError(DlackwareException):
    """
    Raised when a compile order is malformed.
    """


class Step(NamedTuple):
    """
    A single package of a compile order.
    """

    name: str
    old: Optional[str] = None


def parse_step(path: str, lineno: int, entry: str) -> Step:
    parts = entry.split("%")
    if len(parts) > 2:
        raise CompileOrderParseError(
            f"{path}:{lineno}: more than one rename marker in {entry!r}"
        )
    for part in parts:
        if not _NAME.match(part):
            raise CompileOrderParseError(
                f"{path}:{lineno}: invalid package name {part!r}"
            )
    if len(parts) == 2:
        return Step(name=parts[1], old=parts[0])
    return Step(name=parts[0])


def parse_compile_order(path: str, content: str) -> list[Step]:
    """
    Parse the contents of a compile order.

    :param path: The name of the file, used in error messages
    :type path: str
    :param content: The text of the file
    :type content: str

    :raises CompileOrderParseError: If a line is not a valid entry

    :return: The steps in file order
    :rtype: list
    """
    steps: list[Step] = []
    for lineno, line in enumerate(content.splitlines(), 1):
        entry = line.split("#", 1)[0].strip()
        if not entry:
            continue
        steps.append(parse_step(path, lineno, entry))
    return steps
