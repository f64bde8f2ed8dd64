# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Parser for package ``.info`` files.

An info file is a list of shell style assignments::

    PKGNAM="foo"
    VERSION="1.0"
    HOMEPAGE="https://example.com/foo"
    DOWNLOAD="https://example.com/foo-1.0.tar.gz \\
              https://example.com/foo-data-1.0.tar.gz"
    MD5SUM="d41d8cd98f00b204e9800998ecf8427e \\
            0cc175b9c0f1b6a831c399e269772661"
"""
from __future__ import annotations

import re
from typing import NamedTuple

from .common import DlackwareException

REQUIRED_KEYS = ("PKGNAM", "VERSION", "HOMEPAGE", "DOWNLOAD", "MD5SUM")

_ASSIGNMENT = re.compile(r"^(?P<key>[A-Za-z_][A-Za-z0-9_]*)=(?P<value>.*)$")
_MD5 = re.compile(r"^[0-9a-fA-F]{32}$")


class InfoParseError(DlackwareException):
    """
    Raised when an info file is malformed.
    """


class PackageInfo(NamedTuple):
    """
    Description of the sources of a package.

    ``downloads`` and ``checksums`` are paired by position.
    """

    pkgname: str
    version: str
    homepage: str
    downloads: tuple[str, ...]
    checksums: tuple[str, ...]


def _logical_lines(content: str) -> list[tuple[int, str]]:
    # Joins backslash continued lines, keeping the number of the first one.
    result: list[tuple[int, str]] = []
    pending: list[str] = []
    start = 0
    for lineno, line in enumerate(content.splitlines(), 1):
        if not pending:
            start = lineno
        stripped = line.rstrip()
        if stripped.endswith("\\"):
            pending.append(stripped[:-1])
            continue
        pending.append(stripped)
        result.append((start, " ".join(pending)))
        pending = []
    if pending:
        result.append((start, " ".join(pending)))
    return result


def _unquote(path: str, lineno: int, value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        if len(value) < 2 or not value.endswith('"') or '"' in value[1:-1]:
            raise InfoParseError(f"{path}:{lineno}: unterminated quoted value")
        return value[1:-1]
    if value.startswith("'"):
        if len(value) < 2 or not value.endswith("'") or "'" in value[1:-1]:
            raise InfoParseError(f"{path}:{lineno}: unterminated quoted value")
        return value[1:-1]
    if any(_.isspace() for _ in value):
        raise InfoParseError(f"{path}:{lineno}: whitespace in unquoted value")
    return value


def parse_info_file(path: str, content: str) -> PackageInfo:
    """
    Parse the contents of an info file.

    :param path: The name of the file, used in error messages
    :type path: str
    :param content: The text of the file
    :type content: str

    :raises InfoParseError: If the file is malformed

    :return: The package description
    :rtype: ``PackageInfo``
    """
    values: dict[str, str] = {}
    for lineno, line in _logical_lines(content):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        match = _ASSIGNMENT.match(line)
        if match is None:
            raise InfoParseError(f"{path}:{lineno}: expected KEY=\"value\", got {line!r}")
        key = match.group("key")
        if key in values:
            raise InfoParseError(f"{path}:{lineno}: duplicate key {key}")
        values[key] = _unquote(path, lineno, match.group("value"))

    missing = [_ for _ in REQUIRED_KEYS if _ not in values]
    if missing:
        raise InfoParseError(f"{path}: missing {', '.join(missing)}")

    if not values["PKGNAM"]:
        raise InfoParseError(f"{path}: PKGNAM is empty")
    if not values["VERSION"]:
        raise InfoParseError(f"{path}: VERSION is empty")

    downloads = tuple(values["DOWNLOAD"].split())
    checksums = tuple(values["MD5SUM"].split())
    if len(downloads) != len(checksums):
        raise InfoParseError(
            f"{path}: {len(downloads)} downloads but {len(checksums)} checksums"
        )
    for checksum in checksums:
        if not _MD5.match(checksum):
            raise InfoParseError(f"{path}: invalid md5 checksum {checksum!r}")

    return PackageInfo(
        pkgname=values["PKGNAM"],
        version=values["VERSION"],
        homepage=values["HOMEPAGE"],
        downloads=downloads,
        checksums=tuple(_.lower() for _ in checksums),
    )
