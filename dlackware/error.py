# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Errors raised while processing a package of a compile order.

Every error names the package it was raised for. Any of them aborts the rest
of the compile order being processed.
"""
from __future__ import annotations

from typing import Optional

from .common import DlackwareException


class PackageError(DlackwareException):
    """
    Base class for failures of a single package.

    :param pkgname: The package the failure belongs to
    :type pkgname: str
    :param cause: The underlying exception, if any
    :type cause: Exception
    """

    description = "Package failure"

    def __init__(self, pkgname: str, cause: Optional[BaseException] = None) -> None:
        self.pkgname = pkgname
        self.cause = cause
        super().__init__(pkgname)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        message = f"{self.pkgname}: {self.description}"
        if self.cause is not None:
            message += f": {self.cause}"
        return message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageError):
            return NotImplemented
        return type(self) is type(other) and self.pkgname == other.pkgname

    def __hash__(self) -> int:
        return hash((type(self), self.pkgname))

    def __repr__(self) -> str:
        return f"{self.kind}({self.pkgname!r})"


class ParseError(PackageError):
    description = "Unable to parse"


class UnsupportedDownload(PackageError):
    description = "Found unsupported download URL type"


class DownloadError(PackageError):
    description = "Unable to download the sources"


class ChecksumMismatch(PackageError):
    description = "Checksum mismatch"


class BuildError(PackageError):
    description = "Build failed"


class InstallError(PackageError):
    description = "Installation failed"
