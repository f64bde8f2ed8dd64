# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Per package actions: downloading sources, building and installing.
"""
from __future__ import annotations

from .actions import (
    PackageAction,
    PackageEnvironment,
    build_full_package_name,
    build_package,
    download_package_source,
    install_package,
    installpkg,
)
from .download import Download, ensure_source, get_download
from .process import TeeWriter, run_slackbuild

__all__ = [
    # Actions
    "PackageAction",
    "PackageEnvironment",
    "build_package",
    "download_package_source",
    "install_package",
    "installpkg",
    "build_full_package_name",
    # Sources
    "Download",
    "ensure_source",
    "get_download",
    # Build output
    "TeeWriter",
    "run_slackbuild",
]
