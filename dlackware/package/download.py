# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Download utility class for fetching package sources.
"""
from __future__ import annotations

import logging
import os
import pathlib
import urllib.parse
from typing import Optional

from dlackware.common import (
    FetchError,
    PathLike,
    UnsupportedURLError,
    download_url,
    url_filename,
    verify_checksum,
)

log = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")


class Download:
    """
    A source archive of a package and the checksum it is expected to have.

    :param url: The url of the download
    :type url: str
    :param checksum: The md5 sum of the download
    :type checksum: str
    :param destination: The directory to download the file to
    :type destination: str
    """

    def __init__(
        self,
        url: str,
        checksum: str,
        destination: PathLike = "",
        timeout: float = 60,
    ) -> None:
        self.url = url
        self.checksum = checksum
        self._destination: pathlib.Path = pathlib.Path()
        if destination:
            self._destination = pathlib.Path(destination)
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"Download({self.url!r}, {self.checksum!r})"

    @property
    def destination(self) -> pathlib.Path:
        """Get the destination directory path."""
        return self._destination

    @destination.setter
    def destination(self, value: Optional[PathLike]) -> None:
        """Set the destination directory path."""
        if value:
            self._destination = pathlib.Path(value)
        else:
            self._destination = pathlib.Path()

    @property
    def filepath(self) -> pathlib.Path:
        """Get the full file path where the download will be saved."""
        return self.destination / url_filename(self.url)

    def exists(self) -> bool:
        """
        True when the artifact already exists on disk.
        """
        return self.filepath.exists()

    def cached(self) -> bool:
        """
        True when the artifact exists on disk and matches the checksum.
        """
        return self.exists() and verify_checksum(self.filepath, self.checksum)

    def fetch(self) -> str:
        """
        Download the file, replacing any existing copy.

        :raises FetchError: If the download failed or could not be saved

        :return: The md5 sum of the downloaded content
        :rtype: str
        """
        try:
            os.makedirs(self.filepath.parent, exist_ok=True)
        except OSError as exc:
            raise FetchError(
                f"Unable to create {self.filepath.parent}: {exc}"
            ) from exc
        _, digest = download_url(self.url, self.destination, timeout=self.timeout)
        if digest != self.checksum:
            log.warning(
                "Checksum did not match %s: expected=%s found=%s",
                self.url,
                self.checksum,
                digest,
            )
        return digest

    def __call__(self) -> str:
        """
        Make sure the file is present.

        A cached copy that matches the checksum is used as is.

        :return: The md5 sum of the file on disk
        :rtype: str
        """
        if self.cached():
            log.debug("%s already downloaded, skipping.", self.url)
            return self.checksum
        return self.fetch()


def supported(url: str) -> bool:
    """
    True when there is a downloader for the url.
    """
    try:
        parts = urllib.parse.urlsplit(url)
        filename = url_filename(url)
    except ValueError:
        log.debug("Malformed url %s", url)
        return False
    return (
        parts.scheme.lower() in SUPPORTED_SCHEMES
        and bool(parts.netloc)
        and bool(filename)
    )


def get_download(
    url: str, checksum: str, destination: PathLike = ""
) -> Optional[Download]:
    """
    Get the downloader for a url.

    No network access happens here.

    :return: The downloader, or None if the url is not supported
    :rtype: ``Download``
    """
    if not supported(url):
        return None
    return Download(url, checksum, destination)


def ensure_source(url: str, checksum: str, destination: PathLike = "") -> str:
    """
    Make sure the source behind the url is present in the destination.

    :param url: The url of the source
    :type url: str
    :param checksum: The expected md5 sum
    :type checksum: str
    :param destination: Where the source is cached
    :type destination: str

    :raises UnsupportedURLError: If no downloader handles the url
    :raises FetchError: If the download failed

    :return: The md5 sum of the file; the caller decides whether it matches
    :rtype: str
    """
    download = get_download(url, checksum, destination)
    if download is None:
        raise UnsupportedURLError(f"Unsupported download url {url}")
    return download()
