# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
#
import io
import logging
import pathlib
import urllib.error
import urllib.request
from typing import Iterator

import pytest

from dlackware.config import Config
from dlackware.package import PackageEnvironment
from tests.helpers import Repository

log = logging.getLogger(__name__)

HOST_ARCH = "x86_64"


@pytest.fixture
def config(tmp_path: pathlib.Path) -> Config:
    config = Config(
        repos_root=tmp_path / "repos",
        repos=["main/compile-order"],
        logging_directory=tmp_path / "logs",
        temporary_directory=tmp_path / "tmp",
        package_cache=tmp_path / "cache",
        package_database=tmp_path / "packages",
        upgradepkg="/sbin/upgradepkg",
    )
    config.logging_directory.mkdir()
    config.package_database.mkdir()
    return config


@pytest.fixture
def penv(config: Config) -> PackageEnvironment:
    return PackageEnvironment(uname_m=HOST_ARCH, config=config)


@pytest.fixture
def repo(config: Config) -> Iterator[Repository]:
    with Repository(config.repos_root / "main") as repository:
        yield repository


class FakeResponse(io.BytesIO):
    """
    Stand in for the object ``urlopen`` returns.
    """


@pytest.fixture
def urlopen(monkeypatch: pytest.MonkeyPatch):
    """
    Serve urls from a dict instead of the network, recording every request.
    """
    served: dict[str, bytes] = {}
    requests: list[str] = []

    def fake_urlopen(req, timeout=None):
        url = req.full_url
        requests.append(url)
        if url not in served:
            raise urllib.error.HTTPError(url, 404, "Not Found", None, None)
        return FakeResponse(served[url])

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    fake_urlopen.served = served
    fake_urlopen.requests = requests
    return fake_urlopen
