# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
"""
Loading of the dlackware configuration file.

The configuration is a YAML mapping::

    reposRoot: /home/user/dlackware/repos
    repos:
      - kde/compile-order
      - extra/compile-order
    loggingDirectory: /var/log/dlackware
    temporaryDirectory: /tmp/dlackware

Optional keys ``packageCache``, ``packageDatabase`` and ``upgradepkg`` override
where built packages are picked up from, where installed packages are
recorded and which installer is invoked.
"""
from __future__ import annotations

import logging
import pathlib
from typing import Any, Mapping, Optional, Sequence

import yaml

from .common import (
    DEFAULT_CONFIG,
    PACKAGE_CACHE,
    PACKAGE_DATABASE,
    UPGRADEPKG,
    ConfigurationError,
    PathLike,
)

log = logging.getLogger(__name__)


class Config:
    """
    The settings of a dlackware run.

    :param repos_root: The directory the repositories live in
    :type repos_root: str
    :param repos: Compile order files, relative to ``repos_root``
    :type repos: list
    :param logging_directory: Where build logs are written to
    :type logging_directory: str
    :param temporary_directory: Scratch directory for the build scripts
    :type temporary_directory: str
    """

    def __init__(
        self,
        repos_root: PathLike,
        repos: Sequence[str],
        logging_directory: PathLike,
        temporary_directory: PathLike,
        package_cache: PathLike = PACKAGE_CACHE,
        package_database: PathLike = PACKAGE_DATABASE,
        upgradepkg: str = UPGRADEPKG,
    ) -> None:
        self._repos_root = pathlib.Path(repos_root)
        self._repos = tuple(repos)
        self._logging_directory = pathlib.Path(logging_directory)
        self._temporary_directory = pathlib.Path(temporary_directory)
        self._package_cache = pathlib.Path(package_cache)
        self._package_database = pathlib.Path(package_database)
        self._upgradepkg = upgradepkg

    @property
    def repos_root(self) -> pathlib.Path:
        return self._repos_root

    @property
    def repos(self) -> tuple[str, ...]:
        return self._repos

    @property
    def logging_directory(self) -> pathlib.Path:
        return self._logging_directory

    @property
    def temporary_directory(self) -> pathlib.Path:
        return self._temporary_directory

    @property
    def package_cache(self) -> pathlib.Path:
        """The directory build scripts leave the finished packages in."""
        return self._package_cache

    @property
    def package_database(self) -> pathlib.Path:
        """The pkgtools database with one file per installed package."""
        return self._package_database

    @property
    def upgradepkg(self) -> str:
        return self._upgradepkg

    def __repr__(self) -> str:
        return (
            f"Config(repos_root={str(self.repos_root)!r}, repos={list(self.repos)!r})"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<config>") -> "Config":
        """
        Create the configuration from a parsed YAML mapping.

        :raises ConfigurationError: If a key is missing or has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"{source}: expected a mapping at the top level")

        def required_str(key: str) -> str:
            value = data.get(key)
            if value is None:
                raise ConfigurationError(f"{source}: missing required key '{key}'")
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"{source}: '{key}' must be a non empty string")
            return value

        def optional_str(key: str, default: str) -> str:
            value = data.get(key, default)
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"{source}: '{key}' must be a non empty string")
            return value

        repos = data.get("repos")
        if repos is None:
            raise ConfigurationError(f"{source}: missing required key 'repos'")
        if not isinstance(repos, list) or not all(
            isinstance(_, str) and _ for _ in repos
        ):
            raise ConfigurationError(f"{source}: 'repos' must be a list of strings")

        return cls(
            repos_root=required_str("reposRoot"),
            repos=repos,
            logging_directory=required_str("loggingDirectory"),
            temporary_directory=required_str("temporaryDirectory"),
            package_cache=optional_str("packageCache", PACKAGE_CACHE),
            package_database=optional_str("packageDatabase", PACKAGE_DATABASE),
            upgradepkg=optional_str("upgradepkg", UPGRADEPKG),
        )


def parse_config(source: str, content: str) -> Config:
    """
    Parse the text of a configuration file.

    :param source: The name of the file, used in error messages
    :type source: str
    :param content: The YAML document
    :type content: str

    :raises ConfigurationError: If the document is not valid
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{source}: {exc}") from exc
    return Config.from_dict(data or {}, source)


def load_config(path: Optional[PathLike] = None) -> Config:
    """
    Read and parse the configuration file.

    :param path: The configuration file, defaults to ``etc/dlackware.yaml``
    :type path: str

    :raises ConfigurationError: If the file can't be read or is not valid
    """
    config_path = pathlib.Path(path if path is not None else DEFAULT_CONFIG)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read {config_path}: {exc}") from exc
    config = parse_config(str(config_path), content)
    log.debug("Loaded %r from %s", config, config_path)
    return config
