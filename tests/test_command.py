# Copyright 2022-2025 Broadcom.
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import pathlib
from unittest.mock import MagicMock, patch

import pytest

from dlackware import command
from dlackware.__main__ import setup_cli
from dlackware.command import (
    do_compile_order,
    do_package,
    get_compile_orders,
    resolve,
    run,
    run_compile_order,
    setup_logging,
)
from dlackware.compileorder import Step
from dlackware.error import BuildError, ParseError
from tests.helpers import info_text


class Recorder:
    """
    A package action remembering where and with what it was called.
    """

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def __call__(self, penv, pkg, old):
        self.calls.append((pkg.pkgname, old, pathlib.Path.cwd()))
        if pkg.pkgname in self.fail:
            raise BuildError(pkg.pkgname)


def test_resolve(repo):
    repo.add_package("foo", "2.0")
    pkg = resolve(repo.root_dir, "foo")
    assert pkg.pkgname == "foo"
    assert pkg.version == "2.0"


def test_resolve_missing_info(repo):
    with pytest.raises(ParseError) as excinfo:
        resolve(repo.root_dir, "foo")
    assert excinfo.value.pkgname == "foo"


def test_resolve_malformed_info(repo):
    repo.add_package("foo", info='PKGNAM="foo"\n')
    with pytest.raises(ParseError, match="missing VERSION"):
        resolve(repo.root_dir, "foo")


def test_do_package_runs_in_package_dir(penv, repo):
    repo.add_package("foo")
    action = Recorder()
    cwd = os.getcwd()
    do_package(penv, action, repo.root_dir, Step("foo", "oldfoo"))
    assert action.calls == [("foo", "oldfoo", (repo.root_dir / "foo").resolve())]
    assert os.getcwd() == cwd


def test_do_package_restores_cwd_on_failure(penv, repo):
    repo.add_package("foo")
    cwd = os.getcwd()
    with pytest.raises(BuildError):
        do_package(penv, Recorder(fail=["foo"]), repo.root_dir, Step("foo"))
    assert os.getcwd() == cwd


def test_do_package_missing_directory(penv, repo):
    with pytest.raises(ParseError) as excinfo:
        do_package(penv, Recorder(), repo.root_dir, Step("foo"))
    assert excinfo.value.pkgname == "foo"


def test_run_compile_order(penv, repo):
    for name in ("a", "b", "c"):
        repo.add_package(name)
    path = repo.add_compile_order("a", "old-b%b", "c")
    action = Recorder()
    assert run_compile_order(penv, action, path) is None
    assert [(_[0], _[1]) for _ in action.calls] == [
        ("a", None),
        ("b", "old-b"),
        ("c", None),
    ]


def test_run_compile_order_stops_at_first_failure(penv, repo):
    for name in ("a", "b", "c"):
        repo.add_package(name)
    path = repo.add_compile_order("a", "b", "c")
    action = Recorder(fail=["b"])
    error = run_compile_order(penv, action, path)
    assert error == BuildError("b")
    assert [_[0] for _ in action.calls] == ["a", "b"]


def test_run_compile_order_unresolvable_package(penv, repo):
    repo.add_package("a")
    repo.add_file("b.info", "garbage\n", "b")
    path = repo.add_compile_order("a", "b", "c")
    action = Recorder()
    error = run_compile_order(penv, action, path)
    assert error == ParseError("b")
    assert [_[0] for _ in action.calls] == ["a"]


def test_run_compile_order_missing_file(penv, repo):
    path = repo.root_dir / "compile-order"
    error = run_compile_order(penv, Recorder(), path)
    assert isinstance(error, ParseError)
    assert error.pkgname == str(path)


def test_run_compile_order_malformed(penv, repo):
    path = repo.add_compile_order("a%b%c")
    assert isinstance(run_compile_order(penv, Recorder(), path), ParseError)


def test_do_compile_order_exits_on_failure(penv, repo, caplog):
    repo.add_package("a")
    path = repo.add_compile_order("a")
    with pytest.raises(SystemExit) as excinfo:
        do_compile_order(penv, Recorder(fail=["a"]), path)
    assert excinfo.value.code == 1
    assert "a: Build failed" in caplog.text


def test_do_compile_order_success(penv, repo):
    repo.add_package("a")
    path = repo.add_compile_order("a")
    action = Recorder()
    do_compile_order(penv, action, path)
    assert len(action.calls) == 1


def test_get_compile_orders(config):
    assert get_compile_orders(config) == [config.repos_root / "main" / "compile-order"]


def test_run_stops_at_first_failing_compile_order(penv, repo):
    repo.add_package("a")
    repo.add_compile_order("a")
    action = Recorder(fail=["a"])
    with patch(
        "dlackware.command.get_compile_orders",
        return_value=[repo.root_dir / "compile-order", repo.root_dir / "other"],
    ):
        with patch(
            "dlackware.command.run_compile_order", wraps=run_compile_order
        ) as run_mock:
            with pytest.raises(SystemExit):
                run(penv, action)
    assert run_mock.call_count == 1


def test_build_creates_temporary_directory(penv):
    with patch("dlackware.command.run") as run_mock:
        command.build(penv)
    assert penv.config.temporary_directory.is_dir()
    run_mock.assert_called_once()


def test_setup_cli():
    parser = setup_cli()
    args = parser.parse_args(["build", "--config", "dlackware.yaml"])
    assert args.command == "build"
    assert args.config == "dlackware.yaml"
    assert args.log_level == "info"
    assert args.func is command.main


def test_setup_cli_default_config():
    args = setup_cli().parse_args(["install"])
    assert args.config == "etc/dlackware.yaml"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "dlackware.yaml"
    path.write_text(
        f"reposRoot: {tmp_path / 'repos'}\n"
        "repos:\n"
        "  - main/compile-order\n"
        f"loggingDirectory: {tmp_path / 'logs'}\n"
        f"temporaryDirectory: {tmp_path / 'tmp'}\n"
    )
    return path


def test_main_dispatches(config_file, tmp_path):
    args = setup_cli().parse_args(["download", "--config", str(config_file)])
    download = MagicMock()
    with patch("dlackware.command.setup_logging") as logging_mock, patch.dict(
        command.COMMANDS, {"download": (download, "")}
    ), patch("dlackware.command.build_arch", return_value="x86_64"):
        command.main(args)
    penv = download.call_args.args[0]
    assert penv.uname_m == "x86_64"
    assert penv.config.repos == ("main/compile-order",)
    assert (tmp_path / "logs").is_dir()
    logging_mock.assert_called_once_with("info", tmp_path / "logs")


def test_main_bad_config(tmp_path):
    args = setup_cli().parse_args(["build", "--config", str(tmp_path / "nope.yaml")])
    with patch("dlackware.command.setup_logging"):
        with pytest.raises(SystemExit) as excinfo:
            command.main(args)
    assert excinfo.value.code == 1


def test_main_end_to_end(config_file, tmp_path):
    repos = tmp_path / "repos" / "main"
    repos.mkdir(parents=True)
    (repos / "compile-order").write_text("foo\n")
    (repos / "foo").mkdir()
    (repos / "foo" / "foo.info").write_text(info_text("foo"))
    (repos / "foo" / "foo.SlackBuild").write_text("true\n")
    args = setup_cli().parse_args(["install", "--config", str(config_file)])
    with patch("dlackware.command.setup_logging"), patch(
        "dlackware.package.actions.runcmd"
    ) as runcmd_mock:
        command.main(args)
    target = runcmd_mock.call_args.args[0][-1]
    assert target.endswith(".txz")
    assert pathlib.Path(target).name.startswith("foo-1.0-")


def test_setup_logging_writes_run_log(tmp_path):
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    try:
        setup_logging("warning", tmp_path)
        logging.getLogger("dlackware.tests").info("Building package foo")
        logging.getLogger("dlackware.tests").debug("not in the run log")
    finally:
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)
    content = (tmp_path / "dlackware.log").read_text()
    assert "INFO Building package foo" in content
    assert "not in the run log" not in content
