"""Tests for pub.services.lifecycle module."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from pub.core.package import PackageMetadata
from pub.core.result import Err, Ok
from pub.output.console import MockConsole
from pub.platform.process import ProcessError
from pub.services import lifecycle
from pub.services.lifecycle import MockLifecycleRunner, ScriptLifecycleRunner, script_env


def _meta(scripts: dict[str, str]) -> PackageMetadata:
    result = PackageMetadata.from_dict({"name": "mypkg", "version": "1.0.0", "scripts": scripts})
    assert isinstance(result, Ok)
    return result.value


def test_script_env(tmp_path: Path) -> None:
    env = script_env(_meta({"publish": "echo hi"}), "publish", tmp_path)

    assert env["npm_lifecycle_event"] == "publish"
    assert env["npm_lifecycle_script"] == "echo hi"
    assert env["npm_package_name"] == "mypkg"
    assert env["npm_package_version"] == "1.0.0"
    assert env["PATH"].split(os.pathsep)[0] == str(tmp_path / "node_modules" / ".bin")


class TestScriptLifecycleRunner:
    def test_missing_hook_is_noop(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail_run_silent(*_args: object, **_kwargs: object) -> None:
            raise AssertionError("must not spawn a process")

        monkeypatch.setattr(lifecycle, "run_silent", fail_run_silent)

        result = ScriptLifecycleRunner(MockConsole()).run(_meta({}), "prepublish", tmp_path)

        assert result == Ok(None)

    def test_runs_script_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict[str, object] = {}

        def fake_run_silent(cmd: list[str], cwd: Path, env: dict[str, str] | None = None):
            seen["cmd"] = cmd
            seen["cwd"] = cwd
            seen["env"] = env
            return Ok(None)

        monkeypatch.setattr(lifecycle, "run_silent", fake_run_silent)
        console = MockConsole()

        result = ScriptLifecycleRunner(console).run(_meta({"publish": "make dist"}), "publish", tmp_path)

        assert result == Ok(None)
        assert seen["cwd"] == tmp_path
        assert isinstance(seen["cmd"], list) and seen["cmd"][-1] == "make dist"
        assert console.find("> mypkg@1.0.0 publish")

    def test_failure_maps_to_hook_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_run_silent(cmd: list[str], cwd: Path, env: dict[str, str] | None = None):
            return Err(ProcessError(command=tuple(cmd), returncode=2))

        monkeypatch.setattr(lifecycle, "run_silent", fake_run_silent)

        result = ScriptLifecycleRunner(MockConsole()).run(
            _meta({"postpublish": "false"}), "postpublish", tmp_path
        )

        assert isinstance(result, Err)
        assert result.error.hook == "postpublish"
        assert result.error.package_id == "mypkg@1.0.0"
        assert result.error.returncode == 2

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell")
    def test_real_shell(self, tmp_path: Path) -> None:
        meta = _meta({"publish": "echo $npm_lifecycle_event > hook.txt"})

        result = ScriptLifecycleRunner(MockConsole()).run(meta, "publish", tmp_path)

        assert result == Ok(None)
        assert (tmp_path / "hook.txt").read_text().strip() == "publish"


class TestMockLifecycleRunner:
    def test_records_and_fails(self, tmp_path: Path) -> None:
        runner = MockLifecycleRunner(failing={"postpublish"})
        meta = _meta({})

        assert runner.run(meta, "publish", tmp_path) == Ok(None)
        assert isinstance(runner.run(meta, "postpublish", tmp_path), Err)
        assert runner.hooks == ["publish", "postpublish"]
