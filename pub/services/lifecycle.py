"""Lifecycle hook runner.

Runs ``scripts[hook]`` from the package descriptor in a working directory.
A package without the hook is a no-op success.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pub.core.package import PackageMetadata
from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.platform.process import run_silent, shell_command
from pub.services.publish_errors import LifecycleHookError

__all__ = ["LifecycleRunner", "MockLifecycleRunner", "ScriptLifecycleRunner", "script_env"]


class LifecycleRunner(Protocol):
    def run(
        self, metadata: PackageMetadata, hook: str, cwd: Path
    ) -> Result[None, LifecycleHookError]: ...


def script_env(metadata: PackageMetadata, hook: str, cwd: Path) -> dict[str, str]:
    """Environment for a lifecycle script: package info + local bin on PATH."""
    env = dict(os.environ)
    bin_dir = cwd / "node_modules" / ".bin"
    env["PATH"] = os.pathsep.join(p for p in (str(bin_dir), env.get("PATH", "")) if p)
    env["npm_lifecycle_event"] = hook
    env["npm_lifecycle_script"] = metadata.scripts.get(hook, "")
    env["npm_package_name"] = metadata.name
    env["npm_package_version"] = metadata.version
    return env


class ScriptLifecycleRunner:
    """Runs hook scripts through the platform shell."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def run(
        self, metadata: PackageMetadata, hook: str, cwd: Path
    ) -> Result[None, LifecycleHookError]:
        script = metadata.scripts.get(hook)
        if not script:
            self._console.debug(f"{metadata.id}: no {hook} script")
            return Ok(None)

        self._console.info(f"> {metadata.id} {hook}")
        self._console.print(f"> {script}")
        result = run_silent(shell_command(script), cwd=cwd, env=script_env(metadata, hook, cwd))
        if isinstance(result, Err):
            return Err(
                LifecycleHookError(
                    hook=hook,
                    package_id=metadata.id,
                    returncode=result.error.returncode,
                    detail=result.error.detail,
                )
            )
        return Ok(None)


def _empty_runs() -> list[tuple[str, str, Path]]:
    return []


@dataclass
class MockLifecycleRunner:
    """Records hook invocations; hooks named in ``failing`` fail with exit 1.

    Hooks are recorded even when the package has no script for them, so tests
    can assert on ordering.
    """

    failing: set[str] = field(default_factory=set)
    runs: list[tuple[str, str, Path]] = field(default_factory=_empty_runs)

    def run(
        self, metadata: PackageMetadata, hook: str, cwd: Path
    ) -> Result[None, LifecycleHookError]:
        self.runs.append((metadata.id, hook, cwd))
        if hook in self.failing:
            return Err(LifecycleHookError(hook=hook, package_id=metadata.id, returncode=1))
        return Ok(None)

    @property
    def hooks(self) -> list[str]:
        return [hook for _, hook, _ in self.runs]
