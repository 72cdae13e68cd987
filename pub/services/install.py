"""Install runner used by the prebuild step.

The install itself is delegated to an external package manager; the command
is configurable (``[prebuild] install_command``) with ``{prefix}`` and
``{tarball}`` placeholders.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.platform.process import ProcessError, run_silent

__all__ = ["CommandInstallRunner", "InstallRunner", "MockInstallRunner"]


class InstallRunner(Protocol):
    def install(self, prefix: Path, tarball: Path) -> Result[None, ProcessError]: ...


class CommandInstallRunner:
    """Installs a tarball into ``prefix`` with an external command."""

    def __init__(self, command: tuple[str, ...], console: ConsoleProtocol) -> None:
        self._command = command
        self._console = console

    def command_for(self, prefix: Path, tarball: Path) -> list[str]:
        return [part.format(prefix=prefix, tarball=tarball) for part in self._command]

    def install(self, prefix: Path, tarball: Path) -> Result[None, ProcessError]:
        cmd = self.command_for(prefix, tarball)
        self._console.debug(" ".join(cmd))
        try:
            prefix.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(ProcessError(command=tuple(cmd), returncode=-1, detail=str(e)))
        return run_silent(cmd, cwd=prefix)


def _empty_installs() -> list[tuple[Path, Path]]:
    return []


@dataclass
class MockInstallRunner:
    """Install double.

    On success it materializes ``prefix/node_modules/<name>/package.json``
    from ``descriptor`` (when given), as a real install of the tarball would.
    """

    descriptor: dict[str, object] | None = None
    fail: bool = False
    installs: list[tuple[Path, Path]] = field(default_factory=_empty_installs)

    def install(self, prefix: Path, tarball: Path) -> Result[None, ProcessError]:
        self.installs.append((prefix, tarball))
        if self.fail:
            return Err(
                ProcessError(command=("install",), returncode=1, detail="build failed")
            )
        if self.descriptor is not None:
            name = str(self.descriptor["name"])
            target = prefix / "node_modules" / name
            target.mkdir(parents=True, exist_ok=True)
            (target / "package.json").write_text(json.dumps(self.descriptor), encoding="utf-8")
            (target / "binding.node").write_bytes(b"\x7fELF")
        return Ok(None)
