"""Spawning external commands.

Lifecycle scripts and the prebuild install are the only processes ``pub``
starts, and both go through ``run_silent``: output streams straight to the
terminal, a non-zero exit becomes a ProcessError.
"""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from pub.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run_silent", "shell_command"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not start (returncode -1) or exited non-zero."""

    command: tuple[str, ...]
    returncode: int
    detail: str = ""

    def __str__(self) -> str:
        shown = " ".join(self.command[:3]) + (" ..." if len(self.command) > 3 else "")
        if self.returncode < 0:
            return f"{shown} could not start: {self.detail}"
        return f"{shown} failed (exit {self.returncode})"


def shell_command(script: str) -> list[str]:
    """Argument vector running ``script`` in the platform shell."""
    if sys.platform == "win32":
        return ["cmd", "/d", "/s", "/c", script]
    return ["sh", "-c", script]


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
) -> Result[None, ProcessError]:
    """Run cmd in cwd, inheriting stdout/stderr."""
    try:
        returncode = subprocess.call(cmd, cwd=cwd, env=env)
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, detail=str(e)))

    if returncode != 0:
        return Err(ProcessError(command=tuple(cmd), returncode=returncode))
    return Ok(None)
