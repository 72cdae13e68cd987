"""Platform abstraction: processes and filesystem."""

from .files import reset_dir, write_json_atomic
from .process import ProcessError, run_silent, shell_command

__all__ = [
    "ProcessError",
    "reset_dir",
    "run_silent",
    "shell_command",
    "write_json_atomic",
]
