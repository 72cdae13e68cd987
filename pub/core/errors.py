"""Error codes for CLI exit status.

Every publish failure maps onto one of these codes. The numeric values are
part of the CLI contract and should remain stable:
- 0: Success
- 1: User error (bad arguments, private package, no package.json)
- 2: Package error (argument could not be staged, invalid descriptor)
- 3: Script error (lifecycle hook or prebuild failed)
- 4: Registry error (upload rejected, registry unreachable)
- 5: I/O error (file not found, permission denied)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    PACKAGE_ERROR = 2
    SCRIPT_ERROR = 3
    REGISTRY_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        """Return human-readable name."""
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
