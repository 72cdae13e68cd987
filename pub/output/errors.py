"""Error presentation utilities.

Centralized error formatting and exit code mapping for the publish command.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pub.core.errors import ErrorCode
from pub.output.console import Style
from pub.services.publish_errors import (
    LifecycleHookError,
    MissingMetadataError,
    PrebuildDegraded,
    PrebuildFailed,
    PrivatePackageError,
    PublishError,
    RegistryConflictError,
    RegistryOtherError,
    StagingError,
    UsageError,
)

if TYPE_CHECKING:
    from pub.output.console import ConsoleProtocol

__all__ = ["print_publish_error", "publish_error_exit_code"]


def print_publish_error(error: PublishError, console: ConsoleProtocol) -> None:
    """Print a publish error with appropriate formatting."""
    match error:
        case UsageError():
            console.error(error.message)
        case StagingError(argument=argument, reason=reason):
            console.error(f"cannot stage '{argument}'")
            console.print(reason, Style.DIM)
        case RegistryConflictError():
            console.error(error.message)
            console.print(f"hint: {error.hint}", Style.DIM)
        case LifecycleHookError(detail=detail) if detail:
            console.error(f"{error.package_id} {error.hook} script failed (exit {error.returncode})")
            console.print(detail, Style.DIM)
        case _:
            console.error(error.message)


def publish_error_exit_code(error: PublishError) -> int:
    """Get exit code for a publish error."""
    match error:
        case UsageError() | MissingMetadataError() | PrivatePackageError():
            return int(ErrorCode.USER_ERROR)
        case StagingError():
            return int(ErrorCode.PACKAGE_ERROR)
        case LifecycleHookError() | PrebuildFailed() | PrebuildDegraded():
            return int(ErrorCode.SCRIPT_ERROR)
        case RegistryConflictError() | RegistryOtherError():
            return int(ErrorCode.REGISTRY_ERROR)
    return int(ErrorCode.IO_ERROR)
