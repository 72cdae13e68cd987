"""Error kinds produced by the publish pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pub.core.package import USAGE


@dataclass(frozen=True, slots=True)
class UsageError:
    count: int

    @property
    def message(self) -> str:
        return f"expected one argument, got {self.count}\n\nUsage:\n{USAGE}"


@dataclass(frozen=True, slots=True)
class StagingError:
    argument: str
    reason: str

    @property
    def message(self) -> str:
        return f"cannot stage '{self.argument}': {self.reason}"


@dataclass(frozen=True, slots=True)
class MissingMetadataError:
    @property
    def message(self) -> str:
        return "no package.json file found"


@dataclass(frozen=True, slots=True)
class PrivatePackageError:
    name: str

    @property
    def message(self) -> str:
        return (
            f"This package has been marked as private ({self.name})\n"
            "Remove the 'private' field from the package.json to publish it."
        )


@dataclass(frozen=True, slots=True)
class PrebuildDegraded:
    """Non-fatal: the build step failed, publish continues without a binary."""

    target: str
    reason: str

    @property
    def message(self) -> str:
        return f"prebuild for {self.target} failed (continuing without prebuild): {self.reason}"


@dataclass(frozen=True, slots=True)
class PrebuildFailed:
    target: str
    path: Path | None
    reason: str

    @property
    def message(self) -> str:
        where = f" ({self.path})" if self.path else ""
        return f"prebuild for {self.target} failed{where}: {self.reason}"


@dataclass(frozen=True, slots=True)
class LifecycleHookError:
    hook: str
    package_id: str
    returncode: int
    detail: str = ""

    @property
    def message(self) -> str:
        suffix = f": {self.detail}" if self.detail else ""
        return f"{self.package_id} {self.hook} script failed (exit {self.returncode}){suffix}"


@dataclass(frozen=True, slots=True)
class RegistryConflictError:
    package_id: str
    reason: str = "cannot publish over an existing version"

    @property
    def message(self) -> str:
        return f"{self.package_id}: {self.reason}"

    @property
    def hint(self) -> str:
        return "Bump the version, or pass --force to unpublish and republish it."


@dataclass(frozen=True, slots=True)
class RegistryOtherError:
    package_id: str
    status: int
    reason: str

    @property
    def message(self) -> str:
        if self.status:
            return f"{self.package_id}: registry returned HTTP {self.status}: {self.reason}"
        return f"{self.package_id}: {self.reason}"


@dataclass(frozen=True, slots=True)
class RollbackCompensationError:
    """The compensating unpublish failed. Logged, never returned."""

    package_id: str
    reason: str

    @property
    def message(self) -> str:
        return f"cannot unpublish {self.package_id}: {self.reason}"


PublishError = (
    UsageError
    | StagingError
    | MissingMetadataError
    | PrivatePackageError
    | PrebuildDegraded
    | PrebuildFailed
    | LifecycleHookError
    | RegistryConflictError
    | RegistryOtherError
)
