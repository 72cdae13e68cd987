"""Upload to the registry.

Uploads the package (prebuilt tarball if there is one, primary tarball
otherwise) with its optional README, under the rollback guard. A version
conflict with ``force`` set on the initial attempt unpublishes the existing
version and asks the orchestrator for one retry instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pub.core.package import PackageMetadata, PrebuiltArtifact, StagedArtifact
from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.registry.client import RegistryClient
from pub.services.publish_errors import PublishError, RegistryConflictError, RegistryOtherError
from pub.services.rollback import attempt_compensation, with_rollback
from pub.services.session import Attempt, PublishSession

__all__ = ["Published", "RetryRequested", "UploadOutcome", "read_readme", "reg_publish"]


@dataclass(frozen=True, slots=True)
class Published:
    package_id: str

    @property
    def line(self) -> str:
        return f"+ {self.package_id}"


@dataclass(frozen=True, slots=True)
class RetryRequested:
    """The conflicting version was unpublished; run the pipeline once more."""

    package_id: str


UploadOutcome = Published | RetryRequested


def read_readme(path: Path, console: ConsoleProtocol) -> str | None:
    """Read the README if there is one; a missing README is not an error."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.debug(f"no readme uploaded ({e})")
        return None


def reg_publish(
    metadata: PackageMetadata,
    prebuilt: PrebuiltArtifact | None,
    staged: StagedArtifact,
    *,
    attempt: Attempt,
    session: PublishSession,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[UploadOutcome, PublishError]:
    def upload() -> Result[UploadOutcome, PublishError]:
        return _upload(
            metadata,
            prebuilt,
            staged,
            attempt=attempt,
            session=session,
            registry=registry,
            console=console,
        )

    return with_rollback(
        upload, metadata=metadata, registry=registry, session=session, console=console
    )


def _upload(
    metadata: PackageMetadata,
    prebuilt: PrebuiltArtifact | None,
    staged: StagedArtifact,
    *,
    attempt: Attempt,
    session: PublishSession,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[UploadOutcome, PublishError]:
    readme = read_readme(staged.readme, console)
    tarball = prebuilt.tarball if prebuilt is not None else staged.tarball
    console.debug(f"uploading {metadata.id} from {tarball}")

    config = session.config
    result = registry.publish(
        metadata, tarball, readme, registry=config.registry, tag=config.tag
    )
    if not isinstance(result, Err):
        return Ok(Published(metadata.id))

    error = result.error
    if error.conflict and config.force and attempt is Attempt.INITIAL:
        console.warning(f"Forced publish over {metadata.id}")
        # Outcome ignored: the retry surfaces any real problem.
        attempt_compensation(
            metadata.id,
            registry=registry,
            console=console,
            registry_url=config.registry,
            label="forced publish",
        )
        return Ok(RetryRequested(metadata.id))

    if error.conflict:
        return Err(RegistryConflictError(package_id=metadata.id, reason=error.message))
    return Err(RegistryOtherError(package_id=metadata.id, status=error.status, reason=error.message))
