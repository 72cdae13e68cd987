"""Compensating unpublish after a failed upload.

The guard only observes the wrapped stage: on success nothing happens; on
failure it unpublishes ``name@version`` and hands back the stage's original
error, whatever the unpublish outcome was.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from pub.core.package import PackageMetadata
from pub.core.result import Err, Result
from pub.output.console import ConsoleProtocol
from pub.registry.client import RegistryClient
from pub.services.publish_errors import PublishError, RollbackCompensationError
from pub.services.session import PublishSession

__all__ = ["attempt_compensation", "with_rollback"]


def attempt_compensation(
    package_id: str,
    *,
    registry: RegistryClient,
    console: ConsoleProtocol,
    registry_url: str,
    label: str,
    on_failure: Sequence[str] = (),
) -> None:
    """Best-effort unpublish of ``package_id`` from ``registry_url``.

    The outcome is logged and then discarded; callers cannot branch on it.
    """
    result = registry.unpublish(package_id, registry=registry_url)
    if isinstance(result, Err):
        failure = RollbackCompensationError(package_id=package_id, reason=str(result.error))
        console.error(f"{label} failed: {failure.message}")
        for line in on_failure:
            console.error(f"{label} failed: {line}")
        return
    console.info(f"{label}: unpublished {package_id}")


def with_rollback[T](
    stage: Callable[[], Result[T, PublishError]],
    *,
    metadata: PackageMetadata,
    registry: RegistryClient,
    session: PublishSession,
    console: ConsoleProtocol,
) -> Result[T, PublishError]:
    """Run an upload stage; roll the version back if it fails."""
    result = stage()
    if not isinstance(result, Err):
        return result

    session.rolling_back = True
    console.error(f"publish failed: {result.error.message}")
    console.info("publish failed: rollback")
    attempt_compensation(
        f"{metadata.name}@{metadata.version}",
        registry=registry,
        console=console,
        registry_url=session.config.registry,
        label="rollback",
        on_failure=("Invalid data in registry! Please report this.",),
    )
    return result
