"""Tests for pub.services.registry_publish module."""

from __future__ import annotations

from pathlib import Path

from pub.core.config import Config
from pub.core.package import PackageMetadata, PrebuiltArtifact, StagedArtifact
from pub.core.result import Err, Ok
from pub.output.console import MockConsole
from pub.registry.client import MockRegistryClient, RegistryError
from pub.services.publish_errors import RegistryConflictError, RegistryOtherError
from pub.services.registry_publish import Published, RetryRequested, read_readme, reg_publish
from pub.services.session import Attempt, PublishSession
from pub.services.stager import MockStager

CONFLICT = RegistryError(url="http://reg/mypkg", status=409, message="version exists", conflict=True)
SERVER_ERROR = RegistryError(url="http://reg/mypkg", status=500, message="internal")


def _staged(tmp_path: Path) -> tuple[PackageMetadata, StagedArtifact]:
    result = MockStager(root=tmp_path, descriptor={"name": "mypkg", "version": "1.0.0"}).stage(".")
    assert isinstance(result, Ok)
    assert result.value.metadata is not None
    return result.value.metadata, result.value


def _publish(
    tmp_path: Path,
    registry: MockRegistryClient,
    *,
    config: Config = Config(),
    attempt: Attempt = Attempt.INITIAL,
    prebuilt: PrebuiltArtifact | None = None,
    console: MockConsole | None = None,
):
    meta, staged = _staged(tmp_path)
    return reg_publish(
        meta,
        prebuilt,
        staged,
        attempt=attempt,
        session=PublishSession.start(config),
        registry=registry,
        console=console or MockConsole(),
    )


def test_success_uploads_primary_tarball(tmp_path: Path) -> None:
    registry = MockRegistryClient()

    result = _publish(tmp_path, registry)

    assert result == Ok(Published("mypkg@1.0.0"))
    assert registry.uploads[0].tarball == tmp_path / "mypkg" / "1.0.0" / "package.tgz"
    assert registry.unpublish_calls == []


def test_prebuilt_tarball_is_uploaded_instead(tmp_path: Path) -> None:
    registry = MockRegistryClient()
    prebuilt = PrebuiltArtifact(target="linux-x64", tarball=tmp_path / "bin.tgz", shasum="abc")

    _publish(tmp_path, registry, prebuilt=prebuilt)

    assert registry.uploads[0].tarball == tmp_path / "bin.tgz"


def test_upload_targets_configured_registry_and_tag(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[CONFLICT])
    config = Config(registry="http://mirror:4873/", tag="next", force=True)

    _publish(tmp_path, registry, config=config)

    assert (registry.uploads[0].registry, registry.uploads[0].tag) == ("http://mirror:4873/", "next")
    assert registry.unpublish_registries == ["http://mirror:4873/"]


def test_readme_is_optional(tmp_path: Path) -> None:
    console = MockConsole()
    assert read_readme(tmp_path / "README.md", console) is None
    (tmp_path / "README.md").write_text("# hi", encoding="utf-8")
    assert read_readme(tmp_path / "README.md", console) == "# hi"


def test_conflict_without_force_rolls_back(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[CONFLICT])

    result = _publish(tmp_path, registry)

    assert isinstance(result, Err)
    assert isinstance(result.error, RegistryConflictError)
    assert registry.unpublish_calls == ["mypkg@1.0.0"]


def test_forced_conflict_requests_retry(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[CONFLICT])
    console = MockConsole()

    result = _publish(tmp_path, registry, config=Config(force=True), console=console)

    assert result == Ok(RetryRequested("mypkg@1.0.0"))
    assert registry.calls == [("publish", "mypkg@1.0.0"), ("unpublish", "mypkg@1.0.0")]
    assert console.find("Forced publish over mypkg@1.0.0")


def test_forced_conflict_ignores_unpublish_failure(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[CONFLICT], unpublish_error=SERVER_ERROR)

    result = _publish(tmp_path, registry, config=Config(force=True))

    assert result == Ok(RetryRequested("mypkg@1.0.0"))


def test_forced_conflict_on_retry_surfaces_conflict(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[CONFLICT])

    result = _publish(tmp_path, registry, config=Config(force=True), attempt=Attempt.RETRYING)

    assert isinstance(result, Err)
    assert isinstance(result.error, RegistryConflictError)
    # Rollback of the failed retry, no second forced unpublish.
    assert registry.unpublish_calls == ["mypkg@1.0.0"]


def test_other_error(tmp_path: Path) -> None:
    registry = MockRegistryClient(publish_results=[SERVER_ERROR])

    result = _publish(tmp_path, registry, config=Config(force=True))

    assert isinstance(result, Err)
    assert result.error == RegistryOtherError(package_id="mypkg@1.0.0", status=500, reason="internal")
    assert registry.unpublish_calls == ["mypkg@1.0.0"]
