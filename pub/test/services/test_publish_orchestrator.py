"""Tests for pub.services.publish (the publish pipeline end to end, with doubles)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import pytest

from pub.core.config import Config
from pub.core.result import Err, Ok
from pub.output.console import MockConsole
from pub.registry.client import MockRegistryClient, RegistryError
from pub.services.install import MockInstallRunner
from pub.services.lifecycle import MockLifecycleRunner
from pub.services.publish import PublishDeps, publish
from pub.services.publish_errors import (
    LifecycleHookError,
    MissingMetadataError,
    PrivatePackageError,
    RegistryConflictError,
    RegistryOtherError,
    StagingError,
    UsageError,
)
from pub.services.stager import MockStager

MYPKG: dict[str, object] = {"name": "mypkg", "version": "1.0.0"}
NATIVE: dict[str, object] = {
    "name": "native",
    "version": "2.0.0",
    "scripts": {"install": "node-gyp rebuild"},
}
CONFLICT = RegistryError(url="http://reg/mypkg", status=409, message="version exists", conflict=True)
SERVER_ERROR = RegistryError(url="http://reg/mypkg", status=500, message="internal")


@dataclass
class Harness:
    stager: MockStager
    lifecycle: MockLifecycleRunner
    registry: MockRegistryClient
    installer: MockInstallRunner
    console: MockConsole

    @property
    def deps(self) -> PublishDeps:
        return PublishDeps(
            stager=self.stager,
            lifecycle=self.lifecycle,
            registry=self.registry,
            installer=self.installer,
            console=self.console,
        )


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(
        stager=MockStager(root=tmp_path / "cache", descriptor=dict(MYPKG)),
        lifecycle=MockLifecycleRunner(),
        registry=MockRegistryClient(),
        installer=MockInstallRunner(),
        console=MockConsole(),
    )


@pytest.fixture
def package_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A local package folder as the current directory."""
    root = tmp_path / "work"
    root.mkdir()
    (root / "package.json").write_text(json.dumps(MYPKG), encoding="utf-8")
    monkeypatch.chdir(root)
    return root


class TestEndToEnd:
    def test_publish_current_folder(self, harness: Harness, package_dir: Path) -> None:
        result = publish([], config=Config(), deps=harness.deps)

        assert isinstance(result, Ok)
        assert result.value.line == "+ mypkg@1.0.0"
        assert result.value.attempts == 1
        assert harness.stager.calls == ["."]
        assert harness.lifecycle.hooks == ["prepublish", "publish", "postpublish"]
        assert harness.registry.publish_calls == ["mypkg@1.0.0"]
        assert harness.registry.unpublish_calls == []
        assert harness.console.find("+ mypkg@1.0.0")

    def test_upload_happens_between_prepublish_and_publish_hooks(
        self, harness: Harness, package_dir: Path
    ) -> None:
        order: list[str] = []
        real_publish = harness.registry.publish
        real_run = harness.lifecycle.run

        def tracking_publish(metadata, tarball, readme, **target):  # type: ignore[no-untyped-def]
            order.append("upload")
            return real_publish(metadata, tarball, readme, **target)

        def tracking_run(metadata, hook, cwd):  # type: ignore[no-untyped-def]
            order.append(hook)
            return real_run(metadata, hook, cwd)

        harness.registry.publish = tracking_publish  # type: ignore[method-assign]
        harness.lifecycle.run = tracking_run  # type: ignore[method-assign]

        publish(["."], config=Config(), deps=harness.deps)

        assert order == ["prepublish", "upload", "publish", "postpublish"]

    def test_hooks_run_in_staged_package(self, harness: Harness, package_dir: Path) -> None:
        publish([], config=Config(), deps=harness.deps)

        cwds = {cwd for _, _, cwd in harness.lifecycle.runs}
        assert cwds == {harness.stager.root / "mypkg" / "1.0.0" / "package"}

    def test_tarball_argument_skips_prepublish(self, harness: Harness, tmp_path: Path) -> None:
        result = publish([str(tmp_path / "mypkg-1.0.0.tgz")], config=Config(), deps=harness.deps)

        assert isinstance(result, Ok)
        assert harness.lifecycle.hooks == ["publish", "postpublish"]

    def test_url_argument_skips_prepublish(self, harness: Harness) -> None:
        result = publish(["https://host/mypkg-1.0.0.tgz"], config=Config(), deps=harness.deps)

        assert isinstance(result, Ok)
        assert harness.stager.calls == ["https://host/mypkg-1.0.0.tgz"]
        assert "prepublish" not in harness.lifecycle.hooks


class TestUsage:
    def test_two_arguments(self, harness: Harness) -> None:
        result = publish(["a", "b"], config=Config(), deps=harness.deps)

        assert result == Err(UsageError(count=2))
        assert harness.stager.calls == []
        assert harness.lifecycle.runs == []
        assert harness.registry.calls == []
        assert harness.installer.installs == []

    def test_usage_text(self) -> None:
        message = UsageError(count=3).message
        assert "pub publish <tarball>" in message
        assert "pub publish <folder>" in message


class TestEarlyFailures:
    def test_private_package_never_reaches_registry(self, harness: Harness) -> None:
        harness.stager.descriptor = {**MYPKG, "private": True}

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert result == Err(PrivatePackageError(name="mypkg"))
        assert harness.registry.calls == []
        assert harness.lifecycle.hooks == []

    def test_staging_error(self, harness: Harness) -> None:
        harness.stager.error = "not a folder, tarball or tarball URL"

        result = publish(["nope"], config=Config(), deps=harness.deps)

        assert isinstance(result, Err)
        assert isinstance(result.error, StagingError)
        assert harness.registry.calls == []

    def test_missing_metadata(self, harness: Harness) -> None:
        harness.stager.descriptor = None

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert result == Err(MissingMetadataError())
        assert harness.registry.calls == []

    def test_prepublish_failure_aborts(self, harness: Harness, package_dir: Path) -> None:
        harness.lifecycle.failing = {"prepublish"}

        result = publish([], config=Config(), deps=harness.deps)

        assert isinstance(result, Err)
        assert isinstance(result.error, LifecycleHookError)
        assert result.error.hook == "prepublish"
        assert harness.registry.calls == []

    def test_postpublish_failure_does_not_roll_back(self, harness: Harness) -> None:
        harness.lifecycle.failing = {"postpublish"}

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert isinstance(result, Err)
        assert isinstance(result.error, LifecycleHookError)
        assert harness.registry.publish_calls == ["mypkg@1.0.0"]
        assert harness.registry.unpublish_calls == []


class TestRollback:
    def test_registry_failure_rolls_back_once(self, harness: Harness) -> None:
        harness.registry.publish_results = [SERVER_ERROR]

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert result == Err(RegistryOtherError(package_id="mypkg@1.0.0", status=500, reason="internal"))
        assert harness.registry.unpublish_calls == ["mypkg@1.0.0"]
        assert harness.lifecycle.hooks == []

    def test_original_error_survives_failed_unpublish(self, harness: Harness) -> None:
        harness.registry.publish_results = [SERVER_ERROR]
        harness.registry.unpublish_error = RegistryError(url="u", status=503, message="unpublish failed")

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert result == Err(RegistryOtherError(package_id="mypkg@1.0.0", status=500, reason="internal"))
        assert harness.registry.unpublish_calls == ["mypkg@1.0.0"]
        assert harness.console.find("rollback failed")

    def test_conflict_without_force(self, harness: Harness) -> None:
        harness.registry.publish_results = [CONFLICT]

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert isinstance(result, Err)
        assert isinstance(result.error, RegistryConflictError)
        assert harness.stager.calls == ["pkg.tgz"]
        assert harness.registry.unpublish_calls == ["mypkg@1.0.0"]

    def test_rollback_uses_publish_config_registry(self, harness: Harness) -> None:
        harness.stager.descriptor = {**MYPKG, "publishConfig": {"registry": "http://scoped:4873/"}}
        harness.registry.publish_results = [SERVER_ERROR]

        publish(["pkg.tgz"], config=Config(registry="http://base/"), deps=harness.deps)

        assert harness.registry.uploads[0].registry == "http://scoped:4873/"
        assert harness.registry.unpublish_registries == ["http://scoped:4873/"]


class TestForcedRetry:
    def test_conflict_with_force_retries_once(self, harness: Harness) -> None:
        harness.registry.publish_results = [CONFLICT]

        result = publish(["pkg.tgz"], config=Config(force=True), deps=harness.deps)

        assert isinstance(result, Ok)
        assert result.value.attempts == 2
        assert harness.stager.calls == ["pkg.tgz", "pkg.tgz"]
        assert harness.registry.calls == [
            ("publish", "mypkg@1.0.0"),
            ("unpublish", "mypkg@1.0.0"),
            ("publish", "mypkg@1.0.0"),
        ]
        # The interrupted first attempt runs no publish/postpublish hooks.
        assert harness.lifecycle.hooks == ["publish", "postpublish"]
        assert harness.console.find("Forced publish over mypkg@1.0.0")

    def test_second_conflict_is_surfaced(self, harness: Harness) -> None:
        harness.registry.publish_results = [CONFLICT, CONFLICT]

        result = publish(["pkg.tgz"], config=Config(force=True), deps=harness.deps)

        assert isinstance(result, Err)
        assert isinstance(result.error, RegistryConflictError)
        assert harness.registry.publish_calls == ["mypkg@1.0.0", "mypkg@1.0.0"]
        # forced unpublish + rollback of the failed retry
        assert harness.registry.unpublish_calls == ["mypkg@1.0.0", "mypkg@1.0.0"]

    def test_no_retry_when_already_retrying(self, harness: Harness) -> None:
        harness.registry.publish_results = [CONFLICT]

        result = publish(["pkg.tgz"], config=Config(force=True), deps=harness.deps, is_retry=True)

        assert isinstance(result, Err)
        assert isinstance(result.error, RegistryConflictError)
        assert harness.stager.calls == ["pkg.tgz"]
        assert harness.registry.publish_calls == ["mypkg@1.0.0"]

    def test_starting_in_retry_state_counts_one_attempt(self, harness: Harness) -> None:
        result = publish(["pkg.tgz"], config=Config(force=True), deps=harness.deps, is_retry=True)

        assert isinstance(result, Ok)
        assert result.value.package_id == "mypkg@1.0.0"
        assert result.value.attempts == 1
        assert harness.registry.unpublish_calls == []

    def test_force_from_publish_config(self, harness: Harness) -> None:
        harness.stager.descriptor = {**MYPKG, "publishConfig": {"force": True}}
        harness.registry.publish_results = [CONFLICT]
        config = Config()

        result = publish(["pkg.tgz"], config=config, deps=harness.deps)

        assert isinstance(result, Ok)
        assert result.value.attempts == 2
        assert config.force is False
        assert harness.console.find("publishConfig force=True")

    def test_registry_and_tag_from_publish_config(self, harness: Harness) -> None:
        harness.stager.descriptor = {
            **MYPKG,
            "publishConfig": {"registry": "http://scoped:4873/", "tag": "beta"},
        }
        config = Config(registry="http://base/", tag="latest")

        result = publish(["pkg.tgz"], config=config, deps=harness.deps)

        assert isinstance(result, Ok)
        upload = harness.registry.uploads[0]
        assert (upload.registry, upload.tag) == ("http://scoped:4873/", "beta")
        assert (config.registry, config.tag) == ("http://base/", "latest")

    def test_forced_unpublish_uses_publish_config_registry(self, harness: Harness) -> None:
        harness.stager.descriptor = {**MYPKG, "publishConfig": {"registry": "http://scoped:4873/"}}
        harness.registry.publish_results = [CONFLICT]

        result = publish(["pkg.tgz"], config=Config(force=True), deps=harness.deps)

        assert isinstance(result, Ok)
        assert harness.registry.unpublish_registries == ["http://scoped:4873/"]
        assert [u.registry for u in harness.registry.uploads] == ["http://scoped:4873/"] * 2


class TestPrebuild:
    def test_prebuild_uploads_binary_tarball(self, harness: Harness) -> None:
        harness.stager.descriptor = dict(NATIVE)
        harness.installer.descriptor = dict(NATIVE)
        config = Config(bindist="linux-x64", bin_publish=True)

        result = publish(["pkg.tgz"], config=config, deps=harness.deps)

        assert isinstance(result, Ok)
        assert result.value.prebuilt is not None
        upload = harness.registry.uploads[0]
        assert upload.tarball.name == "package-linux-x64.tgz"
        assert upload.dist["bin"] == {"linux-x64": {"shasum": result.value.prebuilt.shasum}}

    def test_bindist_from_publish_config(self, harness: Harness) -> None:
        harness.stager.descriptor = {
            **NATIVE,
            "publishConfig": {"bindist": "darwin-arm64", "bin-publish": True},
        }
        harness.installer.descriptor = dict(NATIVE)

        result = publish(["pkg.tgz"], config=Config(), deps=harness.deps)

        assert isinstance(result, Ok)
        assert harness.registry.uploads[0].tarball.name == "package-darwin-arm64.tgz"

    def test_install_failure_degrades(self, harness: Harness) -> None:
        harness.stager.descriptor = dict(NATIVE)
        harness.installer.fail = True
        config = Config(bindist="linux-x64", bin_publish=True)

        result = publish(["pkg.tgz"], config=config, deps=harness.deps)

        assert isinstance(result, Ok)
        assert result.value.prebuilt is None
        upload = harness.registry.uploads[0]
        assert upload.tarball.name == "package.tgz"
        assert "bin" not in upload.dist
        assert harness.console.has_warning()
        assert harness.registry.unpublish_calls == []

    def test_no_prebuild_without_install_script(self, harness: Harness) -> None:
        config = Config(bindist="linux-x64", bin_publish=True)

        result = publish(["pkg.tgz"], config=config, deps=harness.deps)

        assert isinstance(result, Ok)
        assert harness.installer.installs == []
