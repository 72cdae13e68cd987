"""Artifact staging.

Resolves a publish argument (folder, tarball path, tarball URL) into a cache
entry::

    <cache>/<name>/<version>/package.tgz   primary tarball
    <cache>/<name>/<version>/package/      expanded package

Usage:
    stager = CacheStager(Path("~/.cache/pub").expanduser(), console)
    match stager.stage("."):
        case Ok(staged):
            print(staged.package_dir)
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

import contextlib
import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from pub.core.package import PackageMetadata, StagedArtifact, read_descriptor, read_descriptor_dict
from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.registry.client import fetch_tarball
from pub.services.archive import pack, unpack
from pub.services.publish_errors import StagingError

__all__ = ["ArtifactStager", "CacheStager", "MockStager"]


class ArtifactStager(Protocol):
    def stage(self, argument: str) -> Result[StagedArtifact, StagingError]: ...


class CacheStager:
    """Stages packages into a content-addressed cache directory."""

    def __init__(self, cache_root: Path, console: ConsoleProtocol, *, timeout: float = 60.0) -> None:
        self.cache_root = cache_root
        self._console = console
        self._timeout = timeout

    def entry_root(self, metadata: PackageMetadata) -> Path:
        return self.cache_root / metadata.name / metadata.version

    def stage(self, argument: str) -> Result[StagedArtifact, StagingError]:
        self._console.debug(f"staging {argument}")
        if argument.startswith(("http://", "https://")):
            return self._stage_url(argument)

        path = Path(argument).expanduser()
        if path.is_dir():
            return self._stage_dir(argument, path)
        if path.is_file():
            return self._stage_tarball(argument, path)
        return Err(StagingError(argument, "not a folder, tarball or tarball URL"))

    def _stage_dir(self, argument: str, path: Path) -> Result[StagedArtifact, StagingError]:
        raw = read_descriptor_dict(path / "package.json")
        if isinstance(raw, Err):
            return Err(StagingError(argument, raw.error.message))
        meta = PackageMetadata.from_dict(raw.value, path=path / "package.json")
        if isinstance(meta, Err):
            return Err(StagingError(argument, meta.error.message))

        root = self.entry_root(meta.value)
        packed = pack(root / "package.tgz", path, raw.value, gzip=True)
        if isinstance(packed, Err):
            return Err(StagingError(argument, packed.error.message))
        return self._expand(argument, root)

    def _stage_tarball(self, argument: str, tarball: Path) -> Result[StagedArtifact, StagingError]:
        scratch = self.cache_root / ".tmp" / uuid4().hex
        try:
            unpacked = unpack(tarball, scratch / "package")
            if isinstance(unpacked, Err):
                return Err(StagingError(argument, unpacked.error.message))
            meta = read_descriptor(scratch / "package" / "package.json")
            if isinstance(meta, Err):
                return Err(StagingError(argument, meta.error.message))

            root = self.entry_root(meta.value)
            dest = root / "package.tgz"
            try:
                root.mkdir(parents=True, exist_ok=True)
                if tarball.resolve() != dest.resolve():
                    shutil.copyfile(tarball, dest)
            except OSError as e:
                return Err(StagingError(argument, f"cannot cache {tarball}: {e}"))
            return self._expand(argument, root)
        finally:
            with contextlib.suppress(OSError):
                shutil.rmtree(scratch)

    def _stage_url(self, url: str) -> Result[StagedArtifact, StagingError]:
        download = self.cache_root / ".tmp" / f"{uuid4().hex}.tgz"
        fetched = fetch_tarball(url, download, timeout=self._timeout)
        if isinstance(fetched, Err):
            return Err(StagingError(url, str(fetched.error)))
        try:
            return self._stage_tarball(url, download)
        finally:
            download.unlink(missing_ok=True)

    def _expand(self, argument: str, root: Path) -> Result[StagedArtifact, StagingError]:
        package_dir = root / "package"
        unpacked = unpack(root / "package.tgz", package_dir)
        if isinstance(unpacked, Err):
            return Err(StagingError(argument, unpacked.error.message))
        meta = read_descriptor(package_dir / "package.json")
        if isinstance(meta, Err):
            return Err(StagingError(argument, meta.error.message))
        self._console.debug(f"staged {meta.value.id} at {package_dir}")
        return Ok(StagedArtifact(package_dir=package_dir, metadata=meta.value))


def _empty_calls() -> list[str]:
    return []


@dataclass
class MockStager:
    """Stager double.

    Each ``stage`` call builds fresh metadata from ``descriptor`` (so pipeline
    mutations do not leak between attempts) and lays out the cache entry under
    ``root`` with a placeholder primary tarball. ``descriptor=None`` stages an
    artifact without metadata.
    """

    root: Path
    descriptor: dict[str, object] | None = None
    error: str | None = None
    calls: list[str] = field(default_factory=_empty_calls)

    def stage(self, argument: str) -> Result[StagedArtifact, StagingError]:
        self.calls.append(argument)
        if self.error is not None:
            return Err(StagingError(argument, self.error))
        if self.descriptor is None:
            return Ok(StagedArtifact(package_dir=self.root / "unknown" / "package", metadata=None))

        meta = PackageMetadata.from_dict(json.loads(json.dumps(self.descriptor)))
        if isinstance(meta, Err):
            return Err(StagingError(argument, meta.error.message))
        package_dir = self.root / meta.value.name / meta.value.version / "package"
        package_dir.mkdir(parents=True, exist_ok=True)
        tarball = package_dir.with_name("package.tgz")
        if not tarball.exists():
            tarball.write_bytes(b"primary")
        return Ok(StagedArtifact(package_dir=package_dir, metadata=meta.value))
