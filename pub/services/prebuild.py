"""Binary pre-build.

When a package has install-time scripts and a binary distribution target is
configured, the staged tarball is installed into a freshly emptied
``<root>/build`` (running those scripts), the resulting package is stripped
of its install scripts and repacked as ``<root>/package-<target>.tgz``. Its
checksum is recorded on the original metadata under ``dist.bin[target].shasum``.

A failed install only degrades the publish (no binary distribution). Any
later I/O failure is a hard error.
"""

from __future__ import annotations

from pub.core.config import Config
from pub.core.package import (
    PackageMetadata,
    PrebuiltArtifact,
    StagedArtifact,
    read_descriptor_dict,
    rebuild_descriptor,
)
from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.platform.files import reset_dir, write_json_atomic
from pub.services.archive import Packer
from pub.services.checksum import Checksummer
from pub.services.install import InstallRunner
from pub.services.publish_errors import PrebuildDegraded, PrebuildFailed, PublishError

__all__ = ["prebuild", "prebuild_target"]


def prebuild_target(metadata: PackageMetadata, config: Config) -> str | None:
    """Return the binary target to prebuild for, or None if prebuild does not apply."""
    if not metadata.has_install_script():
        return None
    if not config.bindist or not config.bin_publish:
        return None
    return config.bindist


def prebuild(
    metadata: PackageMetadata,
    staged: StagedArtifact,
    target: str | None,
    *,
    installer: InstallRunner,
    pack: Packer,
    checksum: Checksummer,
    console: ConsoleProtocol,
    require_shasum: bool = False,
) -> Result[PrebuiltArtifact | None, PublishError]:
    """Build, strip and repack the package for ``target``.

    Returns:
        Ok(PrebuiltArtifact) when a checksummed binary tarball was produced,
        Ok(None) when prebuild does not apply or no checksum is available,
        Err(PrebuildDegraded) when the install failed,
        Err(PrebuildFailed) on any other failure
    """
    if target is None:
        return Ok(None)

    root = staged.root
    build_dir = root / "build"
    build_target = build_dir / "node_modules" / metadata.name
    tarball = root / f"package-{target}.tgz"

    console.debug(f"prebuild {metadata.id} for {target}")
    console.debug(f"prebuild tarball = {staged.tarball}")
    try:
        reset_dir(build_dir)
    except OSError as e:
        return Err(PrebuildFailed(target=target, path=build_dir, reason=str(e)))
    installed = installer.install(build_dir, staged.tarball)
    console.debug(f"prebuild install done {metadata.id}")
    if isinstance(installed, Err):
        return Err(PrebuildDegraded(target=target, reason=str(installed.error)))

    descriptor_path = build_target / "package.json"
    raw = read_descriptor_dict(descriptor_path)
    if isinstance(raw, Err):
        return Err(PrebuildFailed(target=target, path=descriptor_path, reason=raw.error.message))

    rebuilt = rebuild_descriptor(raw.value, target)
    try:
        write_json_atomic(descriptor_path, rebuilt)
    except OSError as e:
        return Err(PrebuildFailed(target=target, path=descriptor_path, reason=str(e)))

    packed = pack(tarball, build_target, rebuilt, gzip=True)
    if isinstance(packed, Err):
        return Err(PrebuildFailed(target=target, path=tarball, reason=packed.error.message))

    digest = checksum(tarball)
    if isinstance(digest, Err):
        return Err(PrebuildFailed(target=target, path=tarball, reason=digest.error.message))
    if not digest.value:
        if require_shasum:
            return Err(PrebuildFailed(target=target, path=tarball, reason="checksum unavailable"))
        console.warning(f"no checksum for {tarball}; publishing without binary distribution")
        return Ok(None)

    metadata.set_bin_shasum(target, digest.value)
    return Ok(PrebuiltArtifact(target=target, tarball=tarball, shasum=digest.value))
