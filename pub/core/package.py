"""Package descriptor and publish artifacts.

A package descriptor is the parsed ``package.json`` of the package being
published. The pipeline reads a handful of typed fields (name, version,
scripts, publishConfig, private, dist, files) and must preserve every other
key verbatim when the document is sent to the registry or written back.

Usage:
    match read_descriptor(Path("pkg/package.json")):
        case Ok(meta):
            print(meta.id)  # "mypkg@1.0.0"
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_str_list, get_str_map, get_table

__all__ = [
    "DescriptorError",
    "INSTALL_SCRIPTS",
    "PREBUILT_FILES",
    "PackageMetadata",
    "PrebuiltArtifact",
    "PublishRequest",
    "StagedArtifact",
    "read_descriptor",
    "rebuild_descriptor",
]

INSTALL_SCRIPTS = ("preinstall", "install", "postinstall")
PREBUILT_FILES = ("build", "build/", "*.node", "*.js")

# Typed fields; everything else round-trips through `extra`.
_TYPED_KEYS = frozenset({"name", "version", "scripts", "publishConfig", "private", "dist", "files"})
# Never forwarded to the registry.
_DROPPED_KEYS = frozenset({"modules"})

USAGE = (
    "pub publish <tarball>\n"
    "pub publish <folder>\n"
    "\n"
    "Publishes '.' if no argument supplied"
)


@dataclass(frozen=True, slots=True)
class DescriptorError:
    """package.json missing, unreadable or malformed."""

    path: Path | None
    message: str


@dataclass(slots=True)
class PackageMetadata:
    """Mutable view of a package descriptor for one publish attempt.

    Attributes:
        name: Package name
        version: Package version
        scripts: Lifecycle scripts keyed by hook name
        publish_config: Overrides applied to the configuration overlay
        private: True if the package must never be published
        dist: Distribution info; prebuild fills ``dist["bin"][target]``
        files: Optional allow-list of published paths
        extra: All remaining descriptor keys, untouched
    """

    name: str
    version: str
    scripts: dict[str, str] = field(default_factory=dict)
    publish_config: dict[str, object] = field(default_factory=dict)
    private: bool = False
    dist: StrDict = field(default_factory=dict)
    files: list[str] | None = None
    extra: StrDict = field(default_factory=dict)

    @property
    def id(self) -> str:
        return f"{self.name}@{self.version}"

    def has_install_script(self) -> bool:
        return any(self.scripts.get(name) for name in INSTALL_SCRIPTS)

    def set_bin_shasum(self, target: str, shasum: str) -> None:
        """Record the checksum of a prebuilt tarball under dist.bin[target]."""
        bins = as_str_dict(self.dist.get("bin"))
        if bins is None:
            bins = {}
            self.dist["bin"] = bins
        entry = as_str_dict(bins.get(target))
        if entry is None:
            entry = {}
            bins[target] = entry
        entry["shasum"] = shasum

    def bin_shasum(self, target: str) -> str | None:
        bins = get_table(self.dist, "bin") or {}
        entry = get_table(bins, target) or {}
        return get_str(entry, "shasum")

    @classmethod
    def from_dict(
        cls, data: StrDict, *, path: Path | None = None
    ) -> Result[PackageMetadata, DescriptorError]:
        name = get_str(data, "name")
        version = get_str(data, "version")
        if name is None:
            return Err(DescriptorError(path, "package.json has no 'name'"))
        if version is None:
            return Err(DescriptorError(path, "package.json has no 'version'"))

        extra = {
            k: v for k, v in data.items() if k not in _TYPED_KEYS and k not in _DROPPED_KEYS
        }
        return Ok(
            cls(
                name=name,
                version=version,
                scripts=get_str_map(data, "scripts"),
                publish_config=dict(get_table(data, "publishConfig") or {}),
                private=data.get("private") is True,
                dist=dict(get_table(data, "dist") or {}),
                files=get_str_list(data, "files"),
                extra=extra,
            )
        )

    def to_dict(self) -> StrDict:
        """Serialize back to descriptor shape (typed fields last-write-wins)."""
        out: StrDict = dict(self.extra)
        out["name"] = self.name
        out["version"] = self.version
        if self.scripts:
            out["scripts"] = dict(self.scripts)
        if self.publish_config:
            out["publishConfig"] = dict(self.publish_config)
        if self.private:
            out["private"] = True
        if self.dist:
            out["dist"] = self.dist
        if self.files is not None:
            out["files"] = list(self.files)
        return out


def read_descriptor(path: Path) -> Result[PackageMetadata, DescriptorError]:
    """Read and parse a package.json file."""
    raw = read_descriptor_dict(path)
    if isinstance(raw, Err):
        return raw
    return PackageMetadata.from_dict(raw.value, path=path)


def read_descriptor_dict(path: Path) -> Result[StrDict, DescriptorError]:
    """Read a package.json file as a plain dict, keeping every key."""
    try:
        data_obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(DescriptorError(path, f"package.json not found: {path}"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(DescriptorError(path, f"cannot read {path}: {e}"))
    except json.JSONDecodeError as e:
        return Err(DescriptorError(path, f"invalid JSON in {path}: {e}"))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(DescriptorError(path, f"{path} must contain a JSON object"))
    return Ok(data)


def rebuild_descriptor(data: StrDict, target: str) -> StrDict:
    """Return the descriptor of a prebuilt package.

    Install-time scripts already ran during the build, so they are removed;
    the build output is added to the ``files`` allow-list.
    """
    out = dict(data)
    scripts = as_str_dict(out.get("scripts"))
    if scripts is not None:
        out["scripts"] = {k: v for k, v in scripts.items() if k not in INSTALL_SCRIPTS}
    out["prebuilt"] = target
    files = get_str_list(out, "files") or []
    out["files"] = [*files, *PREBUILT_FILES]
    return out


@dataclass(frozen=True, slots=True)
class PublishRequest:
    """The single publish argument: a folder, a tarball path or a tarball URL."""

    argument: str

    @property
    def is_url(self) -> bool:
        return self.argument.startswith(("http://", "https://"))

    @classmethod
    def from_args(cls, args: Sequence[str]) -> Result[PublishRequest, int]:
        """Validate argument arity.

        Returns:
            Ok(PublishRequest), or Err(count) with the offending argument count
        """
        if len(args) == 0:
            return Ok(cls("."))
        if len(args) != 1:
            return Err(len(args))
        return Ok(cls(args[0]))


@dataclass(frozen=True, slots=True)
class StagedArtifact:
    """A package expanded into the cache.

    Layout::

        <root>/package/        expanded package (package_dir)
        <root>/package.tgz     primary tarball
        <root>/build/          prebuild output
        <root>/package-<target>.tgz
    """

    package_dir: Path
    metadata: PackageMetadata | None

    @property
    def root(self) -> Path:
        return self.package_dir.parent

    @property
    def tarball(self) -> Path:
        return self.package_dir.with_name(self.package_dir.name + ".tgz")

    @property
    def readme(self) -> Path:
        return self.package_dir / "README.md"


@dataclass(frozen=True, slots=True)
class PrebuiltArtifact:
    """Secondary, platform-specific tarball produced by the prebuild step."""

    target: str
    tarball: Path
    shasum: str
