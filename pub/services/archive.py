"""Package tarballs.

Tarballs hold every entry under a top-level ``package/`` directory. Packing
honours the descriptor's ``files`` allow-list; unpacking strips the top-level
directory and refuses entries that would land outside the destination.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tarfile
from collections.abc import Mapping
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Protocol

from pub.core.result import Err, Ok, Result
from pub.core.structured import get_str_list
from pub.platform.files import reset_dir

__all__ = ["ArchiveError", "Packer", "Unpacker", "collect_files", "pack", "unpack"]

_SKIPPED_DIRS = frozenset({".git", "node_modules"})
_PREFIX = "package"


@dataclass(frozen=True, slots=True)
class ArchiveError:
    path: Path
    message: str


class Packer(Protocol):
    def __call__(
        self, dest: Path, source: Path, descriptor: Mapping[str, object], *, gzip: bool = True
    ) -> Result[Path, ArchiveError]: ...


class Unpacker(Protocol):
    def __call__(self, tarball: Path, dest: Path) -> Result[Path, ArchiveError]: ...


def _always_included(rel: PurePosixPath) -> bool:
    if len(rel.parts) != 1:
        return False
    name = rel.name.lower()
    return name == "package.json" or name.startswith("readme")


def _allowed(rel: PurePosixPath, patterns: list[str]) -> bool:
    if _always_included(rel):
        return True
    prefixes = ["/".join(rel.parts[: i + 1]) for i in range(len(rel.parts))]
    for pattern in patterns:
        pat = pattern.strip().removeprefix("./").rstrip("/")
        if not pat:
            continue
        if any(fnmatch(prefix, pat) for prefix in prefixes):
            return True
        # Bare globs ("*.node") match at any depth.
        if "/" not in pat and fnmatch(rel.name, pat):
            return True
    return False


def collect_files(source: Path, allow: list[str] | None = None) -> list[tuple[Path, str]]:
    """List (path, archive name) pairs for a package directory."""
    out: list[tuple[Path, str]] = []
    for p in sorted(source.rglob("*")):
        rel = PurePosixPath(p.relative_to(source).as_posix())
        if any(part in _SKIPPED_DIRS for part in rel.parts):
            continue
        if p.is_dir() or not (p.is_file() or p.is_symlink()):
            continue
        if allow is not None and not _allowed(rel, allow):
            continue
        out.append((p, f"{_PREFIX}/{rel}"))
    return out


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def pack(
    dest: Path, source: Path, descriptor: Mapping[str, object], *, gzip: bool = True
) -> Result[Path, ArchiveError]:
    """Pack a package directory into dest.

    Args:
        dest: Tarball to create (parent directories are created)
        source: Package directory
        descriptor: Parsed package.json; only ``files`` is consulted
        gzip: Compress the archive

    Returns:
        Ok(dest), or Err(ArchiveError)
    """
    if not source.is_dir():
        return Err(ArchiveError(path=source, message=f"not a directory: {source}"))

    files = collect_files(source, get_str_list(descriptor, "files"))
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(dest, "w:gz" if gzip else "w") as tar:
            for path, arcname in files:
                tar.add(path, arcname=arcname, recursive=False, filter=_normalize)
    except (tarfile.TarError, OSError) as e:
        return Err(ArchiveError(path=dest, message=f"cannot pack {source}: {e}"))
    return Ok(dest)


def _strip_first(name: str) -> PurePosixPath | None:
    parts = PurePosixPath(name).parts[1:]
    if not parts or ".." in parts:
        return None
    return PurePosixPath(*parts)


def unpack(tarball: Path, dest: Path) -> Result[Path, ArchiveError]:
    """Extract a package tarball into dest, replacing its contents."""
    try:
        reset_dir(dest)
        dest_root = dest.resolve()
        with tarfile.open(tarball, "r:*") as tar:
            for member in tar.getmembers():
                # Regular files only; directories are implied
                if not member.isreg():
                    continue
                rel = _strip_first(member.name)
                if rel is None:
                    continue
                target = dest / rel
                if not target.resolve().is_relative_to(dest_root):
                    continue
                src = tar.extractfile(member)
                if src is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                mode = member.mode & 0o777
                if mode:
                    with contextlib.suppress(OSError):
                        os.chmod(target, mode)
    except tarfile.TarError as e:
        return Err(ArchiveError(path=tarball, message=f"Tar extraction failed: {e}"))
    except OSError as e:
        return Err(ArchiveError(path=tarball, message=f"IO error: {e}"))
    return Ok(dest)
