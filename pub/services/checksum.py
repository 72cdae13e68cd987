"""Tarball checksums (SHA-1 hex, the registry ``shasum`` convention)."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pub.core.result import Err, Ok, Result

__all__ = ["ChecksumError", "Checksummer", "shasum"]


@dataclass(frozen=True, slots=True)
class ChecksumError:
    path: Path
    message: str


class Checksummer(Protocol):
    def __call__(self, path: Path) -> Result[str, ChecksumError]: ...


def shasum(path: Path) -> Result[str, ChecksumError]:
    """Return the SHA-1 hex digest of a file.

    A missing file yields Ok("") (checksum unavailable) rather than an error.
    """
    h = hashlib.sha1()
    try:
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                h.update(chunk)
    except FileNotFoundError:
        return Ok("")
    except OSError as e:
        return Err(ChecksumError(path=path, message=str(e)))
    return Ok(h.hexdigest())
