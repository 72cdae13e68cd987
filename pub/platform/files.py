"""Filesystem helpers for the cache and build directories."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["reset_dir", "write_json_atomic"]


def write_json_atomic(path: Path, data: object) -> None:
    """Replace path with a package.json-style document (2-space indent).

    Readers never see a half-written file: the JSON goes to a temporary
    sibling first and is moved over path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            json.dump(data, handle, indent=2)
            handle.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def reset_dir(path: Path) -> Path:
    """Empty path, creating it if needed. Raises OSError if old content cannot be removed."""
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)
    path.mkdir(parents=True, exist_ok=True)
    return path
