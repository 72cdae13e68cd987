"""Typed configuration loading and access.

The base configuration comes from a config.toml file. A package may override
part of it through the ``publishConfig`` field of its descriptor; those
overrides are collected in a ConfigOverlay that lives for one publish
invocation only.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    coerce_bool,
    get_bool,
    get_float,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigOverlay",
    "DEFAULT_REGISTRY",
    "default_config_path",
    "load_config",
]

DEFAULT_REGISTRY = "https://registry.npmjs.org/"
DEFAULT_TAG = "latest"
DEFAULT_TIMEOUT = 60.0
DEFAULT_CACHE_DIR = "~/.cache/pub"
DEFAULT_INSTALL_COMMAND = ("npm", "install", "--prefix", "{prefix}", "{tarball}")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Effective publish configuration."""

    registry: str = DEFAULT_REGISTRY
    token: str | None = None
    tag: str = DEFAULT_TAG
    timeout: float = DEFAULT_TIMEOUT
    force: bool = False
    bindist: str | None = None
    bin_publish: bool = False
    require_bin_shasum: bool = False
    cache_dir: str = DEFAULT_CACHE_DIR
    install_command: tuple[str, ...] = DEFAULT_INSTALL_COMMAND

    @property
    def cache_path(self) -> Path:
        return Path(os.path.expandvars(self.cache_dir)).expanduser()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        registry: StrDict = get_table(data, "registry") or {}
        publish: StrDict = get_table(data, "publish") or {}
        cache: StrDict = get_table(data, "cache") or {}
        prebuild: StrDict = get_table(data, "prebuild") or {}

        install_command = get_str_list(prebuild, "install_command")
        timeout = get_float(registry, "timeout")

        return cls(
            registry=get_str(registry, "url") or DEFAULT_REGISTRY,
            token=get_str(registry, "token"),
            tag=get_str(registry, "tag") or DEFAULT_TAG,
            timeout=timeout if timeout and timeout > 0 else DEFAULT_TIMEOUT,
            force=bool(get_bool(publish, "force")),
            bindist=get_str(publish, "bindist"),
            bin_publish=bool(get_bool(publish, "bin_publish")),
            require_bin_shasum=bool(get_bool(publish, "require_bin_shasum")),
            cache_dir=get_str(cache, "dir") or DEFAULT_CACHE_DIR,
            install_command=tuple(install_command) if install_command else DEFAULT_INSTALL_COMMAND,
        )


# publishConfig keys (npm spelling) -> Config attribute
_OVERLAY_KEYS: dict[str, str] = {
    "registry": "registry",
    "tag": "tag",
    "force": "force",
    "bindist": "bindist",
    "bin-publish": "bin_publish",
    "bin_publish": "bin_publish",
    "require-bin-shasum": "require_bin_shasum",
    "require_bin_shasum": "require_bin_shasum",
}

_BOOL_ATTRS = frozenset({"force", "bin_publish", "require_bin_shasum"})


@dataclass(slots=True)
class ConfigOverlay:
    """Per-invocation overrides layered on top of a base Config.

    Keys are stored as given (last write wins). Keys that map onto a Config
    attribute change ``effective``; any other key is kept but ignored.
    """

    base: Config
    overrides: dict[str, object] = field(default_factory=dict)

    def set(self, key: str, value: object) -> None:
        self.overrides[key] = value

    @property
    def effective(self) -> Config:
        changes: dict[str, object] = {}
        for key, value in self.overrides.items():
            attr = _OVERLAY_KEYS.get(key)
            if attr is None:
                continue
            if attr in _BOOL_ATTRS:
                flag = coerce_bool(value)
                if flag is not None:
                    changes[attr] = flag
            elif value is None or value == "":
                changes[attr] = None if attr == "bindist" else getattr(self.base, attr)
            else:
                changes[attr] = str(value)
        return dataclasses.replace(self.base, **changes)  # type: ignore[arg-type]


def default_config_path() -> Path:
    env = os.environ.get("PUB_CONFIG")
    if env:
        return Path(env).expanduser()
    return Path("~/.config/pub/config.toml").expanduser()


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to config.toml file

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

