from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path

import typer

from pub.core.config import Config, default_config_path, load_config
from pub.core.errors import ErrorCode
from pub.core.result import Err
from pub.output.console import ConsoleProtocol, RichConsole
from pub.registry.client import HttpRegistryClient
from pub.services.install import CommandInstallRunner
from pub.services.lifecycle import ScriptLifecycleRunner
from pub.services.publish import PublishDeps
from pub.services.stager import CacheStager


@dataclass(frozen=True, slots=True)
class CLIOverrides:
    """Flag values that win over config.toml; None/False means "not given"."""

    force: bool = False
    bindist: str | None = None
    bin_publish: bool = False
    registry: str | None = None
    tag: str | None = None
    cache: Path | None = None

    def apply(self, config: Config) -> Config:
        changes: dict[str, object] = {}
        if self.force:
            changes["force"] = True
        if self.bindist:
            changes["bindist"] = self.bindist
        if self.bin_publish:
            changes["bin_publish"] = True
        if self.registry:
            changes["registry"] = self.registry
        if self.tag:
            changes["tag"] = self.tag
        if self.cache is not None:
            changes["cache_dir"] = str(self.cache)
        return dataclasses.replace(config, **changes)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    deps: PublishDeps


def resolve_config(config_path: Path | None, console: ConsoleProtocol) -> Config:
    """Load config.toml; an explicit --config must exist, the default may not."""
    path = config_path or default_config_path()
    if config_path is None and not path.exists():
        return Config()

    result = load_config(path)
    if isinstance(result, Err):
        console.error(result.error.message)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    console.debug(f"config: {path}")
    return result.value


def build_context(
    *,
    config_path: Path | None = None,
    overrides: CLIOverrides | None = None,
    verbose: bool = False,
) -> CLIContext:
    console = RichConsole(verbose=verbose)
    config = (overrides or CLIOverrides()).apply(resolve_config(config_path, console))

    deps = PublishDeps(
        stager=CacheStager(config.cache_path, console, timeout=config.timeout),
        lifecycle=ScriptLifecycleRunner(console),
        registry=HttpRegistryClient(token=config.token, timeout=config.timeout),
        installer=CommandInstallRunner(config.install_command, console),
        console=console,
    )
    return CLIContext(config=config, console=console, deps=deps)
