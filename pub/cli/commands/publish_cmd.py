from __future__ import annotations

from pathlib import Path

import typer

from pub.cli.commands._helpers import exit_on_publish_error
from pub.cli.context import CLIOverrides, build_context
from pub.core.result import Err
from pub.services.publish import publish


def publish_cmd(
    args: list[str] | None = typer.Argument(
        None, help="Folder, tarball or tarball URL (default: current folder)"
    ),
    force: bool = typer.Option(
        False, "--force", help="Unpublish a conflicting version and publish again"
    ),
    bindist: str | None = typer.Option(
        None, "--bindist", help="Binary distribution target name (e.g. linux-x64)"
    ),
    bin_publish: bool = typer.Option(
        False, "--bin-publish", help="Pre-build packages with install scripts for --bindist"
    ),
    registry: str | None = typer.Option(None, "--registry", help="Registry base URL"),
    tag: str | None = typer.Option(None, "--tag", help="dist-tag for the published version"),
    cache: Path | None = typer.Option(None, "--cache", help="Cache directory"),
    config_path: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show diagnostic output"),
) -> None:
    """Publish a package folder, tarball or tarball URL.

    Publishes '.' if no argument supplied.
    """
    ctx = build_context(
        config_path=config_path,
        overrides=CLIOverrides(
            force=force,
            bindist=bindist,
            bin_publish=bin_publish,
            registry=registry,
            tag=tag,
            cache=cache,
        ),
        verbose=verbose,
    )

    result = publish(args or [], config=ctx.config, deps=ctx.deps)
    if isinstance(result, Err):
        exit_on_publish_error(result.error, ctx.console)
