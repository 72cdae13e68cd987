"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from pub.output.errors import print_publish_error, publish_error_exit_code

if TYPE_CHECKING:
    from pub.output.console import ConsoleProtocol
    from pub.services.publish_errors import PublishError


def exit_on_publish_error(error: PublishError, console: ConsoleProtocol) -> NoReturn:
    """Print a publish error and exit with its mapped code."""
    print_publish_error(error, console)
    raise typer.Exit(code=publish_error_exit_code(error))
