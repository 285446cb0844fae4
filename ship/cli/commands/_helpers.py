"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer

from ship.core.config import ConfigError, Profile
from ship.core.errors import ExitCode
from ship.core.result import Err, Result
from ship.output.console import Style
from ship.output.errors import pipeline_exit_code, print_pipeline_error
from ship.pipeline.errors import PipelineError

if TYPE_CHECKING:
    from ship.cli.context import CLIContext


CONFIG_OPTION = typer.Option(
    None, "--config", help="Config file (default: ship.toml in the workspace, if present)"
)
WORKSPACE_OPTION = typer.Option(
    None, "--workspace", help="Directory holding the store, work and output dirs (default: cwd)"
)


def unwrap_or_exit[T](
    result: Result[T, PipelineError] | Result[T, ConfigError],
    ctx: CLIContext,
) -> T:
    """Return the value of an Ok result; print the error and exit otherwise."""
    if isinstance(result, Err):
        print_pipeline_error(result.error, ctx.console)
        raise typer.Exit(code=pipeline_exit_code(result.error))
    return result.value


def require_profile(ctx: CLIContext, name: str) -> Profile:
    profile = ctx.config.profile(name)
    if profile is None:
        ctx.console.error(f"unknown profile: {name}")
        ctx.console.print(f"available: {', '.join(sorted(ctx.config.profiles))}", Style.DIM)
        raise typer.Exit(code=int(ExitCode.USER_ERROR))
    return profile


def display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)
