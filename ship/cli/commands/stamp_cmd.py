from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.commands._helpers import unwrap_or_exit
from ship.cli.context import build_context
from ship.core.errors import ExitCode
from ship.pipeline.stamper import VERSION_STYLES, read_version, stamp_version
from ship.pipeline.version import parse_version


def stamp(
    file: Path = typer.Argument(..., help="Metadata file (setup.py, pubspec.yaml)"),
    package_version: str = typer.Option(..., "--package-version", help="Version to write"),
    style: str = typer.Option(..., "--style", help="Version field style: setup-py|pubspec"),
) -> None:
    """Rewrite the version field of FILE in place."""
    ctx = build_context()
    version_style = next((s for s in VERSION_STYLES.values() if s.name == style), None)
    if version_style is None:
        ctx.console.error(f"unknown style: {style} (expected {'|'.join(VERSION_STYLES)})")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    version = unwrap_or_exit(parse_version(package_version), ctx)
    old = unwrap_or_exit(read_version(file, version_style), ctx)
    unwrap_or_exit(stamp_version(file, version, version_style), ctx)
    ctx.console.success(f"{file}: {old} -> {version}")
