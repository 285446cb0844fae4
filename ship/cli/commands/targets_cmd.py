from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.commands._helpers import CONFIG_OPTION, require_profile, unwrap_or_exit
from ship.cli.context import build_context
from ship.output.console import Style
from ship.pipeline.targets import artifact_name, plan_targets
from ship.pipeline.version import parse_version


def targets(
    profile: str = typer.Argument(..., help="Release profile"),
    only: str | None = typer.Option(None, "--only", help="Only list targets matching this glob"),
    package_version: str | None = typer.Option(
        None, "--package-version", help="Also show artifact names for this version"
    ),
    config: Path | None = CONFIG_OPTION,
) -> None:
    """List the build targets PROFILE expands to."""
    ctx = build_context(config_path=config)
    prof = require_profile(ctx, profile)
    planned = unwrap_or_exit(plan_targets(prof, only=only), ctx)
    version = (
        unwrap_or_exit(parse_version(package_version), ctx) if package_version is not None else None
    )

    ctx.console.header(f"{prof.name}: {len(planned)} target(s)")
    for t in planned:
        line = f"{t.name}  {t.platform_tag}  {t.runtime_version}"
        if version is not None:
            line += f"  -> {unwrap_or_exit(artifact_name(prof, t, version), ctx)}"
        ctx.console.print(line)
        for spec in t.inputs:
            ctx.console.print(f"    {spec.name} -> {spec.dest or '.'}", Style.DIM)
