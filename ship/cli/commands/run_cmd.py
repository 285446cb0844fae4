from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.commands._helpers import (
    CONFIG_OPTION,
    WORKSPACE_OPTION,
    display_path,
    require_profile,
    unwrap_or_exit,
)
from ship.cli.context import build_context
from ship.output.console import Style
from ship.output.errors import pipeline_exit_code
from ship.pipeline.coordinator import PipelineContext, run_pipeline
from ship.pipeline.factory import make_packager, make_publisher
from ship.pipeline.model import PipelineRequest, Stage
from ship.platform.http import RealHttpClient


def run(
    profile: str = typer.Argument(..., help="Release profile (built-in: python, flutter)"),
    ref: str = typer.Option(..., "--ref", help="Git ref to release: tag, branch or commit"),
    package_version: str = typer.Option(
        ..., "--package-version", help="Version to stamp, MAJOR.MINOR.BUILD"
    ),
    repository: str | None = typer.Option(
        None,
        "--repository",
        help="Source repository: owner/name, URL or path (default: the current repository)",
    ),
    publish: bool = typer.Option(
        False, "--publish/--no-publish", help="Publish once every target built"
    ),
    channel: str | None = typer.Option(
        None, "--channel", help="Publish channel (default: the profile's default channel)"
    ),
    only: str | None = typer.Option(
        None, "--only", help="Only build targets matching this glob (dry runs only)"
    ),
    jobs: int | None = typer.Option(
        None, "--jobs", "-j", min=1, help="Packaging branches to run at once"
    ),
    config: Path | None = CONFIG_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
) -> None:
    """Build every target of PROFILE and optionally publish the result."""
    ctx = build_context(config_path=config, workspace=workspace)
    prof = require_profile(ctx, profile)
    cwd = Path.cwd()

    packager = unwrap_or_exit(
        make_packager(
            prof,
            store=ctx.store,
            console=ctx.console,
            credentials=ctx.credentials,
            cwd=cwd,
        ),
        ctx,
    )
    publisher = unwrap_or_exit(
        make_publisher(
            prof,
            console=ctx.console,
            credentials=ctx.credentials,
            http=RealHttpClient(),
            cwd=cwd,
            channel=channel,
        ),
        ctx,
    )

    request = PipelineRequest(
        ref=ref,
        package_version=package_version,
        publish=publish,
        repository=repository,
    )
    result = run_pipeline(
        request,
        PipelineContext(
            profile=prof,
            store=ctx.store,
            packager=packager,
            publisher=publisher,
            console=ctx.console,
            work_dir=ctx.work_dir / prof.name,
            output_dir=ctx.output_dir,
            cwd=cwd,
            jobs=jobs or ctx.config.pipeline.jobs,
            only=only,
            git_env=ctx.credentials.git_env(),
        ),
    )

    if result.stage is Stage.FAILED:
        assert result.error is not None
        raise typer.Exit(code=pipeline_exit_code(result.error))

    for p in result.dist_paths:
        ctx.console.print(display_path(p, ctx.root), Style.DIM)
