"""Artifact store commands: seed prebuilt inputs and inspect what is stored."""

from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.commands._helpers import (
    CONFIG_OPTION,
    WORKSPACE_OPTION,
    display_path,
    unwrap_or_exit,
)
from ship.cli.context import build_context
from ship.output.console import Style

store_app = typer.Typer(add_completion=False, no_args_is_help=True)


@store_app.command("put")
def put_cmd(
    name: str = typer.Argument(..., help="Artifact name, e.g. bindings-python"),
    files: list[Path] = typer.Argument(..., help="Files or directories to store"),
    config: Path | None = CONFIG_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
) -> None:
    """Store FILES under NAME. Directories contribute their contents."""
    ctx = build_context(config_path=config, workspace=workspace)
    stored = unwrap_or_exit(ctx.store.put_paths(name, files), ctx)
    ctx.console.success(f"{stored.name}: {len(stored.files)} file(s), digest {stored.digest[:12]}")


@store_app.command("get")
def get_cmd(
    name: str = typer.Argument(..., help="Artifact name"),
    dest: Path = typer.Argument(..., help="Directory to copy the files into"),
    config: Path | None = CONFIG_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
) -> None:
    """Copy the files of artifact NAME into DEST, verifying checksums."""
    ctx = build_context(config_path=config, workspace=workspace)
    paths = unwrap_or_exit(ctx.store.get(name, dest), ctx)
    for p in paths:
        ctx.console.print(str(p), Style.DIM)
    ctx.console.success(f"{name}: {len(paths)} file(s) -> {dest}")


@store_app.command("list")
def list_cmd(
    config: Path | None = CONFIG_OPTION,
    workspace: Path | None = WORKSPACE_OPTION,
) -> None:
    """List stored artifacts."""
    ctx = build_context(config_path=config, workspace=workspace)
    store = ctx.store
    names = store.names()
    if not names:
        ctx.console.info(f"no artifacts in {display_path(store.root, ctx.root)}")
        return

    for name in names:
        stored = unwrap_or_exit(store.read(name), ctx)
        ctx.console.print(f"{name}  {len(stored.files)} file(s)  {stored.digest[:12]}")
