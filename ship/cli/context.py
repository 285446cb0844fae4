from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from ship.core.config import Config, load_config, load_config_or_default
from ship.core.errors import ExitCode
from ship.core.result import Err
from ship.output.console import ConsoleProtocol, RichConsole
from ship.pipeline.credentials import Credentials
from ship.pipeline.store import ArtifactStore

CONFIG_FILENAME = "ship.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: Config
    console: ConsoleProtocol
    credentials: Credentials

    @property
    def store(self) -> ArtifactStore:
        return ArtifactStore(self.root / self.config.pipeline.store_dir)

    @property
    def work_dir(self) -> Path:
        return self.root / self.config.pipeline.work_dir

    @property
    def output_dir(self) -> Path:
        return self.root / self.config.pipeline.output_dir


def build_context(*, config_path: Path | None = None, workspace: Path | None = None) -> CLIContext:
    try:
        root = (workspace or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --workspace: {e}", err=True)
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    if not root.is_dir():
        typer.echo(f"error: workspace '{root}' is not a directory", err=True)
        raise typer.Exit(code=int(ExitCode.ENV_ERROR))

    # An explicit --config must exist; the default ship.toml is optional.
    if config_path is not None:
        config_result = load_config(config_path)
    else:
        config_result = load_config_or_default(root / CONFIG_FILENAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.pretty()}", err=True)
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    return CLIContext(
        root=root,
        config=config_result.value,
        console=RichConsole(),
        credentials=Credentials.from_env(os.environ),
    )
