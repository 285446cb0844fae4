"""Fetching of build inputs.

The source tree is cloned once per run and treated as read-only afterwards;
each packaging branch then pulls the prebuilt artifacts it needs from the
artifact store into its own working directory.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from ship.core.config import InputSpec
from ship.core.result import Err, Ok, Result
from ship.git.repository import Repository, repository_url
from ship.output.console import ConsoleProtocol, Style
from ship.pipeline.errors import FetchError
from ship.pipeline.model import PipelineRequest
from ship.pipeline.store import ArtifactStore


def resolve_source_url(repository: str | None, *, cwd: Path) -> Result[str, FetchError]:
    """Where to clone the source from; ``None`` means the invoking repository."""
    if repository is None:
        top = Repository.toplevel(cwd)
        if isinstance(top, Err):
            return Err(
                FetchError(
                    kind="clone_failed",
                    message="no --repository given and not inside a git repository",
                    hint=str(cwd),
                )
            )
        return Ok(str(top.value))
    return Ok(repository_url(repository, cwd=cwd))


def fetch_source(
    request: PipelineRequest,
    dest: Path,
    *,
    cwd: Path,
    console: ConsoleProtocol,
    env: dict[str, str] | None = None,
) -> Result[Path, FetchError]:
    """Clone the requested repository into ``dest`` at ``request.ref``.

    Any previous content of ``dest`` is discarded.
    """
    url = resolve_source_url(request.repository, cwd=cwd)
    if isinstance(url, Err):
        return url

    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    console.print(f"git clone {url.value} {dest}", Style.DIM)
    repo = Repository.clone(url.value, dest, env=env, no_checkout=True)
    if isinstance(repo, Err):
        return Err(
            FetchError(
                kind="clone_failed",
                message=f"failed to clone {url.value}",
                hint=repo.error.message,
            )
        )

    console.print(f"git checkout --detach {request.ref}", Style.DIM)
    sha = repo.value.checkout_detached(request.ref)
    if isinstance(sha, Err):
        return Err(
            FetchError(
                kind="ref_not_found",
                message=f"ref not found in {url.value}: {request.ref}",
                hint=sha.error.message,
            )
        )

    console.print(f"source at {sha.value[:12]}", Style.DIM)
    return Ok(dest)


def check_inputs(store: ArtifactStore, names: Iterable[str]) -> Result[None, FetchError]:
    """Fail if any named artifact is absent from the store."""
    missing = [n for n in names if not store.has(n)]
    if missing:
        return Err(
            FetchError(
                kind="artifact_missing",
                message=f"missing input artifact{'s' if len(missing) > 1 else ''}: "
                + ", ".join(missing),
                hint=f"store: {store.root}",
            )
        )
    return Ok(None)


def fetch_inputs(
    store: ArtifactStore,
    inputs: Iterable[InputSpec],
    workdir: Path,
) -> Result[list[Path], FetchError]:
    """Copy each input artifact into ``workdir / spec.dest``."""
    fetched: list[Path] = []
    for spec in inputs:
        result = store.get(spec.name, workdir / spec.dest)
        if isinstance(result, Err):
            return result
        fetched.extend(result.value)
    return Ok(fetched)


def remove_matching(root: Path, patterns: Iterable[str]) -> list[Path]:
    """Delete files under ``root`` matching any glob; returns what was removed."""
    removed: list[Path] = []
    for pattern in patterns:
        for p in sorted(root.glob(pattern)):
            if p.is_dir():
                shutil.rmtree(p)
            else:
                p.unlink()
            removed.append(p)
    return removed
