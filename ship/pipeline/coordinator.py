"""Pipeline coordinator.

Sequences one release run through explicit stages:

    FETCHING -> STAMPING -> PACKAGING -> AGGREGATING -> PUBLISHING -> DONE
                    (any error) -> FAILED

PACKAGING fans out one branch per build target on a thread pool. The
coordinator waits for every branch to finish; if any failed, all outputs are
discarded and the run fails without reaching PUBLISHING.
"""

from __future__ import annotations

import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from ship.core.config import DEFAULT_JOBS, Profile
from ship.core.result import Err, Ok, Result
from ship.output.console import ConsoleProtocol, Style
from ship.pipeline.errors import (
    BranchFailures,
    PackageBuildError,
    PipelineError,
    RequestError,
)
from ship.pipeline.fetcher import check_inputs, fetch_source
from ship.pipeline.fsm import FINISH, StepOutcome, advance, run_state_machine
from ship.pipeline.model import (
    Artifact,
    BranchResult,
    BuildTarget,
    PipelineRequest,
    PipelineRun,
    Stage,
)
from ship.pipeline.packager import Packager
from ship.pipeline.publisher import Publisher, publish_artifacts
from ship.pipeline.stamper import stamp_version, style_for
from ship.pipeline.store import ArtifactStore
from ship.pipeline.targets import artifact_name, plan_targets, required_inputs
from ship.pipeline.version import PackageVersion, parse_version

__all__ = ["PipelineContext", "run_pipeline"]

StepResult = Result[StepOutcome[PipelineRun], PipelineError]


@dataclass(frozen=True, slots=True)
class PipelineContext:
    """Everything a run needs, passed explicitly to every stage.

    Attributes:
        profile: What to build and where to publish it.
        store: Source of prebuilt input artifacts.
        work_dir: Scratch space; the run owns it and may wipe it.
        output_dir: Root for packaged outputs, kept per profile and version.
        cwd: Directory the pipeline was invoked from (default source repository).
    """

    profile: Profile
    store: ArtifactStore
    packager: Packager
    publisher: Publisher
    console: ConsoleProtocol
    work_dir: Path
    output_dir: Path
    cwd: Path
    jobs: int = DEFAULT_JOBS
    only: str | None = None
    git_env: dict[str, str] | None = None

    def output_store(self, version: PackageVersion) -> ArtifactStore:
        return ArtifactStore(self.output_dir / self.profile.name / str(version))


def run_pipeline(request: PipelineRequest, ctx: PipelineContext) -> PipelineRun:
    """Run one release; the returned run is always in DONE or FAILED."""
    version_result = parse_version(request.package_version)
    if isinstance(version_result, Err):
        return _failed(PipelineRun(request=request), version_result.error, ctx.console)
    version = version_result.value

    handlers = {
        Stage.FETCHING: lambda run: _fetching(run, ctx),
        Stage.STAMPING: lambda run: _stamping(run, ctx, version),
        Stage.PACKAGING: lambda run: _packaging(run, ctx, version),
        Stage.AGGREGATING: lambda run: _aggregating(run, ctx, version),
        Stage.PUBLISHING: lambda run: _publishing(run, ctx, version),
        Stage.DONE: lambda run: Ok(FINISH),
        Stage.FAILED: lambda run: Ok(FINISH),
    }

    last = PipelineRun(request=request)

    def on_advance(run: PipelineRun) -> None:
        nonlocal last
        last = run
        if not run.stage.terminal:
            ctx.console.header(f"{ctx.profile.name} {version}: {run.stage}")

    ctx.console.header(f"{ctx.profile.name} {version}: {Stage.FETCHING}")
    result = run_state_machine(
        initial_state=last,
        get_step=lambda run: run.stage,
        handlers=handlers,
        unknown_step=lambda stage: RequestError(message=f"no handler for stage {stage}"),
        on_advance=on_advance,
    )
    if isinstance(result, Err):
        return _failed(last, result.error, ctx.console)

    done = result.value
    if done.stage is Stage.FAILED:
        assert done.error is not None and done.failed_at is not None
        ctx.console.error(f"{done.failed_at} failed: {done.error.pretty()}")
        return done

    outcome = done.outcome
    if outcome is not None and outcome.remote_location is not None:
        ctx.console.success(f"published {outcome.remote_location}")
    else:
        ctx.console.success(f"dry run: {len(done.artifacts)} artifact(s), nothing published")
    return done


def _mark_failed(run: PipelineRun, error: PipelineError) -> PipelineRun:
    # A failed run never exposes partial outputs.
    return replace(run, stage=Stage.FAILED, failed_at=run.stage, error=error, artifacts=())


def _failed(run: PipelineRun, error: PipelineError, console: ConsoleProtocol) -> PipelineRun:
    console.error(f"{run.stage} failed: {error.pretty()}")
    return _mark_failed(run, error)


def _fetching(run: PipelineRun, ctx: PipelineContext) -> StepResult:
    if ctx.only is not None and run.request.publish:
        return Err(
            RequestError(
                message=f"refusing to publish a subset of targets (--only {ctx.only})",
                hint="--only is for dry runs; a release publishes every target",
            )
        )

    targets = plan_targets(ctx.profile, only=ctx.only)
    if isinstance(targets, Err):
        return targets

    inputs = check_inputs(ctx.store, required_inputs(targets.value))
    if isinstance(inputs, Err):
        return inputs

    source = fetch_source(
        run.request,
        ctx.work_dir / "source",
        cwd=ctx.cwd,
        console=ctx.console,
        env=ctx.git_env,
    )
    if isinstance(source, Err):
        return source

    return Ok(
        advance(
            replace(run, stage=Stage.STAMPING, targets=targets.value, source_root=source.value)
        )
    )


def _stamping(run: PipelineRun, ctx: PipelineContext, version: PackageVersion) -> StepResult:
    assert run.source_root is not None
    metadata = run.source_root / ctx.profile.metadata
    stamped = stamp_version(metadata, version, style_for(ctx.profile.version_style))
    if isinstance(stamped, Err):
        return stamped
    ctx.console.print(f"{ctx.profile.metadata}: version {version}", Style.DIM)
    return Ok(advance(replace(run, stage=Stage.PACKAGING)))


def _run_branch(
    ctx: PipelineContext,
    *,
    source_root: Path,
    target: BuildTarget,
    version: PackageVersion,
    name: str,
) -> BranchResult:
    try:
        result = ctx.packager.package(
            source_root=source_root,
            target=target,
            version=version,
            artifact_name=name,
            workdir=ctx.work_dir / "targets" / target.name,
        )
    except OSError as e:
        result = Err(
            PackageBuildError(
                target=target.name,
                kind="layout_failed",
                message=f"filesystem error: {e}",
            )
        )
    except Exception as e:
        result = Err(
            PackageBuildError(
                target=target.name,
                kind="tool_failed",
                message=f"packaging crashed: {type(e).__name__}: {e}",
            )
        )

    if isinstance(result, Err):
        ctx.console.error(result.error.pretty())
        return BranchResult(target=target, error=result.error)

    ctx.console.success(f"[{target.name}] {result.value.filename}")
    return BranchResult(target=target, artifact=result.value)


def _packaging(run: PipelineRun, ctx: PipelineContext, version: PackageVersion) -> StepResult:
    assert run.source_root is not None
    source_root = run.source_root

    names: dict[str, str] = {}
    for target in run.targets:
        name = artifact_name(ctx.profile, target, version)
        if isinstance(name, Err):
            return name
        names[target.name] = name.value

    workers = max(1, min(ctx.jobs, len(run.targets)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ship-branch") as pool:
        futures = [
            pool.submit(
                _run_branch,
                ctx,
                source_root=source_root,
                target=target,
                version=version,
                name=names[target.name],
            )
            for target in run.targets
        ]
        # Leaving the block waits for every branch, failed or not.
    branches = tuple(f.result() for f in futures)

    run = replace(run, branches=branches)
    failures = tuple(b.error for b in run.failed_branches if b.error is not None)
    if failures:
        return Ok(advance(_mark_failed(run, BranchFailures(errors=failures))))

    artifacts = tuple(b.artifact for b in branches if b.artifact is not None)
    return Ok(advance(replace(run, stage=Stage.AGGREGATING, artifacts=artifacts)))


def _aggregating(run: PipelineRun, ctx: PipelineContext, version: PackageVersion) -> StepResult:
    done = {b.target for b in run.branches if b.ok}
    if len(run.artifacts) != len(run.targets) or any(
        a.origin_target not in done for a in run.artifacts
    ):
        return Err(RequestError(message="artifact set does not match the completed targets"))

    seen: dict[str, Artifact] = {}
    for a in run.artifacts:
        if a.name in seen:
            return Err(
                RequestError(
                    message=f"targets {seen[a.name].origin_target.name} and "
                    f"{a.origin_target.name} produce the same artifact name {a.name}",
                    hint="artifact_name must distinguish every target",
                )
            )
        seen[a.name] = a

    out = ctx.output_store(version)
    # The run owns this version's output namespace.
    if out.root.exists():
        shutil.rmtree(out.root)

    paths: list[Path] = []
    for a in run.artifacts:
        stored = out.put_artifact(a)
        if isinstance(stored, Err):
            return stored
        paths.append(out.path_for(a.name) / a.filename)
        ctx.console.print(f"{a.name}: {a.filename} ({a.size} bytes, sha256 {a.sha256[:12]})")

    return Ok(advance(replace(run, stage=Stage.PUBLISHING, dist_paths=tuple(paths))))


def _publishing(run: PipelineRun, ctx: PipelineContext, version: PackageVersion) -> StepResult:
    if not run.request.publish:
        ctx.console.info("publish disabled; skipping upload")

    outcome = publish_artifacts(
        ctx.publisher,
        run.artifacts,
        publish=run.request.publish,
        version=version,
        workdir=ctx.work_dir / "publish",
    )
    if outcome.error is not None:
        return Ok(advance(replace(_mark_failed(run, outcome.error), outcome=outcome)))

    return Ok(advance(replace(run, stage=Stage.DONE, outcome=outcome)))
