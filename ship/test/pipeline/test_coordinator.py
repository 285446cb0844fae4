"""Tests for pipeline/coordinator.py with fake packagers and publishers."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path

import pytest

from ship.core.config import InputSpec, MatrixEntry, Profile
from ship.core.defaults import python_profile
from ship.core.result import Err, Ok, Result
from ship.output.console import MockConsole
from ship.pipeline.coordinator import PipelineContext, run_pipeline
from ship.pipeline.errors import (
    BranchFailures,
    FetchError,
    MetadataFormatError,
    PackageBuildError,
    PublishError,
    RequestError,
)
from ship.pipeline.model import Artifact, BuildTarget, PipelineRequest, PublishOutcome, Stage
from ship.pipeline.packager import BranchError
from ship.pipeline.store import ArtifactStore
from ship.pipeline.version import PackageVersion

SETUP_PY = (
    'from setuptools import setup\n\nsetup(\n    name="breez_sdk",\n    version="0.0.1",\n)\n'
)
METADATA = "libs/sdk-bindings/bindings-python/setup.py"
REMOTE = "https://pypi.org/project/breez-sdk/1.2.3/"


def _profile(inputs: tuple[InputSpec, ...] = ()) -> Profile:
    return replace(
        python_profile(),
        matrix=(
            MatrixEntry(
                os="linux",
                platform_tag="manylinux_2_31_{arch}",
                archs=("x86_64",),
                runtimes=("3.10",),
                inputs=inputs,
            ),
            MatrixEntry(
                os="macos",
                platform_tag="macosx_11_0_universal2",
                archs=("universal2",),
                runtimes=("3.10",),
            ),
        ),
    )


class FakePackager:
    def __init__(
        self,
        *,
        fail: frozenset[str] = frozenset(),
        before: Callable[[], None] | None = None,
    ) -> None:
        self.fail = fail
        self.before = before
        self.calls: list[str] = []
        self.seen_metadata: list[str] = []
        self._lock = threading.Lock()

    def package(
        self,
        *,
        source_root: Path,
        target: BuildTarget,
        version: PackageVersion,
        artifact_name: str,
        workdir: Path,
    ) -> Result[Artifact, BranchError]:
        with self._lock:
            self.calls.append(target.name)
            self.seen_metadata.append((source_root / METADATA).read_text(encoding="utf-8"))
        if self.before is not None:
            self.before()
        if target.name in self.fail:
            return Err(PackageBuildError(target=target.name, kind="tool_failed", message="boom"))
        workdir.mkdir(parents=True, exist_ok=True)
        return Ok(
            Artifact(
                name=artifact_name,
                filename=f"breez_sdk-{version}-{target.platform_tag}.whl",
                payload=f"{target.name}:{version}".encode(),
                origin_target=target,
            )
        )


class FakePublisher:
    def __init__(self, outcome: PublishOutcome | None = None) -> None:
        self.outcome = outcome or PublishOutcome.published(REMOTE)
        self.calls: list[tuple[str, ...]] = []

    def publish(
        self, artifacts: Sequence[Artifact], *, version: PackageVersion, workdir: Path
    ) -> PublishOutcome:
        self.calls.append(tuple(a.name for a in artifacts))
        return self.outcome


@pytest.fixture
def source(tmp_path: Path, make_repo: Callable[..., Path], run_git: Callable[..., str]) -> Path:
    src = make_repo(tmp_path / "src", {METADATA: SETUP_PY})
    run_git(src, "tag", "v1.2.3")
    return src


def _ctx(
    tmp_path: Path,
    source: Path,
    *,
    packager: FakePackager | None = None,
    publisher: FakePublisher | None = None,
    profile: Profile | None = None,
    jobs: int = 4,
    only: str | None = None,
) -> PipelineContext:
    return PipelineContext(
        profile=profile or _profile(),
        store=ArtifactStore(tmp_path / "store"),
        packager=packager or FakePackager(),
        publisher=publisher or FakePublisher(),
        console=MockConsole(),
        work_dir=tmp_path / "work",
        output_dir=tmp_path / "dist",
        cwd=source,
        jobs=jobs,
        only=only,
    )


def _request(
    *, publish: bool = False, version: str = "1.2.3", ref: str = "v1.2.3"
) -> PipelineRequest:
    return PipelineRequest(ref=ref, package_version=version, publish=publish)


class TestSuccess:
    def test_dry_run_two_targets(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        publisher = FakePublisher()
        ctx = _ctx(tmp_path, source, packager=packager, publisher=publisher)

        run = run_pipeline(_request(), ctx)

        assert run.stage is Stage.DONE
        assert run.outcome == PublishOutcome(succeeded=True, remote_location=None)
        assert sorted(a.name for a in run.artifacts) == [
            "python-wheel-3.10-macosx_11_0_universal2",
            "python-wheel-3.10-manylinux_2_31_x86_64",
        ]
        assert sorted(a.origin_target.name for a in run.artifacts) == [
            "linux-x86_64-py3.10",
            "macos-universal2-py3.10",
        ]
        assert publisher.calls == []

    def test_branches_see_stamped_metadata(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        run_pipeline(_request(), _ctx(tmp_path, source, packager=packager))
        expected = SETUP_PY.replace('version="0.0.1"', 'version="1.2.3"')
        assert packager.seen_metadata == [expected, expected]

    def test_outputs_written_per_version(self, tmp_path: Path, source: Path) -> None:
        run = run_pipeline(_request(), _ctx(tmp_path, source))
        out = ArtifactStore(tmp_path / "dist" / "python" / "1.2.3")
        assert out.names() == sorted(a.name for a in run.artifacts)
        assert all(p.is_file() for p in run.dist_paths)
        assert len(run.dist_paths) == 2

    def test_publish(self, tmp_path: Path, source: Path) -> None:
        publisher = FakePublisher()
        run = run_pipeline(_request(publish=True), _ctx(tmp_path, source, publisher=publisher))
        assert run.stage is Stage.DONE
        assert run.outcome == PublishOutcome(succeeded=True, remote_location=REMOTE)
        assert len(publisher.calls) == 1
        assert len(publisher.calls[0]) == 2

    def test_dry_run_twice_is_identical(self, tmp_path: Path, source: Path) -> None:
        first = run_pipeline(_request(), _ctx(tmp_path, source))
        second = run_pipeline(_request(), _ctx(tmp_path, source))
        assert second.stage is Stage.DONE
        assert sorted(a.sha256 for a in first.artifacts) == sorted(
            a.sha256 for a in second.artifacts
        )

    def test_branches_run_in_parallel(self, tmp_path: Path, source: Path) -> None:
        barrier = threading.Barrier(2, timeout=10)
        packager = FakePackager(before=barrier.wait)
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager, jobs=2))
        assert run.stage is Stage.DONE

    def test_stage_headers(self, tmp_path: Path, source: Path) -> None:
        ctx = _ctx(tmp_path, source)
        run_pipeline(_request(), ctx)
        console = ctx.console
        assert isinstance(console, MockConsole)
        headers = [o.message for o in console.outputs if o.style.name == "HEADER"]
        assert headers == [
            "python 1.2.3: fetching",
            "python 1.2.3: stamping",
            "python 1.2.3: packaging",
            "python 1.2.3: aggregating",
            "python 1.2.3: publishing",
        ]


class TestFailures:
    def test_one_failed_branch_blocks_publish(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager(fail=frozenset({"linux-x86_64-py3.10"}))
        publisher = FakePublisher()
        run = run_pipeline(
            _request(publish=True), _ctx(tmp_path, source, packager=packager, publisher=publisher)
        )

        assert run.stage is Stage.FAILED
        assert run.failed_at is Stage.PACKAGING
        assert isinstance(run.error, BranchFailures)
        assert [e.pretty() for e in run.error.errors] == ["[linux-x86_64-py3.10] boom"]
        # Every branch ran to completion; the successful one's output is discarded.
        assert sorted(packager.calls) == ["linux-x86_64-py3.10", "macos-universal2-py3.10"]
        assert sum(b.ok for b in run.branches) == 1
        assert run.artifacts == ()
        assert publisher.calls == []
        assert not (tmp_path / "dist").exists()

    def test_every_failure_reported(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager(fail=frozenset({"linux-x86_64-py3.10", "macos-universal2-py3.10"}))
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager))
        assert isinstance(run.error, BranchFailures)
        assert len(run.error.errors) == 2

    def test_invalid_version(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        run = run_pipeline(_request(version="v1.2.3"), _ctx(tmp_path, source, packager=packager))
        assert run.stage is Stage.FAILED
        assert run.failed_at is Stage.FETCHING
        assert isinstance(run.error, RequestError)
        assert packager.calls == []

    def test_missing_ref(self, tmp_path: Path, source: Path) -> None:
        run = run_pipeline(_request(ref="v9.9.9"), _ctx(tmp_path, source))
        assert run.failed_at is Stage.FETCHING
        assert isinstance(run.error, FetchError)
        assert run.error.kind == "ref_not_found"

    def test_missing_input_artifact(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        profile = _profile(inputs=(InputSpec(name="sdk-bindings-{arch}", dest="src"),))
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager, profile=profile))
        assert run.failed_at is Stage.FETCHING
        assert isinstance(run.error, FetchError)
        assert run.error.kind == "artifact_missing"
        assert "sdk-bindings-x86_64" in run.error.message
        assert packager.calls == []

    def test_metadata_without_version(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        profile = replace(_profile(), version_style="pubspec")
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager, profile=profile))
        assert run.stage is Stage.FAILED
        assert run.failed_at is Stage.STAMPING
        assert isinstance(run.error, MetadataFormatError)
        assert packager.calls == []

    def test_duplicate_artifact_names(self, tmp_path: Path, source: Path) -> None:
        publisher = FakePublisher()
        profile = replace(_profile(), artifact_name="python-wheel-{runtime}")
        run = run_pipeline(
            _request(publish=True), _ctx(tmp_path, source, publisher=publisher, profile=profile)
        )
        assert run.failed_at is Stage.AGGREGATING
        assert isinstance(run.error, RequestError)
        assert "same artifact name" in run.error.message
        assert publisher.calls == []

    def test_publish_failure(self, tmp_path: Path, source: Path) -> None:
        error = PublishError(kind="already_published", message="tag v1.2.3 already exists")
        publisher = FakePublisher(PublishOutcome.failed(error))
        run = run_pipeline(_request(publish=True), _ctx(tmp_path, source, publisher=publisher))
        assert run.stage is Stage.FAILED
        assert run.failed_at is Stage.PUBLISHING
        assert run.error == error
        assert run.outcome is not None and not run.outcome.succeeded

    def test_packager_os_error_is_a_branch_failure(self, tmp_path: Path, source: Path) -> None:
        def explode() -> None:
            raise PermissionError("read-only file system")

        packager = FakePackager(before=explode)
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager))
        assert isinstance(run.error, BranchFailures)
        assert all(
            isinstance(e, PackageBuildError) and e.kind == "layout_failed" for e in run.error.errors
        )

    def test_packager_crash_is_a_branch_failure(self, tmp_path: Path, source: Path) -> None:
        def explode() -> None:
            raise ValueError("unexpected wheel layout")

        publisher = FakePublisher()
        packager = FakePackager(before=explode)
        run = run_pipeline(
            _request(publish=True), _ctx(tmp_path, source, packager=packager, publisher=publisher)
        )
        assert run.stage is Stage.FAILED
        assert isinstance(run.error, BranchFailures)
        assert len(run.error.errors) == 2
        for e in run.error.errors:
            assert isinstance(e, PackageBuildError)
            assert e.kind == "tool_failed"
            assert "ValueError: unexpected wheel layout" in e.message
        assert publisher.calls == []

    def test_only_with_publish_is_refused(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        publisher = FakePublisher()
        ctx = _ctx(tmp_path, source, packager=packager, publisher=publisher, only="linux-*")
        run = run_pipeline(_request(publish=True), ctx)
        assert run.stage is Stage.FAILED
        assert run.failed_at is Stage.FETCHING
        assert isinstance(run.error, RequestError)
        assert run.error.hint is not None and "dry run" in run.error.hint
        assert packager.calls == []
        assert publisher.calls == []


class TestOnly:
    def test_dry_run_subset(self, tmp_path: Path, source: Path) -> None:
        packager = FakePackager()
        run = run_pipeline(_request(), _ctx(tmp_path, source, packager=packager, only="linux-*"))
        assert run.stage is Stage.DONE
        assert packager.calls == ["linux-x86_64-py3.10"]
        assert [a.name for a in run.artifacts] == ["python-wheel-3.10-manylinux_2_31_x86_64"]
