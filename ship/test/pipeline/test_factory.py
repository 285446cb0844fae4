from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from ship.core.defaults import flutter_profile, python_profile
from ship.core.result import Err, Ok
from ship.output.console import MockConsole
from ship.pipeline.credentials import Credentials
from ship.pipeline.factory import make_packager, make_publisher
from ship.pipeline.packager import BundlePackager, WheelPackager
from ship.pipeline.publisher import GitTagPublisher, IndexPublisher
from ship.pipeline.store import ArtifactStore
from ship.pipeline.version import PackageVersion
from ship.platform.http import MockHttpClient


def test_packagers(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    kwargs = dict(store=store, console=MockConsole(), credentials=Credentials(), cwd=tmp_path)
    wheel = make_packager(python_profile(), **kwargs)  # type: ignore[arg-type]
    bundle = make_packager(flutter_profile(), **kwargs)  # type: ignore[arg-type]
    assert isinstance(wheel, Ok) and isinstance(wheel.value, WheelPackager)
    assert isinstance(bundle, Ok) and isinstance(bundle.value, BundlePackager)


def test_bundle_without_downstream(tmp_path: Path) -> None:
    result = make_packager(
        replace(flutter_profile(), downstream=None),
        store=ArtifactStore(tmp_path),
        console=MockConsole(),
        credentials=Credentials(),
        cwd=tmp_path,
    )
    assert isinstance(result, Err)
    assert "no downstream" in result.error.message


def test_publishers(tmp_path: Path) -> None:
    common = dict(
        console=MockConsole(), credentials=Credentials(), http=MockHttpClient(), cwd=tmp_path
    )
    index = make_publisher(python_profile(), channel="testpypi", **common)  # type: ignore[arg-type]
    tag = make_publisher(flutter_profile(), **common)  # type: ignore[arg-type]
    assert isinstance(index, Ok) and isinstance(index.value, IndexPublisher)
    assert index.value.version_url("breez-sdk", PackageVersion(1, 0, 0)) == (
        "https://test.pypi.org/pypi/breez-sdk/1.0.0/json"
    )
    assert isinstance(tag, Ok) and isinstance(tag.value, GitTagPublisher)


def test_unknown_channel(tmp_path: Path) -> None:
    result = make_publisher(
        python_profile(),
        console=MockConsole(),
        credentials=Credentials(),
        http=MockHttpClient(),
        cwd=tmp_path,
        channel="staging",
    )
    assert isinstance(result, Err)
    assert result.error.hint == "available: pypi, testpypi"
