"""Tests for pipeline/stamper.py."""

from __future__ import annotations

from pathlib import Path

from ship.core.result import Err, Ok
from ship.pipeline.stamper import read_version, stamp_version, style_for
from ship.pipeline.version import PackageVersion

V = PackageVersion(1, 2, 3)

SETUP_PY = b"""#!/usr/bin/env python
from setuptools import setup

setup(
    name="breez_sdk",
    version="0.0.1",
    description="Python bindings for the Breez SDK",
    install_requires=["cffi"],
)
"""

PUBSPEC = b"""name: breez_sdk
description: Flutter bindings for the Breez SDK
version: 0.0.1
environment:
  sdk: '>=2.17.0 <4.0.0'
dependencies:
  ffi:
    version: 2.0.1
"""


class TestSetupPy:
    def test_only_version_changes(self, tmp_path: Path) -> None:
        path = tmp_path / "setup.py"
        path.write_bytes(SETUP_PY)
        result = stamp_version(path, V, style_for("setup-py"))
        assert result == Ok(path)
        assert path.read_bytes() == SETUP_PY.replace(b'version="0.0.1"', b'version="1.2.3"')

    def test_read_version(self, tmp_path: Path) -> None:
        path = tmp_path / "setup.py"
        path.write_bytes(SETUP_PY)
        assert read_version(path, style_for("setup-py")) == Ok("0.0.1")

    def test_crlf_and_missing_trailing_newline_preserved(self, tmp_path: Path) -> None:
        original = b'setup(\r\n    version="0.0.1",\r\n)'
        path = tmp_path / "setup.py"
        path.write_bytes(original)
        assert isinstance(stamp_version(path, V, style_for("setup-py")), Ok)
        assert path.read_bytes() == b'setup(\r\n    version="1.2.3",\r\n)'

    def test_non_utf8_bytes_preserved(self, tmp_path: Path) -> None:
        original = b'# caf\xe9\nsetup(version="0.0.1")\n'
        path = tmp_path / "setup.py"
        path.write_bytes(original)
        assert isinstance(stamp_version(path, V, style_for("setup-py")), Ok)
        assert path.read_bytes() == b'# caf\xe9\nsetup(version="1.2.3")\n'

    def test_only_first_match(self, tmp_path: Path) -> None:
        path = tmp_path / "setup.py"
        path.write_bytes(b'version="0.0.1"\nversion="0.0.1"\n')
        assert isinstance(stamp_version(path, V, style_for("setup-py")), Ok)
        assert path.read_bytes() == b'version="1.2.3"\nversion="0.0.1"\n'

    def test_stamping_twice_is_stable(self, tmp_path: Path) -> None:
        path = tmp_path / "setup.py"
        path.write_bytes(SETUP_PY)
        stamp_version(path, V, style_for("setup-py"))
        once = path.read_bytes()
        stamp_version(path, V, style_for("setup-py"))
        assert path.read_bytes() == once


class TestPubspec:
    def test_top_level_version_only(self, tmp_path: Path) -> None:
        path = tmp_path / "pubspec.yaml"
        path.write_bytes(PUBSPEC)
        assert isinstance(stamp_version(path, V, style_for("pubspec")), Ok)
        stamped = path.read_bytes()
        assert b"\nversion: 1.2.3\n" in stamped
        # Dependency versions are indented and stay untouched.
        assert b"    version: 2.0.1\n" in stamped
        assert stamped == PUBSPEC.replace(b"version: 0.0.1", b"version: 1.2.3")


class TestErrors:
    def test_missing_field(self, tmp_path: Path) -> None:
        path = tmp_path / "setup.py"
        original = b"from setuptools import setup\nsetup(name='x')\n"
        path.write_bytes(original)
        result = stamp_version(path, V, style_for("setup-py"))
        assert isinstance(result, Err)
        assert result.error.message == "version field not found"
        assert result.error.path == path
        assert path.read_bytes() == original

    def test_missing_file(self, tmp_path: Path) -> None:
        result = stamp_version(tmp_path / "nope.yaml", V, style_for("pubspec"))
        assert isinstance(result, Err)
        assert "nope.yaml" in result.error.pretty()

    def test_no_temp_file_left(self, tmp_path: Path) -> None:
        path = tmp_path / "pubspec.yaml"
        path.write_bytes(PUBSPEC)
        stamp_version(path, V, style_for("pubspec"))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["pubspec.yaml"]
