"""Version stamping of package metadata.

Rewrites the version field of one metadata file in place. Only the matched
field changes; every other byte of the file (line endings, trailing newline,
non-UTF-8 bytes) is written back untouched.
"""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from ship.core.config import VersionStyleName
from ship.core.result import Err, Ok, Result
from ship.pipeline.errors import MetadataFormatError
from ship.pipeline.version import PackageVersion

__all__ = ["VersionStyle", "VERSION_STYLES", "read_version", "stamp_version", "style_for"]

# surrogateescape round-trips arbitrary bytes through str unchanged.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@dataclass(frozen=True, slots=True)
class VersionStyle:
    """How the version field looks in one kind of metadata file.

    ``pattern`` must define a ``version`` group; ``template`` is expanded
    against the match with ``{version}`` substituted first.
    """

    name: str
    pattern: re.Pattern[str]
    template: str


VERSION_STYLES: dict[VersionStyleName, VersionStyle] = {
    # setup.py:    version="0.1.0",
    "setup-py": VersionStyle(
        name="setup-py",
        pattern=re.compile(r'^(?P<indent>[ \t]*)version="(?P<version>[^"\r\n]*)"', re.MULTILINE),
        template=r'\g<indent>version="{version}"',
    ),
    # pubspec.yaml: top-level `version: 0.1.0` (indented keys belong to dependencies)
    "pubspec": VersionStyle(
        name="pubspec",
        pattern=re.compile(r"^version:[ \t]*(?P<version>[^\r\n]*)", re.MULTILINE),
        template="version: {version}",
    ),
}


def style_for(name: VersionStyleName) -> VersionStyle:
    return VERSION_STYLES[name]


def _read_text(path: Path) -> str:
    return path.read_bytes().decode(_ENCODING, _ERRORS)


def read_version(path: Path, style: VersionStyle) -> Result[str, MetadataFormatError]:
    try:
        text = _read_text(path)
    except OSError as e:
        return Err(
            MetadataFormatError(path=path, pattern=style.pattern.pattern, message=str(e))
        )

    m = style.pattern.search(text)
    if m is None:
        return Err(
            MetadataFormatError(
                path=path,
                pattern=style.pattern.pattern,
                message="version field not found",
            )
        )
    return Ok(m.group("version").strip())


def stamp_version(
    path: Path,
    version: PackageVersion,
    style: VersionStyle,
) -> Result[Path, MetadataFormatError]:
    """Replace the first version field in ``path`` with ``version``.

    Returns:
        Ok(path) once the file is rewritten, Err(MetadataFormatError) if the
        file is unreadable or has no version field (the file is left as is).
    """
    try:
        text = _read_text(path)
    except OSError as e:
        return Err(
            MetadataFormatError(path=path, pattern=style.pattern.pattern, message=str(e))
        )

    m = style.pattern.search(text)
    if m is None:
        return Err(
            MetadataFormatError(
                path=path,
                pattern=style.pattern.pattern,
                message="version field not found",
            )
        )

    replacement = m.expand(style.template.replace("{version}", str(version)))
    stamped = text[: m.start()] + replacement + text[m.end() :]

    tmp = path.with_name(f".{path.name}.ship-tmp")
    try:
        tmp.write_bytes(stamped.encode(_ENCODING, _ERRORS))
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        return Err(
            MetadataFormatError(path=path, pattern=style.pattern.pattern, message=str(e))
        )

    return Ok(path)
