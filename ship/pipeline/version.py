from __future__ import annotations

import re
from dataclasses import dataclass

from ship.core.result import Err, Ok, Result
from ship.pipeline.errors import RequestError

_VERSION_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


@dataclass(frozen=True, slots=True, order=True)
class PackageVersion:
    major: int
    minor: int
    build: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.build}"

    def to_tag(self, prefix: str = "v") -> str:
        return f"{prefix}{self}"


def parse_version(text: str) -> Result[PackageVersion, RequestError]:
    """Parse a strict MAJOR.MINOR.BUILD version (no ``v`` prefix)."""
    s = text.strip()
    m = _VERSION_RE.match(s)
    if m is None:
        hint = "drop the leading 'v'" if s.startswith("v") else "expected MAJOR.MINOR.BUILD"
        return Err(RequestError(message=f"invalid package version: {text!r}", hint=hint))
    return Ok(PackageVersion(int(m.group(1)), int(m.group(2)), int(m.group(3))))
