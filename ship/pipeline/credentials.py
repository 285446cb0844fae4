from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

INDEX_TOKEN_ENV = "PYPI_API_TOKEN"
SSH_KEY_FILE_ENV = "SHIP_SSH_KEY_FILE"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Secrets injected by the caller; never printed.

    Attributes:
        index_token: API token for the package index (user ``__token__``).
        ssh_key_path: Private key used for git pushes to the downstream repo.
    """

    index_token: str | None = field(default=None, repr=False)
    ssh_key_path: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Credentials:
        token = (environ.get(INDEX_TOKEN_ENV) or "").strip() or None
        key = (environ.get(SSH_KEY_FILE_ENV) or "").strip()
        return cls(index_token=token, ssh_key_path=Path(key).expanduser() if key else None)

    @property
    def secrets(self) -> tuple[str, ...]:
        return tuple(s for s in (self.index_token,) if s)

    def git_env(self, base: Mapping[str, str] | None = None) -> dict[str, str] | None:
        """Environment for git with the SSH key applied, or None to inherit as-is."""
        if self.ssh_key_path is None:
            return dict(base) if base is not None else None
        env = dict(base if base is not None else os.environ)
        env["GIT_SSH_COMMAND"] = (
            f"ssh -i {shlex.quote(str(self.ssh_key_path))} -o IdentitiesOnly=yes"
        )
        return env
