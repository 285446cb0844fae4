"""Process exit codes.

The values are part of the CLI contract (CI jobs branch on them) and must
remain stable:

- 0: Success
- 1: User error (bad version string, unknown profile, bad config)
- 2: Environment error (missing toolchain, missing credentials)
- 3: Build error (a packaging branch failed)
- 4: Network error (clone failed, index unreachable)
- 5: I/O error (artifact store, metadata file)
- 6: Publish error (rejected upload, tag already exists)
"""

from enum import IntEnum

__all__ = ["ExitCode"]


class ExitCode(IntEnum):
    """Exit codes for ``ship`` commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    PUBLISH_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
