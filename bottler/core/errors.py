"""Error codes for CLI exit status.

Both commands map their failures onto these codes so that wrapper scripts
can tell a bad invocation from a broken environment or a failed build.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: User error (no formula given, unknown --remote)
    - 2: Environment error (missing hub, missing credentials, no usable remote)
    - 3: Build error (an external command failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
