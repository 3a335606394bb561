"""Shell and gh utilities.

Provides a thin wrapper around the gh CLI, plus output formatting helpers.
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping


def gh(
    *args: str,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a gh command and return the completed process.

    Never raises on a non-zero exit; callers inspect returncode, stdout and
    stderr to classify the failure.

    Args:
        *args: Arguments to pass to gh (e.g., "api", "repos/o/r/tags").
        env: Environment for the child process (e.g., to inject GH_TOKEN).
        timeout: Seconds before the call is abandoned.

    Raises:
        subprocess.TimeoutExpired: If the call exceeds timeout.
        FileNotFoundError: If gh is not installed.
    """
    return subprocess.run(
        ["gh", *args],
        capture_output=True,
        text=True,
        env=dict(env) if env is not None else None,
        timeout=timeout,
        check=False,
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
