"""Running git subprocesses."""
import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Type

from pkgfetch.core.errors import GitOperationError

logger = logging.getLogger(__name__)


def git_env() -> dict:
    """Environment for git: never prompt for credentials."""
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_ASKPASS", "echo")
    return env


def to_git_remote(url: str) -> str:
    """Strip the ``git+`` prefix and any ``#fragment`` from a repo URL."""
    remote = url.split("#", 1)[0]
    if remote.startswith("git+"):
        remote = remote[len("git+"):]
    return remote


def run_git(
    argv: List[str],
    cwd: Optional[Path] = None,
    git_bin: str = "git",
    timeout: float = 600.0,
    error_cls: Type[GitOperationError] = GitOperationError,
) -> str:
    """Run ``git argv`` and return stripped stdout.

    Raises:
        error_cls: On non-zero exit or timeout
    """
    command = [git_bin, *argv]
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=git_env(),
        )
    except subprocess.TimeoutExpired:
        raise error_cls(f"git {' '.join(argv)} timed out after {timeout}s")
    except FileNotFoundError as e:
        raise GitOperationError(f"git binary not found: {git_bin}") from e

    if result.returncode != 0:
        raise error_cls(
            f"git {' '.join(argv)} failed: {result.stderr.strip()}"
        )
    return result.stdout.strip()
