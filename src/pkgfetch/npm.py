"""Running the package manager binary."""
import logging
import subprocess
from pathlib import Path
from typing import Sequence

from pkgfetch.core.errors import PreparationError

logger = logging.getLogger(__name__)


def run_npm(
    npm_bin: str,
    args: Sequence[str],
    cwd: Path,
    fail_message: str,
    timeout: float = 600.0,
) -> str:
    """Run ``npm_bin args`` in ``cwd``.

    Raises:
        PreparationError: On a non-zero exit, prefixed with ``fail_message``
    """
    command = [npm_bin, *args]
    logger.info(f"Running {' '.join(command)} in {cwd}")
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise PreparationError(f"{fail_message}: {npm_bin} not found") from e
    except subprocess.TimeoutExpired as e:
        raise PreparationError(f"{fail_message}: {' '.join(command)} timed out") from e

    if result.returncode != 0:
        raise PreparationError(
            f"{fail_message}: {' '.join(command)} exited {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout
