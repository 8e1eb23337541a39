"""External command execution.

Host tools (``net``, ``icacls``, ``sudo``) are run with an explicit
argument list, never through a shell.  Arguments listed in *redact* are
replaced in log output so passwords never reach the log.
"""
from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def run_command(
    args: Sequence[str],
    *,
    timeout: float,
    redact: Sequence[str] = (),
    runner: Runner = subprocess.run,
) -> subprocess.CompletedProcess[str]:
    """Run *args* and return the completed process.

    The caller decides what a non-zero exit status means.

    Raises
    ------
    OSError
        The executable could not be started.
    subprocess.TimeoutExpired
        The command ran longer than *timeout* seconds.
    """
    logger.debug("Running: %s", " ".join(_preview(args, redact)))
    result = runner(
        list(args),
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
        check=False,
    )
    logger.debug("Exit status %s: %s", result.returncode, args[0])
    return result


def _preview(args: Sequence[str], redact: Sequence[str]) -> list[str]:
    hidden = set(redact)
    return ["********" if a in hidden else a for a in args]
