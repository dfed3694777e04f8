"""
Subprocess execution with bounded timeouts.

Every call to an external tool (LibreOffice, poppler, the package manager)
goes through run_command so a hung tool can only block its own request for
a bounded amount of time.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# Enough stderr to diagnose a failure without flooding the log
STDERR_TAIL_CHARS = 2000


class CommandError(Exception):
    """Raised when an external command cannot be run or exits non-zero."""

    def __init__(self, message: str, cmd: Sequence[str], returncode: Optional[int] = None,
                 stderr: str = ""):
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeout(CommandError):
    """Raised when an external command exceeds its timeout."""

    def __init__(self, cmd: Sequence[str], timeout: float):
        super().__init__(f"Command timed out after {timeout:.0f}s: {cmd[0]}", cmd)
        self.timeout = timeout


def _tail(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[-STDERR_TAIL_CHARS:]


def run_command(
    cmd: List[str],
    timeout: float,
    cwd: Optional[Union[str, Path]] = None,
) -> subprocess.CompletedProcess:
    """
    Run an external command and return the completed process.

    Args:
        cmd: Command and arguments (no shell interpretation)
        timeout: Maximum run time in seconds
        cwd: Optional working directory

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        CommandTimeout: If the command runs longer than timeout
        CommandError: If the binary is missing or the command exits non-zero
    """
    logger.debug(f"Executing: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        raise CommandTimeout(cmd, timeout)
    except OSError as e:
        logger.error(f"Could not execute {cmd[0]}: {e}")
        raise CommandError(f"Could not execute {cmd[0]}: {e}", cmd)

    if result.returncode != 0:
        stderr = _tail(result.stderr)
        logger.warning(f"{cmd[0]} exited with {result.returncode}: {stderr.strip()}")
        raise CommandError(
            f"{cmd[0]} failed with return code {result.returncode}",
            cmd,
            returncode=result.returncode,
            stderr=stderr,
        )

    return result
