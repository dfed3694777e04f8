"""
Renderer availability probe.

Checks whether LibreOffice is on the PATH and, if it is not, makes a
best-effort attempt to install it through the host package manager. The probe
never raises: every failure degrades to "renderer unavailable".
"""

import logging
import shutil
from typing import Callable, Dict, List, Optional, Sequence

from ..config import (
    RENDERER_BINARIES,
    POPPLER_TOOLS,
    INSTALL_COMMAND,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_INSTALL_TIMEOUT,
)
from .process_runner import run_command, CommandError
from .timestamps import isoformat_z, utcnow

logger = logging.getLogger(__name__)


class ProbeResult:
    """Outcome of the most recent probe."""

    def __init__(self, available: bool, binary: Optional[str] = None,
                 version: Optional[str] = None, install_attempted: bool = False):
        self.available = available
        self.binary = binary
        self.version = version
        self.install_attempted = install_attempted
        self.checked_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "binary": self.binary,
            "version": self.version,
            "installAttempted": self.install_attempted,
            "checkedAt": isoformat_z(self.checked_at),
        }


class RendererProbe:
    """
    Locates the document renderer and optionally installs it.

    Every probe() call checks PATH again; last_result is informational only
    and never gates a conversion.
    """

    def __init__(
        self,
        binaries: Sequence[str] = RENDERER_BINARIES,
        auto_install: bool = True,
        install_command: Optional[List[str]] = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        install_timeout: float = DEFAULT_INSTALL_TIMEOUT,
        which: Callable[[str], Optional[str]] = shutil.which,
        runner: Callable = run_command,
    ):
        self.binaries = tuple(binaries)
        self.auto_install = auto_install
        self.install_command = list(install_command or INSTALL_COMMAND)
        self.probe_timeout = probe_timeout
        self.install_timeout = install_timeout
        self._which = which
        self._runner = runner
        self.last_result: Optional[ProbeResult] = None

    def locate(self) -> Optional[str]:
        """Return the path of the first renderer binary found on PATH."""
        for name in self.binaries:
            path = self._which(name)
            if path:
                return path
        return None

    def version(self, binary: str) -> Optional[str]:
        """Return the renderer's version line, or None if it cannot be read."""
        try:
            result = self._runner([binary, "--version"], timeout=self.probe_timeout)
        except CommandError as e:
            logger.warning(f"Could not read renderer version from {binary}: {e}")
            return None
        lines = (result.stdout or "").strip().splitlines()
        return lines[0] if lines else None

    def install(self) -> bool:
        """Best-effort install through the host package manager."""
        logger.info("Attempting to install LibreOffice and PDF utilities...")
        try:
            result = self._runner(self.install_command, timeout=self.install_timeout)
        except CommandError as e:
            logger.error(f"Failed to install LibreOffice: {e}")
            if e.stderr:
                logger.debug(f"Install stderr: {e.stderr}")
            return False
        output = (result.stdout or "").strip().splitlines()
        if output:
            logger.info(f"Install output (tail): {' | '.join(output[-5:])}")
        logger.info("LibreOffice installation completed")
        return True

    def probe(self) -> bool:
        """Check renderer availability, installing it first if allowed."""
        try:
            binary = self.locate()
            install_attempted = False

            if binary is None:
                logger.error("LibreOffice is not installed or not in PATH")
                if self.auto_install:
                    install_attempted = True
                    self.install()
                    binary = self.locate()
                    if binary is None:
                        logger.error("LibreOffice still not available after installation attempt")

            if binary is None:
                self.last_result = ProbeResult(False, install_attempted=install_attempted)
                return False

            version = self.version(binary)
            logger.info(f"LibreOffice found at: {binary} ({version or 'unknown version'})")
            self.last_result = ProbeResult(True, binary, version, install_attempted)
            return True
        except Exception as e:
            logger.exception(f"Renderer probe failed: {e}")
            self.last_result = ProbeResult(False)
            return False

    def tools_status(self) -> Dict[str, Optional[str]]:
        """Paths of the PDF helper tools, None for the missing ones."""
        return {name: self._which(name) for name in POPPLER_TOOLS}
