"""
LibreOffice command wrapper.

Runs headless LibreOffice conversions into a given output directory and
reports what it produced. LibreOffice's own output filenames are never exposed
to callers beyond this module and the conversion chain.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..config import RENDERER_BINARIES, DIRECT_EXPORT_FILTER, DEFAULT_RENDER_TIMEOUT
from .process_runner import run_command, CommandError

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Raised when LibreOffice fails or produces no usable output."""
    pass


class LibreOfficeRenderer:
    """Headless LibreOffice conversions."""

    def __init__(
        self,
        binary: Optional[str] = None,
        timeout: float = DEFAULT_RENDER_TIMEOUT,
        runner: Callable = run_command,
    ):
        self.binary = binary
        self.timeout = timeout
        self._runner = runner

    def _resolve_binary(self) -> str:
        if self.binary:
            return self.binary
        for name in RENDERER_BINARIES:
            path = shutil.which(name)
            if path:
                return path
        raise RenderError("LibreOffice is not installed or not in PATH")

    def _convert(self, input_path: Path, out_dir: Path, convert_to: str,
                 profile_dir: Optional[Path] = None) -> None:
        out_dir.mkdir(parents=True, exist_ok=True)
        cmd = [self._resolve_binary(), "--headless"]
        if profile_dir is not None:
            # A private profile avoids the user-installation lock shared across processes
            cmd.append(f"-env:UserInstallation={profile_dir.resolve().as_uri()}")
        cmd += ["--convert-to", convert_to, "--outdir", str(out_dir), str(input_path)]

        logger.info(f"Executing LibreOffice conversion to {convert_to}: {input_path.name}")
        try:
            result = self._runner(cmd, timeout=self.timeout)
        except CommandError as e:
            raise RenderError(f"LibreOffice conversion to {convert_to} failed: {e}")
        if result.stdout:
            logger.debug(f"LibreOffice output: {result.stdout.strip()}")

    def to_pdf(self, input_path: Union[str, Path], out_dir: Union[str, Path],
               profile_dir: Optional[Path] = None) -> Path:
        """Convert the deck to a PDF and return its path."""
        input_path, out_dir = Path(input_path), Path(out_dir)
        self._convert(input_path, out_dir, "pdf", profile_dir)

        pdf_files = sorted(out_dir.glob("*.pdf"))
        if not pdf_files:
            raise RenderError("No PDF files were generated")
        return pdf_files[0]

    def export_images(self, input_path: Union[str, Path], out_dir: Union[str, Path],
                      profile_dir: Optional[Path] = None) -> List[Path]:
        """Export slides straight to JPEG images, in discovery order."""
        input_path, out_dir = Path(input_path), Path(out_dir)
        self._convert(input_path, out_dir, DIRECT_EXPORT_FILTER, profile_dir)

        images = sorted(out_dir.glob("*.jpg"))
        logger.info(f"Found {len(images)} jpg files")
        if not images:
            raise RenderError("No images were generated")
        return images
