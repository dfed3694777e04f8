"""
Per-page extraction from an intermediate PDF using poppler tools.

Each page is handled on its own: a failure on one page raises for that page
only, and the caller decides what to substitute.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Union

from ..config import (
    PDF_INFO_BINARY,
    PDF_RASTER_BINARY,
    PDF_TEXT_BINARY,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_SLIDE_DPI,
)
from .process_runner import run_command, CommandError

logger = logging.getLogger(__name__)

PAGE_COUNT_PATTERN = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)


class ExtractionError(Exception):
    """Raised when a page cannot be rasterized or its text read."""

    def __init__(self, message: str, page: int = 0):
        super().__init__(message)
        self.page = page


def parse_page_count(pdfinfo_output: str) -> int:
    """Read the page count from pdfinfo output (0 when missing)."""
    match = PAGE_COUNT_PATTERN.search(pdfinfo_output or "")
    return int(match.group(1)) if match else 0


class PageExtractor:
    """Page count, rasterization and text extraction for a PDF."""

    def __init__(
        self,
        dpi: int = DEFAULT_SLIDE_DPI,
        timeout: float = DEFAULT_PAGE_TIMEOUT,
        runner: Callable = run_command,
    ):
        self.dpi = dpi
        self.timeout = timeout
        self._runner = runner

    def page_count(self, pdf_path: Union[str, Path]) -> int:
        """Number of pages in the PDF, 0 if it cannot be determined."""
        try:
            result = self._runner([PDF_INFO_BINARY, str(pdf_path)], timeout=self.timeout)
        except CommandError as e:
            logger.error(f"Could not read page count from {pdf_path}: {e}")
            return 0
        count = parse_page_count(result.stdout)
        logger.info(f"PDF has {count} pages")
        return count

    def rasterize_page(self, pdf_path: Union[str, Path], page: int,
                       output_prefix: Union[str, Path]) -> Path:
        """
        Render a single page to a JPEG.

        Args:
            pdf_path: Intermediate PDF
            page: 1-indexed page number
            output_prefix: Path without extension; pdftoppm appends ".jpg"

        Returns:
            Path to the produced image

        Raises:
            ExtractionError: If the tool fails or produces no image
        """
        output_prefix = Path(output_prefix)
        cmd = [
            PDF_RASTER_BINARY, "-jpeg",
            "-r", str(self.dpi),
            "-f", str(page), "-l", str(page),
            "-singlefile",
            str(pdf_path), str(output_prefix),
        ]
        try:
            self._runner(cmd, timeout=self.timeout)
        except CommandError as e:
            raise ExtractionError(f"Rasterizing page {page} failed: {e}", page=page)

        image_path = output_prefix.with_name(output_prefix.name + ".jpg")
        if not image_path.exists():
            raise ExtractionError(f"Rasterizing page {page} produced no file: {image_path}", page=page)
        return image_path

    def extract_text(self, pdf_path: Union[str, Path], page: int) -> str:
        """
        Extract the text of a single page.

        Raises:
            ExtractionError: If the text tool fails
        """
        cmd = [PDF_TEXT_BINARY, "-f", str(page), "-l", str(page), str(pdf_path), "-"]
        try:
            result = self._runner(cmd, timeout=self.timeout)
        except CommandError as e:
            raise ExtractionError(f"Text extraction for page {page} failed: {e}", page=page)
        return (result.stdout or "").strip()
