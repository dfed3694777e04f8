"""
Conversion strategy chain for slide decks.

Runs an ordered list of conversion strategies, each one attempted only if the
previous one raised or produced no slides:

1. paginate-then-rasterize: deck -> PDF -> one JPEG + text per page
2. direct export: deck -> JPEG images in a single LibreOffice pass
3. placeholder fill: a fixed number of distinct placeholder slides

Whatever strategy wins, slides end up as slide-{n}.jpg in the presentation's
output directory, 1-indexed in the order of the returned slides list.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Union

from ..config import ESTIMATED_SLIDE_COUNT, slide_filename, slide_url
from .libreoffice import LibreOfficeRenderer, RenderError
from .logging_config import log_performance
from .page_extractor import PageExtractor, ExtractionError
from .placeholder import PlaceholderGenerator

logger = logging.getLogger(__name__)

STRATEGY_PAGINATED = "paginated"
STRATEGY_DIRECT_EXPORT = "direct_export"
STRATEGY_PLACEHOLDER_FILL = "placeholder_fill"

STATUS_CONVERTED = "converted"
STATUS_CONVERTED_WITH_PLACEHOLDERS = "converted_with_placeholders"
STATUS_PADDED = "padded_with_placeholders"
STATUS_PLACEHOLDERS_CREATED = "placeholders_created"
STATUS_FALLBACK = "fallback_placeholders"

NO_RENDERER_MESSAGE = "LibreOffice is not available. Generated placeholder slides instead."
FALLBACK_MESSAGE = "Conversion failed. Generated distinct placeholder slides instead."
PADDED_MESSAGE = (
    "Only one image could be exported. "
    "Remaining slides were filled with placeholders up to the estimated deck size."
)


class ConversionJob:
    """Where one presentation's conversion reads from and writes to."""

    def __init__(self, presentation_id: str, output_dir: Union[str, Path],
                 work_dir: Union[str, Path], title: str):
        self.presentation_id = presentation_id
        self.output_dir = Path(output_dir)
        self.work_dir = Path(work_dir)
        self.title = title

    @property
    def profile_dir(self) -> Path:
        return self.work_dir / "lo-profile"

    def slide_path(self, number: int) -> Path:
        return self.output_dir / slide_filename(number)

    def slide_url(self, number: int) -> str:
        return slide_url(self.presentation_id, number)


class ConversionResult:
    """Normalized output of the chain; slides and slide_texts are parallel."""

    def __init__(self, slides: List[str], slide_texts: List[str], is_placeholder: bool,
                 strategy: str, status: str, message: Optional[str] = None):
        if len(slides) != len(slide_texts):
            raise ValueError(
                f"slides and slide_texts differ in length ({len(slides)} != {len(slide_texts)})"
            )
        self.slides = slides
        self.slide_texts = slide_texts
        self.is_placeholder = is_placeholder
        self.strategy = strategy
        self.status = status
        self.message = message

    @property
    def slide_count(self) -> int:
        return len(self.slides)

    def __repr__(self):
        return (
            f"ConversionResult(strategy={self.strategy}, status={self.status}, "
            f"slide_count={self.slide_count}, is_placeholder={self.is_placeholder})"
        )


class ConversionChain:
    """
    Turns an uploaded deck into canonical slide images and texts.

    convert() never raises for conversion problems: every failure falls
    through to the next strategy and the placeholder fill always produces a
    well-formed result.
    """

    def __init__(
        self,
        renderer: LibreOfficeRenderer,
        extractor: PageExtractor,
        placeholders: PlaceholderGenerator,
        estimated_slide_count: int = ESTIMATED_SLIDE_COUNT,
    ):
        self.renderer = renderer
        self.extractor = extractor
        self.placeholders = placeholders
        self.estimated_slide_count = estimated_slide_count

    @log_performance(logger)
    def convert(self, input_path: Union[str, Path], job: ConversionJob,
                renderer_available: bool) -> ConversionResult:
        input_path = Path(input_path)
        for directory in (job.output_dir, job.work_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Could not create {directory}: {e}")

        if not renderer_available:
            logger.warning("LibreOffice not available, generating placeholder slides")
            return self._placeholder_fill(job, distinct=False, status=STATUS_PLACEHOLDERS_CREATED,
                                          message=NO_RENDERER_MESSAGE)

        strategies = (
            (STRATEGY_PAGINATED, self._paginate_then_rasterize),
            (STRATEGY_DIRECT_EXPORT, self._direct_export),
        )
        for name, strategy in strategies:
            self._clear_slides(job)
            logger.info(f"Trying conversion strategy '{name}' for {input_path.name}")
            try:
                result = strategy(input_path, job)
            except (RenderError, ExtractionError) as e:
                logger.error(f"Strategy '{name}' failed: {e}")
                continue
            except Exception as e:
                logger.exception(f"Strategy '{name}' failed unexpectedly: {e}")
                continue

            if result.slide_count > 0:
                logger.info(f"Strategy '{name}' produced {result!r}")
                return result
            logger.warning(f"Strategy '{name}' produced no slides")

        self._clear_slides(job)
        logger.warning("All conversion strategies failed, generating distinct placeholder slides")
        return self._placeholder_fill(job, distinct=True, status=STATUS_FALLBACK,
                                      message=FALLBACK_MESSAGE)

    def _paginate_then_rasterize(self, input_path: Path, job: ConversionJob) -> ConversionResult:
        pdf_path = self.renderer.to_pdf(input_path, job.work_dir / "pdf", profile_dir=job.profile_dir)
        page_count = self.extractor.page_count(pdf_path)
        if page_count <= 0:
            raise RenderError(f"Could not determine page count of {pdf_path.name}")

        pages_dir = job.work_dir / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)

        slides, slide_texts = [], []
        placeholder_used = False
        for number in range(1, page_count + 1):
            target = job.slide_path(number)
            try:
                image = self.extractor.rasterize_page(pdf_path, number, pages_dir / f"page-{number}")
                shutil.move(str(image), str(target))
            except (ExtractionError, OSError) as e:
                logger.warning(f"Page {number} could not be rasterized, using placeholder: {e}")
                self.placeholders.make_placeholder(target, number, job.title, distinct=True)
                slide_texts.append(f"Slide {number} (Error Placeholder)")
                placeholder_used = True
            else:
                slide_texts.append(self._page_text(pdf_path, number))
            slides.append(job.slide_url(number))

        return ConversionResult(
            slides,
            slide_texts,
            is_placeholder=placeholder_used,
            strategy=STRATEGY_PAGINATED,
            status=STATUS_CONVERTED_WITH_PLACEHOLDERS if placeholder_used else STATUS_CONVERTED,
        )

    def _page_text(self, pdf_path: Path, number: int) -> str:
        try:
            text = self.extractor.extract_text(pdf_path, number)
        except ExtractionError as e:
            logger.warning(f"Text extraction failed for page {number}: {e}")
            text = ""
        return text or f"Slide {number}"

    def _direct_export(self, input_path: Path, job: ConversionJob) -> ConversionResult:
        images = self.renderer.export_images(input_path, job.work_dir / "export",
                                             profile_dir=job.profile_dir)

        if len(images) == 1:
            logger.warning(
                f"Direct export produced a single image, padding to {self.estimated_slide_count} slides"
            )
            self._place_image(images[0], 1, job)
            slides, slide_texts = [job.slide_url(1)], ["Slide 1"]
            for number in range(2, self.estimated_slide_count + 1):
                self.placeholders.make_placeholder(job.slide_path(number), number, job.title, distinct=True)
                slides.append(job.slide_url(number))
                slide_texts.append(f"Slide {number} (Placeholder)")
            return ConversionResult(slides, slide_texts, is_placeholder=True,
                                    strategy=STRATEGY_DIRECT_EXPORT, status=STATUS_PADDED,
                                    message=PADDED_MESSAGE)

        slides, slide_texts = [], []
        placeholder_used = False
        for number, image in enumerate(images, start=1):
            if not self._place_image(image, number, job):
                placeholder_used = True
            slides.append(job.slide_url(number))
            slide_texts.append(f"Slide {number}")

        return ConversionResult(
            slides,
            slide_texts,
            is_placeholder=placeholder_used,
            strategy=STRATEGY_DIRECT_EXPORT,
            status=STATUS_CONVERTED_WITH_PLACEHOLDERS if placeholder_used else STATUS_CONVERTED,
        )

    def _place_image(self, image: Path, number: int, job: ConversionJob) -> bool:
        """Move an exported image to its canonical name; placeholder on failure."""
        target = job.slide_path(number)
        try:
            shutil.move(str(image), str(target))
            logger.debug(f"Renamed {image.name} to {target.name}")
            return True
        except OSError as e:
            logger.error(f"Error renaming {image.name}: {e}")
            self.placeholders.make_placeholder(target, number, job.title, distinct=True)
            return False

    def _placeholder_fill(self, job: ConversionJob, distinct: bool, status: str,
                          message: str) -> ConversionResult:
        slides, slide_texts = [], []
        failed = 0
        for number in range(1, self.estimated_slide_count + 1):
            if not self.placeholders.make_placeholder(job.slide_path(number), number, job.title,
                                                      distinct=distinct):
                failed += 1
            slides.append(job.slide_url(number))
            slide_texts.append(f"Slide {number} (Placeholder)")

        if failed:
            logger.error(f"{failed} of {self.estimated_slide_count} placeholder images could not be written")
        logger.info(f"Created {len(slides)} {'distinct ' if distinct else ''}placeholder slides")

        return ConversionResult(slides, slide_texts, is_placeholder=True,
                                strategy=STRATEGY_PLACEHOLDER_FILL, status=status, message=message)

    def _clear_slides(self, job: ConversionJob) -> None:
        """Remove canonical slide files left behind by a failed strategy."""
        try:
            stale = list(job.output_dir.glob("slide-*.jpg"))
        except OSError as e:
            logger.warning(f"Could not list {job.output_dir}: {e}")
            return
        for path in stale:
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove stale slide {path}: {e}")
