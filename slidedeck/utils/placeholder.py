"""
Placeholder slide generation.

Placeholders stand in for slides that could not be rendered. They are real
JPEG images with the slide number and a clear "placeholder" marking drawn on
them, and identical inputs always produce identical files.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

PLACEHOLDER_SIZE: Tuple[int, int] = (1280, 720)

GENERIC_BACKGROUND = (200, 200, 200)
EVEN_BACKGROUND = (214, 226, 240)
ODD_BACKGROUND = (240, 228, 210)
BORDER_COLOR = (90, 90, 90)
TEXT_COLOR = (30, 30, 30)


def placeholder_text(slide_number: int, title: str, distinct: bool) -> str:
    """Wording drawn on a placeholder slide."""
    if not distinct:
        return (
            f"Placeholder for slide {slide_number}\nTitle: {title}\n\n"
            "LibreOffice is not installed on the server,\n"
            "so actual slide conversion is not available."
        )

    if slide_number % 2 == 0:
        return (
            f"SLIDE {slide_number} - EVEN NUMBER\n\n"
            "This is an even-numbered slide placeholder.\n"
            f"Title: {title}\n\nSlide content would appear here."
        )

    return (
        f"SLIDE {slide_number} - ODD NUMBER\n\n"
        "This is an odd-numbered slide placeholder.\n"
        f"Title: {title}\n\nDifferent slide content would appear here."
    )


def _background(slide_number: int, distinct: bool) -> Tuple[int, int, int]:
    if not distinct:
        return GENERIC_BACKGROUND
    return EVEN_BACKGROUND if slide_number % 2 == 0 else ODD_BACKGROUND


class PlaceholderGenerator:
    """Writes placeholder slide images."""

    def __init__(self, size: Tuple[int, int] = PLACEHOLDER_SIZE, quality: int = 85):
        self.size = size
        self.quality = quality
        self._font = ImageFont.load_default()

    def render(self, slide_number: int, title: str, distinct: bool) -> Image.Image:
        """Build the placeholder image in memory."""
        image = Image.new("RGB", self.size, color=_background(slide_number, distinct))
        draw = ImageDraw.Draw(image)

        width, height = self.size
        margin = 24
        draw.rectangle([margin, margin, width - margin, height - margin], outline=BORDER_COLOR, width=6)
        draw.multiline_text(
            (margin * 3, margin * 3),
            placeholder_text(slide_number, title, distinct),
            fill=TEXT_COLOR,
            font=self._font,
            spacing=8,
        )
        return image

    def make_placeholder(self, path: Union[str, Path], slide_number: int, title: str,
                         distinct: bool = False) -> bool:
        """
        Write a placeholder slide to path.

        Args:
            path: Destination file (JPEG)
            slide_number: 1-indexed slide number drawn on the image
            title: Deck title drawn on the image
            distinct: Use the even/odd wording instead of the generic one

        Returns:
            True if the file was written, False on any error
        """
        try:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            image = self.render(slide_number, title, distinct)
            image.save(path, format="JPEG", quality=self.quality)
            logger.debug(f"Created {'distinct ' if distinct else ''}placeholder for slide {slide_number} at {path}")
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error creating placeholder for slide {slide_number}: {e}")
            return False
