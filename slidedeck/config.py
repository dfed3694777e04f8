"""
Service configuration for slide deck conversion.

This module defines the accepted upload formats, the slide naming convention,
the external tool commands and the heuristics used by the conversion chain,
plus the environment-driven Settings object.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple, List


logger = logging.getLogger(__name__)


# ===== UPLOAD LIMITS =====

ALLOWED_EXTENSIONS: Tuple[str, ...] = (".ppt", ".pptx", ".key")

MAX_UPLOAD_BYTES = 50 * 1024 * 1024  # 50MB

UPLOAD_CHUNK_SIZE = 1024 * 1024


# ===== SLIDE NAMING =====

# Clients build slide URLs from slideCount alone, so both templates are fixed.
SLIDE_FILENAME_TEMPLATE = "slide-{number}.jpg"
SLIDE_URL_TEMPLATE = "/slides/{presentation_id}/slide-{number}.jpg"
SLIDES_URL_PREFIX = "/slides"


# ===== HEURISTICS =====

# Assumed size of a "typical" deck. Used to pad a direct export that collapsed
# to a single image and for the terminal placeholder fill. This is an
# approximation, not a measurement of the uploaded deck.
ESTIMATED_SLIDE_COUNT = 23


# ===== EXTERNAL TOOLS =====

RENDERER_BINARIES: Tuple[str, ...] = ("libreoffice", "soffice")

PDF_INFO_BINARY = "pdfinfo"
PDF_RASTER_BINARY = "pdftoppm"
PDF_TEXT_BINARY = "pdftotext"

POPPLER_TOOLS: Tuple[str, ...] = (PDF_INFO_BINARY, PDF_RASTER_BINARY, PDF_TEXT_BINARY)

INSTALL_COMMAND: List[str] = [
    "sh", "-c",
    "apt-get update && apt-get install -y libreoffice poppler-utils",
]

DIRECT_EXPORT_FILTER = "jpg:draw_jpg_Export"


# ===== TIMEOUTS (seconds) =====

DEFAULT_PROBE_TIMEOUT = 15.0
DEFAULT_RENDER_TIMEOUT = 180.0
DEFAULT_PAGE_TIMEOUT = 60.0
DEFAULT_INSTALL_TIMEOUT = 900.0

DEFAULT_SLIDE_DPI = 150


# ===== STORAGE =====

DEFAULT_SLIDES_DIR = "./public/slides"
DEFAULT_DATABASE_URL = "sqlite:///./data/slidedeck.db"
DEFAULT_WORK_DIR = os.path.join(tempfile.gettempdir(), "slidedeck")


def slide_filename(number: int) -> str:
    """Canonical on-disk name for a 1-indexed slide."""
    return SLIDE_FILENAME_TEMPLATE.format(number=number)


def slide_url(presentation_id: str, number: int) -> str:
    """Canonical public URL for a 1-indexed slide."""
    return SLIDE_URL_TEMPLATE.format(presentation_id=presentation_id, number=number)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {value!r} (using {default})")
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {value!r} (using {default})")
        return default


class Settings:
    """Runtime settings for one application instance."""

    def __init__(
        self,
        slides_dir: str = DEFAULT_SLIDES_DIR,
        work_dir: str = DEFAULT_WORK_DIR,
        database_url: str = DEFAULT_DATABASE_URL,
        auto_install: bool = True,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        render_timeout: float = DEFAULT_RENDER_TIMEOUT,
        page_timeout: float = DEFAULT_PAGE_TIMEOUT,
        install_timeout: float = DEFAULT_INSTALL_TIMEOUT,
        slide_dpi: int = DEFAULT_SLIDE_DPI,
        db_echo: bool = False,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        estimated_slide_count: int = ESTIMATED_SLIDE_COUNT,
    ):
        self.slides_dir = Path(slides_dir)
        self.work_dir = Path(work_dir)
        self.database_url = database_url
        self.auto_install = auto_install
        self.probe_timeout = probe_timeout
        self.render_timeout = render_timeout
        self.page_timeout = page_timeout
        self.install_timeout = install_timeout
        self.slide_dpi = slide_dpi
        self.db_echo = db_echo
        self.max_upload_bytes = max_upload_bytes
        self.estimated_slide_count = estimated_slide_count

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            slides_dir=os.getenv("SLIDES_DIR", DEFAULT_SLIDES_DIR),
            work_dir=os.getenv("WORK_DIR", DEFAULT_WORK_DIR),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            auto_install=_env_bool("RENDERER_AUTO_INSTALL", True),
            probe_timeout=_env_float("PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT),
            render_timeout=_env_float("RENDER_TIMEOUT", DEFAULT_RENDER_TIMEOUT),
            page_timeout=_env_float("PAGE_TIMEOUT", DEFAULT_PAGE_TIMEOUT),
            install_timeout=_env_float("INSTALL_TIMEOUT", DEFAULT_INSTALL_TIMEOUT),
            slide_dpi=_env_int("SLIDE_DPI", DEFAULT_SLIDE_DPI),
            db_echo=_env_bool("DB_ECHO", False),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
            estimated_slide_count=_env_int("ESTIMATED_SLIDE_COUNT", ESTIMATED_SLIDE_COUNT),
        )

    def presentation_dir(self, presentation_id: str) -> Path:
        """Directory holding the published slide images of a presentation."""
        return self.slides_dir / presentation_id

    def masked_database_url(self) -> str:
        """Database URL with any credentials hidden."""
        url = self.database_url
        if "@" in url and "://" in url:
            scheme, rest = url.split("://", 1)
            return f"{scheme}://***:***@{rest.split('@', 1)[1]}"
        return url

    def __repr__(self):
        return (
            f"Settings(slides_dir={self.slides_dir}, work_dir={self.work_dir}, "
            f"database_url={self.masked_database_url()}, auto_install={self.auto_install})"
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
