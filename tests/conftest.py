"""
Shared test configuration and fixtures for the slide deck service tests.

External tools are never executed: the renderer probe, LibreOffice wrapper
and poppler page extractor are replaced by fakes that write real files.
"""

import io
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

import pytest

# The module-level app in app.py is built from the environment at import time
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="slidedeck-tests-"))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SLIDES_DIR", str(_SESSION_DIR / "slides"))
os.environ.setdefault("WORK_DIR", str(_SESSION_DIR / "work"))
os.environ.setdefault("RENDERER_AUTO_INSTALL", "false")

from fastapi.testclient import TestClient
from PIL import Image

from app import create_app
from slidedeck.config import Settings
from slidedeck.utils.libreoffice import LibreOfficeRenderer, RenderError
from slidedeck.utils.page_extractor import ExtractionError, PageExtractor
from slidedeck.utils.renderer_probe import ProbeResult, RendererProbe


PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"


def write_jpeg(path: Path, color=(255, 255, 255)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (32, 18), color=color).save(path, format="JPEG")
    return path


def build_pptx(slide_count: int = 3) -> bytes:
    """Minimal PPTX package with the parts the structure check looks for."""
    content_types = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Override PartName="/ppt/presentation.xml" ContentType="application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml"/>'
        '<Override PartName="/ppt/slides/slide1.xml" ContentType="application/vnd.openxmlformats-officedocument.presentationml.slide+xml"/>'
        '</Types>'
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("[Content_Types].xml", content_types)
        zf.writestr("_rels/.rels", "<Relationships/>")
        zf.writestr("ppt/presentation.xml", "<presentation/>")
        zf.writestr("ppt/_rels/presentation.xml.rels", "<Relationships/>")
        for number in range(1, slide_count + 1):
            zf.writestr(f"ppt/slides/slide{number}.xml", f"<slide n='{number}'/>")
    return buffer.getvalue()


# ===== FAKE EXTERNAL TOOLS =====

class FakeProbe(RendererProbe):
    """Probe with a fixed answer that never touches PATH or the package manager."""

    def __init__(self, available: bool = True):
        super().__init__(auto_install=False, which=lambda name: None)
        self.available = available
        self.calls = 0

    def probe(self) -> bool:
        self.calls += 1
        if self.available:
            self.last_result = ProbeResult(True, "/usr/bin/libreoffice", "LibreOffice 7.6.4.1")
        else:
            self.last_result = ProbeResult(False)
        return self.available


class FakeRenderer(LibreOfficeRenderer):
    """Writes a stand-in PDF or a set of exported JPEGs."""

    def __init__(self, pdf_fails: bool = False, export_count: int = 0, export_fails: bool = False):
        super().__init__(binary="libreoffice")
        self.pdf_fails = pdf_fails
        self.export_count = export_count
        self.export_fails = export_fails
        self.calls = []

    def to_pdf(self, input_path, out_dir, profile_dir=None):
        self.calls.append("to_pdf")
        if self.pdf_fails:
            raise RenderError("LibreOffice conversion to pdf failed")
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        pdf_path = out_dir / f"{Path(input_path).stem}.pdf"
        pdf_path.write_bytes(b"%PDF-1.4\n% fake\n")
        return pdf_path

    def export_images(self, input_path, out_dir, profile_dir=None):
        self.calls.append("export_images")
        if self.export_fails or self.export_count == 0:
            raise RenderError("No images were generated")
        out_dir = Path(out_dir)
        stem = Path(input_path).stem
        return [write_jpeg(out_dir / f"{stem}{i:03d}.jpg") for i in range(self.export_count)]


class FakeExtractor(PageExtractor):
    """Page extractor over a pretend PDF with a fixed number of pages."""

    def __init__(self, pages: int = 3, failing_pages: Iterable[int] = (),
                 text_failures: Iterable[int] = (), texts: Optional[Dict[int, str]] = None):
        super().__init__()
        self.pages = pages
        self.failing_pages = set(failing_pages)
        self.text_failures = set(text_failures)
        self.texts = texts or {}

    def page_count(self, pdf_path):
        return self.pages

    def rasterize_page(self, pdf_path, page, output_prefix):
        if page in self.failing_pages:
            raise ExtractionError(f"Rasterizing page {page} failed", page=page)
        output_prefix = Path(output_prefix)
        return write_jpeg(output_prefix.with_name(output_prefix.name + ".jpg"), color=(page * 20, 0, 0))

    def extract_text(self, pdf_path, page):
        if page in self.text_failures:
            raise ExtractionError(f"Text extraction for page {page} failed", page=page)
        return self.texts.get(page, f"Text of page {page}")


# ===== FIXTURES =====

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to the test's temp directory with an in-memory database."""
    return Settings(
        slides_dir=str(tmp_path / "slides"),
        work_dir=str(tmp_path / "work"),
        database_url="sqlite://",
        auto_install=False,
    )


@pytest.fixture
def make_probe() -> Callable[..., FakeProbe]:
    return FakeProbe


@pytest.fixture
def make_renderer() -> Callable[..., FakeRenderer]:
    return FakeRenderer


@pytest.fixture
def make_extractor() -> Callable[..., FakeExtractor]:
    return FakeExtractor


@pytest.fixture
def make_app(settings):
    """Factory for an application wired to fake tools (healthy 3-page renderer by default)."""
    def factory(probe=None, renderer=None, extractor=None):
        return create_app(
            settings,
            probe=probe or FakeProbe(True),
            renderer=renderer or FakeRenderer(),
            extractor=extractor or FakeExtractor(pages=3),
        )
    return factory


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    """FastAPI test client; the lifespan (probe + cache load) runs on enter."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_pptx() -> bytes:
    return build_pptx(3)


@pytest.fixture
def upload(sample_pptx):
    """Helper to POST a deck to /convert (or another upload path)."""
    def do_upload(client: TestClient, filename: str = "deck.pptx", content: Optional[bytes] = None,
                  path: str = "/convert", **data):
        files = {"presentation": (filename, sample_pptx if content is None else content, PPTX_MIME)}
        return client.post(path, files=files, data=data)
    return do_upload


@pytest.fixture
def damaged_pptx(sample_pptx) -> bytes:
    """Sample deck whose stored [Content_Types].xml no longer matches its CRC."""
    damaged = sample_pptx.replace(b"<Types ", b"<Typez ", 1)
    assert damaged != sample_pptx
    return damaged
