"""
PPTX file validation.

Validates PowerPoint PPTX files using package structure checks.
"""

import logging
import re

from ..base_validator import ArchiveBasedValidator

logger = logging.getLogger(__name__)

SLIDE_ENTRY = re.compile(r"^ppt/slides/slide\d+\.xml$")

PRESENTATION_CONTENT_TYPES = [
    'application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml',
    'application/vnd.openxmlformats-officedocument.presentationml.slide+xml',
]


class PPTXValidator(ArchiveBasedValidator):
    """PPTX file validator."""

    def __init__(self):
        required_files = [
            '[Content_Types].xml',
            '_rels/.rels',
            'ppt/presentation.xml',
        ]
        super().__init__("pptx", required_files)

    def _validate_content(self, content: bytes, **options) -> bool:
        with self._open_archive(content) as zf:
            namelist = zf.namelist()
            self._validate_required_files(namelist)

            if 'ppt/_rels/presentation.xml.rels' not in namelist:
                self.warn("Missing presentation relationships file")

            content_types = self._read_entry(zf, '[Content_Types].xml').decode('utf-8', errors='replace')
            for content_type in PRESENTATION_CONTENT_TYPES:
                if content_type not in content_types:
                    self.warn(f"Missing content type declaration: {content_type}")

        slide_count = sum(1 for name in namelist if SLIDE_ENTRY.match(name))
        if slide_count == 0:
            self.warn("No slides found in presentation")
        else:
            logger.debug(f"PPTX package declares {slide_count} slide parts")

        return True
