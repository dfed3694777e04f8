"""
Legacy PPT file validation.

Binary PowerPoint files are OLE2 compound documents.
"""

from ..base_validator import BinaryBasedValidator

OLE2_SIGNATURE = bytes.fromhex("D0CF11E0A1B11AE1")


class PPTValidator(BinaryBasedValidator):
    """PPT (PowerPoint 97-2003) file validator."""

    def __init__(self):
        super().__init__("ppt", OLE2_SIGNATURE)

    def _validate_content(self, content: bytes, **options) -> bool:
        self._validate_signature(content)

        # The stream name is stored as UTF-16LE inside the compound document
        if "PowerPoint Document".encode("utf-16-le") not in content:
            self.warn("OLE2 container has no 'PowerPoint Document' stream")

        return True
