"""
Keynote file validation.

Keynote documents are ZIP packages. Current versions keep their data in an
Index/ folder of .iwa files, older ones in an index.apxl XML file.
"""

from ..base_validator import ArchiveBasedValidator


class KeynoteValidator(ArchiveBasedValidator):
    """KEY file validator."""

    def __init__(self):
        super().__init__("key")

    def _validate_content(self, content: bytes, **options) -> bool:
        namelist = self._archive_names(content)

        has_index = any(name.startswith("Index/") or name == "Index.zip" for name in namelist)
        has_apxl = any(name.endswith("index.apxl") or name.endswith("index.apxl.gz") for name in namelist)
        if not (has_index or has_apxl):
            self.warn("Keynote package has neither an Index folder nor index.apxl")

        return True
