"""
Ingest pipeline: uploaded deck -> committed catalog record.

Stages run in order and each one either returns its result or raises:

1. structure check of the upload (warnings only)
2. renderer probe
3. conversion chain
4. record assembly
5. commit: save, then an independent read-back verification
6. publish to the derived index

Nothing is published and no success is reported unless stage 5 succeeded.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..catalog.index import CatalogIndex
from ..catalog.schemas import PresentationMetadata
from ..catalog.store import CatalogError, CatalogStore
from ..config import Settings
from ..validate import check_document_structure
from .conversion_chain import ConversionChain, ConversionJob, ConversionResult
from .renderer_probe import RendererProbe
from .temp_file_manager import remove_directory
from .timestamps import utcnow

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a conversion result could not be saved and verified."""

    def __init__(self, message: str, presentation_id: str, details: Optional[str] = None):
        super().__init__(message)
        self.presentation_id = presentation_id
        self.details = details or message


def build_record(presentation_id: str, original_name: str, metadata: PresentationMetadata,
                 result: ConversionResult) -> Dict[str, Any]:
    """Assemble the catalog record for a finished conversion."""
    return {
        "id": presentation_id,
        "originalName": original_name,
        "title": metadata.resolved_title(original_name),
        "summary": metadata.summary,
        "author": metadata.author,
        "authorId": metadata.author_id,
        "topics": list(metadata.topics),
        "slides": list(result.slides),
        "slideTexts": list(result.slide_texts),
        "isPlaceholder": result.is_placeholder,
        "viewCount": 0,
        "isDeleted": False,
        "converted": utcnow(),
    }


class IngestPipeline:
    """Runs one upload through probe, conversion and commit."""

    def __init__(self, settings: Settings, probe: RendererProbe, chain: ConversionChain,
                 store: CatalogStore, index: CatalogIndex):
        self.settings = settings
        self.probe = probe
        self.chain = chain
        self.store = store
        self.index = index

    def run(self, upload_path: Union[str, Path], original_name: str,
            metadata: PresentationMetadata, work_dir: Union[str, Path]) -> Dict[str, Any]:
        """
        Convert and commit an uploaded deck.

        Args:
            upload_path: Saved upload inside the request workspace
            original_name: Client-supplied filename
            metadata: Validated form fields
            work_dir: Request workspace for intermediate files

        Returns:
            The convert response body

        Raises:
            PersistenceError: If the record could not be saved or verified
        """
        upload_path = Path(upload_path)
        presentation_id = str(uuid.uuid4())
        title = metadata.resolved_title(original_name)
        logger.info(f"Converting {original_name} as presentation {presentation_id}")

        warnings = self._check_structure(upload_path)

        renderer_available = self.probe.probe()
        probe_result = self.probe.last_result
        if renderer_available and probe_result is not None and probe_result.binary:
            self.chain.renderer.binary = probe_result.binary

        job = ConversionJob(
            presentation_id,
            output_dir=self.settings.presentation_dir(presentation_id),
            work_dir=Path(work_dir),
            title=title,
        )
        result = self.chain.convert(upload_path, job, renderer_available)

        record = build_record(presentation_id, original_name, metadata, result)
        saved = self._commit(record, job)
        self.index.publish(saved)

        response = {
            "id": presentation_id,
            "originalName": original_name,
            "title": saved["title"],
            "slideCount": saved["slideCount"],
            "slides": saved["slides"],
            "slideTexts": saved["slideTexts"],
            "topics": saved["topics"],
            "isPlaceholder": saved["isPlaceholder"],
            "status": result.status,
        }
        if result.message:
            response["message"] = result.message
        if warnings:
            response["warnings"] = warnings
        logger.info(
            f"Presentation {presentation_id} committed: {saved['slideCount']} slides via {result.strategy}"
        )
        return response

    def _check_structure(self, upload_path: Path) -> List[str]:
        return check_document_structure(upload_path, upload_path.suffix.lower())

    def _commit(self, record: Dict[str, Any], job: ConversionJob) -> Dict[str, Any]:
        presentation_id = record["id"]
        try:
            saved = self.store.save(record)
        except CatalogError as e:
            self._discard(job)
            raise PersistenceError(
                "Failed to save presentation to database", presentation_id, details=str(e)
            ) from e

        if not self.store.verify(presentation_id, expected_slide_count=len(record["slides"])):
            self._discard(job)
            raise PersistenceError(
                "Failed to save presentation to database",
                presentation_id,
                details="Presentation could not be verified after saving",
            )
        return saved

    def _discard(self, job: ConversionJob) -> None:
        logger.error(f"Discarding slides of unpersisted presentation {job.presentation_id}")
        remove_directory(job.output_dir)
