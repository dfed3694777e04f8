"""
Conversion router for the upload endpoints.

POST /convert and its alias POST /presentations accept a slide deck in the
"presentation" multipart field plus optional metadata form fields, run it
through the ingest pipeline and answer with the committed record.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError

from .catalog.schemas import PresentationMetadata
from .utils.error_handling import ErrorCode, create_error_response
from .utils.ingest import PersistenceError
from .utils.temp_file_manager import TempWorkspace, UploadTooLargeError
from .validate import ValidationError, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversions"])


#-- Upload + convert
#-------------------------------------------------------------------------------
@router.post("/convert")
async def convert_presentation(
    request: Request,
    presentation: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    summary: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    authorId: Optional[str] = Form(None),
    topics: Optional[List[str]] = Form(None),
):
    """Convert an uploaded PowerPoint or Keynote deck into slide images"""
    return await _convert_upload(request, presentation, title, summary, author, authorId, topics)


@router.post("/presentations")
async def create_presentation(
    request: Request,
    presentation: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    summary: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    authorId: Optional[str] = Form(None),
    topics: Optional[List[str]] = Form(None),
):
    """Alias of POST /convert"""
    return await _convert_upload(request, presentation, title, summary, author, authorId, topics)


async def _convert_upload(
    request: Request,
    presentation: Optional[UploadFile],
    title: Optional[str],
    summary: Optional[str],
    author: Optional[str],
    author_id: Optional[str],
    topics: Optional[List[str]],
):
    state = request.app.state
    settings = state.settings

    filename = presentation.filename if presentation is not None else None
    try:
        validate_upload(
            filename,
            size=presentation.size if presentation is not None else None,
            max_bytes=settings.max_upload_bytes,
        )
        metadata = PresentationMetadata(
            title=title, summary=summary, author=author, authorId=author_id, topics=topics
        )
    except ValidationError as e:
        return create_error_response(e.error_code, message=str(e))
    except SchemaValidationError as e:
        return create_error_response(ErrorCode.INVALID_REQUEST, details=str(e),
                                     message="Invalid presentation metadata")

    original_name = Path(filename).name
    logger.info(f"Processing upload: {original_name}")
    logger.info(f"Metadata: title={metadata.resolved_title(original_name)!r} author={metadata.author!r} "
                f"topics={metadata.topics}")

    with TempWorkspace(settings.work_dir, prefix="convert") as workspace:
        try:
            upload_path = await workspace.save_upload(presentation, settings.max_upload_bytes)
        except UploadTooLargeError as e:
            return create_error_response(ErrorCode.FILE_TOO_LARGE, message=str(e))

        try:
            # The pipeline blocks on external processes for the whole conversion
            result = await run_in_threadpool(
                state.pipeline.run, upload_path, original_name, metadata, workspace.path
            )
        except PersistenceError as e:
            return create_error_response(
                ErrorCode.DATABASE_ERROR,
                details=e.details,
                message=str(e),
                id=e.presentation_id,
                status="database_error",
            )

    return JSONResponse(content=result)
