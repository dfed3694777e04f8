"""
Catalog router: read, update, delete and filter presentations, plus
per-user "seen" tracking.

List views try the store first and fall back to the in-memory index when
the database is unavailable.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..utils.error_handling import ErrorCode, create_error_response, not_found_response
from ..utils.temp_file_manager import remove_directory
from .index import CatalogIndex
from .schemas import PresentationUpdate
from .store import CatalogError, CatalogStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])

# Fields returned by the list views
SUMMARY_FIELDS = (
    "id", "originalName", "title", "summary", "author", "topics",
    "slideCount", "converted", "isPlaceholder", "viewCount",
)


def _store(request: Request) -> CatalogStore:
    return request.app.state.store


def _index(request: Request) -> CatalogIndex:
    return request.app.state.index


def _summary(record: Dict[str, Any]) -> Dict[str, Any]:
    return {field: record.get(field) for field in SUMMARY_FIELDS}


def _records_for_topic(store: CatalogStore, index: CatalogIndex, topic: str) -> List[Dict[str, Any]]:
    """Store query first, cached topic index when the store has nothing or fails."""
    try:
        records = store.find_by_topic(topic)
    except CatalogError as e:
        logger.warning(f"Database error for topic '{topic}', using memory cache: {e}")
        return index.records_for_topic(topic)

    if records:
        for record in records:
            index.publish(record)
        return records

    cached = index.records_for_topic(topic)
    if cached:
        logger.info(f"Using memory cache fallback for topic '{topic}': {len(cached)} presentations")
    return cached


#-- Single presentation
#-------------------------------------------------------------------------------
@router.get("/presentation/{presentation_id}")
async def get_presentation(request: Request, presentation_id: str, userId: Optional[str] = None):
    """Full presentation record; ?userId= counts a view and marks it seen"""
    store, index = _store(request), _index(request)

    record = index.get(presentation_id)
    if record is None:
        try:
            record = await run_in_threadpool(store.find, presentation_id)
        except CatalogError as e:
            return create_error_response(ErrorCode.DATABASE_ERROR, details=str(e), message="Database error")
        if record is None:
            return not_found_response(presentation_id)
        index.publish(record)

    if userId:
        try:
            counted = await run_in_threadpool(store.increment_view, presentation_id)
        except CatalogError as e:
            logger.error(f"Error updating view count for {presentation_id}: {e}")
        else:
            if not counted:
                # Row vanished or was deleted by another process
                logger.warning(f"Dropping stale cache entry for {presentation_id}")
                index.remove(presentation_id)
                return not_found_response(presentation_id)
            record["viewCount"] = record.get("viewCount", 0) + 1
            index.publish(record)
        index.mark_seen(userId, presentation_id)

    return JSONResponse(content=record)


@router.put("/presentation/{presentation_id}")
async def update_presentation(request: Request, presentation_id: str, update: PresentationUpdate):
    """Partial metadata update (title, summary, author, topics)"""
    try:
        updated = await run_in_threadpool(_store(request).update_metadata, presentation_id, update.changes())
    except CatalogError as e:
        return create_error_response(ErrorCode.DATABASE_ERROR, details=str(e), message="Failed to update presentation")

    if updated is None:
        return not_found_response(presentation_id)

    _index(request).refresh(updated)
    return JSONResponse(content={"success": True, "presentation": updated})


@router.delete("/presentation/{presentation_id}")
async def delete_presentation(request: Request, presentation_id: str):
    """Soft delete: the row is kept with isDeleted=true, slide files are removed"""
    try:
        deleted = await run_in_threadpool(_store(request).soft_delete, presentation_id)
    except CatalogError as e:
        return create_error_response(ErrorCode.DATABASE_ERROR, details=str(e), message="Failed to delete presentation")

    if not deleted:
        return not_found_response(presentation_id)

    slides_dir = request.app.state.settings.presentation_dir(presentation_id)
    if not remove_directory(slides_dir):
        logger.error(f"Slide files for {presentation_id} could not be removed from {slides_dir}")
    _index(request).remove(presentation_id)

    return JSONResponse(content={"success": True, "message": "Presentation deleted"})


#-- List views
#-------------------------------------------------------------------------------
@router.get("/presentations")
async def list_presentations(request: Request, topic: Optional[str] = None, authorId: Optional[str] = None):
    """All non-deleted presentations, newest first"""
    store, index = _store(request), _index(request)
    try:
        records = await run_in_threadpool(store.list, topic, authorId)
    except CatalogError as e:
        logger.warning(f"Database error listing presentations, using memory cache: {e}")
        records = index.records_for_topic(topic) if topic else index.records()
        if authorId:
            records = [r for r in records if r.get("authorId") == authorId]
    else:
        for record in records:
            index.publish(record)

    return JSONResponse(content={"presentations": [_summary(r) for r in records]})


@router.get("/presentations/topic/{topic}")
async def presentations_by_topic(request: Request, topic: str):
    """Presentations with a topic matching the given pattern, case-insensitively"""
    records = await run_in_threadpool(_records_for_topic, _store(request), _index(request), topic)
    return JSONResponse(content={"presentations": records})


@router.get("/topics")
async def list_topics(request: Request):
    """Topic names with presentation counts, most used first"""
    store, index = _store(request), _index(request)
    try:
        topics = await run_in_threadpool(store.topic_counts)
    except CatalogError as e:
        logger.warning(f"Database error getting topics, using memory cache: {e}")
        topics = []
    return JSONResponse(content={"topics": topics or index.topics()})


#-- User history
#-------------------------------------------------------------------------------
@router.get("/user/{userId}/seen/{presentation_id}")
async def has_seen(request: Request, userId: str, presentation_id: str):
    return {"seen": _index(request).has_seen(userId, presentation_id)}


@router.post("/user/{userId}/seen/{presentation_id}")
async def mark_seen(request: Request, userId: str, presentation_id: str):
    _index(request).mark_seen(userId, presentation_id)
    return {"success": True}


@router.get("/user/{userId}/unseen/{topic}")
async def unseen_presentations(request: Request, userId: str, topic: str):
    """Presentations for a topic the user has not viewed yet"""
    index = _index(request)
    records = await run_in_threadpool(_records_for_topic, _store(request), index, topic)
    seen = set(index.seen_ids(userId))
    return JSONResponse(content={"presentations": [r for r in records if r["id"] not in seen]})


#-- Diagnostics
#-------------------------------------------------------------------------------
@router.get("/diag/{presentation_id}")
async def diagnose_presentation(request: Request, presentation_id: str):
    """What is actually persisted for a presentation, deleted or not"""
    try:
        record = await run_in_threadpool(_store(request).find, presentation_id, True)
    except CatalogError as e:
        return create_error_response(ErrorCode.DATABASE_ERROR, details=str(e), message="Database error")
    if record is None:
        return not_found_response(presentation_id)

    slides = record["slides"]
    slide_texts = record["slideTexts"]
    return {
        "id": record["id"],
        "fieldsPresent": sorted(k for k, v in record.items() if v not in (None, "", [])),
        "slideCount": record["slideCount"],
        "slidesLength": len(slides),
        "slideTextsLength": len(slide_texts),
        "lengthsMatch": len(slides) == len(slide_texts),
        "firstSlideUrl": slides[0] if slides else None,
        "firstSlideText": slide_texts[0] if slide_texts else None,
        "isPlaceholder": record["isPlaceholder"],
        "isDeleted": record["isDeleted"],
        "inMemory": _index(request).get(presentation_id) is not None,
    }
