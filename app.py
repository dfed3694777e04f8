import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from slidedeck import __version__
from slidedeck.config import SLIDES_URL_PREFIX, Settings, get_settings

# Import the conversion and catalog routers
from slidedeck.router import router as convert_router
from slidedeck.catalog.router import router as catalog_router

from slidedeck.catalog.database import create_catalog_engine, init_catalog, make_session_factory
from slidedeck.catalog.index import CatalogIndex
from slidedeck.catalog.store import CatalogError, CatalogStore

# Conversion pipeline components
from slidedeck.utils.conversion_chain import ConversionChain
from slidedeck.utils.ingest import IngestPipeline
from slidedeck.utils.libreoffice import LibreOfficeRenderer
from slidedeck.utils.page_extractor import PageExtractor
from slidedeck.utils.placeholder import PlaceholderGenerator
from slidedeck.utils.renderer_probe import RendererProbe
from slidedeck.utils.timestamps import utc_timestamp

# Import centralized error handling
from slidedeck.utils.error_handling import ErrorCode, create_error_response

# Import centralized logging configuration
from slidedeck.utils.logging_config import get_logger, setup_logging


setup_logging()
logger = get_logger()

service_router = APIRouter(tags=["service"])


@service_router.get("/", response_class=PlainTextResponse)
async def root():
    return f"Slide Deck Conversion Server v{__version__} is running"


@service_router.get("/ping")
async def general_ping():
    return {"success": True, "data": "PONG!"}


@service_router.get("/ping-all")
async def ping_all(request: Request):
    """Check health of the renderer, the PDF tools and the database"""
    probe: RendererProbe = request.app.state.probe
    store: CatalogStore = request.app.state.store

    results = {}

    binary = probe.locate()
    version = await run_in_threadpool(probe.version, binary) if binary else None
    results["libreoffice"] = {
        "status": "healthy" if binary else "unavailable",
        "binary": binary,
        "version": version,
    }

    tools = probe.tools_status()
    results["poppler"] = {
        "status": "healthy" if all(tools.values()) else "unavailable",
        "tools": tools,
    }

    db_ok = await run_in_threadpool(store.ping)
    results["database"] = {"status": "healthy" if db_ok else "unreachable"}

    all_healthy = all(result["status"] == "healthy" for result in results.values())

    return {
        "success": all_healthy,
        "data": "ALL_SERVICES_HEALTHY" if all_healthy else "SOME_SERVICES_UNHEALTHY",
        "services": results,
    }


@service_router.get("/status")
async def database_status(request: Request):
    """Database connectivity and cache synchronisation"""
    state = request.app.state
    store: CatalogStore = state.store
    index: CatalogIndex = state.index

    connected = await run_in_threadpool(store.ping)
    try:
        db_count = await run_in_threadpool(store.count) if connected else 0
        sample_db_ids = await run_in_threadpool(store.sample_ids) if connected else []
    except CatalogError as e:
        return create_error_response(
            ErrorCode.DATABASE_ERROR,
            details=str(e),
            message="Database error",
            connected=connected,
            version=__version__,
        )

    memory_count = index.size
    logger.info(f"Status check: DB({db_count}) Memory({memory_count}) Connected({connected})")

    last_probe = state.probe.last_result
    return {
        "connected": connected,
        "presentationCount": db_count,
        "memoryPresentationCount": memory_count,
        "version": __version__,
        "syncStatus": "synced" if db_count == memory_count else "out_of_sync",
        "sampleDatabaseIds": sample_db_ids,
        "sampleMemoryIds": index.sample_ids(),
        "databaseUrl": state.settings.masked_database_url(),
        "renderer": last_probe.to_dict() if last_probe else None,
        "timestamp": utc_timestamp(),
    }


@service_router.post("/admin/sync")
async def admin_sync(request: Request):
    """Rebuild the in-memory cache and topic index from the database"""
    store: CatalogStore = request.app.state.store
    index: CatalogIndex = request.app.state.index

    logger.info("Manual sync requested")
    try:
        memory_count = await run_in_threadpool(index.rebuild)
        db_count = await run_in_threadpool(store.count)
    except CatalogError as e:
        return create_error_response(ErrorCode.SYNC_FAILED, details=str(e))

    return {
        "success": True,
        "message": f"Sync completed: {memory_count} presentations loaded from database",
        "databaseCount": db_count,
        "memoryCount": memory_count,
    }


@service_router.get("/clear-cache")
async def clear_cache(request: Request):
    request.app.state.index.clear_cache()
    return {"message": "Cache cleared"}


@service_router.get("/debug/slides/{presentation_id}")
async def debug_slides(request: Request, presentation_id: str):
    """List the files present in a presentation's slide directory"""
    slides_root: Path = request.app.state.settings.slides_dir
    slides_dir = slides_root / presentation_id

    if slides_dir.resolve().parent != slides_root.resolve():
        return create_error_response(ErrorCode.INVALID_REQUEST, message="Invalid presentation id")

    if not slides_dir.is_dir():
        available = sorted(p.name for p in slides_root.iterdir()) if slides_root.is_dir() else []
        return JSONResponse(status_code=404, content={
            "error": "Slides directory not found for this presentation",
            "presentationId": presentation_id,
            "expectedPath": str(slides_dir),
            "availablePresentations": available,
        })

    files = sorted(p.name for p in slides_dir.iterdir())
    return {
        "success": True,
        "presentationId": presentation_id,
        "slidesDirectory": str(slides_dir),
        "filesFound": len(files),
        "files": files,
        "sampleUrls": [f"{SLIDES_URL_PREFIX}/{presentation_id}/{name}" for name in files[:5]],
    }


@service_router.get("/debug/filesystem")
async def debug_filesystem(request: Request):
    settings: Settings = request.app.state.settings
    slides_dir, work_dir = settings.slides_dir, settings.work_dir
    return {
        "slidesDirectory": str(slides_dir.resolve()),
        "slidesExists": slides_dir.is_dir(),
        "slidesContents": sorted(p.name for p in slides_dir.iterdir()) if slides_dir.is_dir() else [],
        "workDirectory": str(work_dir.resolve()),
        "workExists": work_dir.is_dir(),
    }


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Server error on {request.method} {request.url.path}: {exc}")
    return create_error_response(ErrorCode.INTERNAL_ERROR, details=str(exc))


def create_app(
    settings: Optional[Settings] = None,
    *,
    probe: Optional[RendererProbe] = None,
    renderer: Optional[LibreOfficeRenderer] = None,
    extractor: Optional[PageExtractor] = None,
    placeholders: Optional[PlaceholderGenerator] = None,
) -> FastAPI:
    """Build the application with its catalog and conversion pipeline."""
    settings = settings or get_settings()
    settings.slides_dir.mkdir(parents=True, exist_ok=True)
    settings.work_dir.mkdir(parents=True, exist_ok=True)

    engine = create_catalog_engine(settings.database_url, echo=settings.db_echo)
    init_catalog(engine)
    store = CatalogStore(make_session_factory(engine))
    index = CatalogIndex(store)

    probe = probe or RendererProbe(
        auto_install=settings.auto_install,
        probe_timeout=settings.probe_timeout,
        install_timeout=settings.install_timeout,
    )
    chain = ConversionChain(
        renderer or LibreOfficeRenderer(timeout=settings.render_timeout),
        extractor or PageExtractor(dpi=settings.slide_dpi, timeout=settings.page_timeout),
        placeholders or PlaceholderGenerator(),
        estimated_slide_count=settings.estimated_slide_count,
    )
    pipeline = IngestPipeline(settings, probe, chain, store, index)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Probe the renderer and warm the cache from the database."""
        if not await run_in_threadpool(probe.probe):
            logger.warning("LibreOffice is not installed. Uploads will get placeholder slides.")
        try:
            await run_in_threadpool(index.rebuild)
        except CatalogError as e:
            logger.error(f"Could not load presentations from database: {e}")
        logger.info(f"Slide Deck Conversion Server v{__version__} started with {index.size} presentations")
        yield
        engine.dispose()

    app = FastAPI(title="Slide Deck Conversion Server", version=__version__, lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.index = index
    app.state.probe = probe
    app.state.pipeline = pipeline

    app.include_router(service_router)
    app.include_router(convert_router)
    app.include_router(catalog_router)

    app.mount(SLIDES_URL_PREFIX, StaticFiles(directory=str(settings.slides_dir)), name="slides")

    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
