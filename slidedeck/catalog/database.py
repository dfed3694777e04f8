"""Engine and session factory for the catalog database."""

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(database: str) -> bool:
    return not database or database == ":memory:" or database.startswith("file::memory:")


def create_catalog_engine(database_url: str, echo: bool = False) -> Engine:
    url = make_url(database_url)
    connect_args = {}
    engine_kwargs = {}

    if url.get_backend_name() == "sqlite":
        # Requests run in the threadpool, so connections cross threads
        connect_args["check_same_thread"] = False
        if _is_memory_sqlite(url.database or ""):
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_recycle"] = 300

    logger.info(f"Creating catalog engine for {url.render_as_string(hide_password=True)}")
    return create_engine(database_url, echo=echo, connect_args=connect_args, **engine_kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_catalog(engine: Engine) -> None:
    """Create catalog tables if they do not exist."""
    Base.metadata.create_all(engine)
