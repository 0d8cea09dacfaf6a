import asyncio
import re
from typing import Iterable, Optional

from dotenv import load_dotenv
from pgvector.asyncpg import register_vector
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from vaultrag.config import settings, validate_database_url
from vaultrag.core.logging import get_logger
from vaultrag.schema.vectors import VECTOR_TABLES

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None

_LANGUAGE_PATTERN = re.compile(r"^[a-z_]+$")


def regconfig_literal(language: str) -> str:
    """Validate a text-search configuration name and return it as a SQL literal."""
    if not _LANGUAGE_PATTERN.match(language or ""):
        raise ValueError(f"Invalid full-text search language: {language!r}")
    return f"'{language}'::regconfig"


def to_async_url(database_url: str) -> str:
    """Point a plain postgresql:// URL at the asyncpg driver."""
    if database_url.startswith("postgresql+"):
        return database_url
    if database_url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + database_url[len("postgresql://"):]
    return database_url


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Build an asyncpg engine with pooling and pgvector type registration.

    Pool settings:
    - pool_size: persistent connections kept open
    - max_overflow: temporary connections allowed during spikes
    - pool_pre_ping: test connections before use (stale connection errors)
    - pool_recycle: recycle connections after N seconds (idle timeouts)
    """
    url = to_async_url(validate_database_url(database_url or settings.database_url))

    engine = create_async_engine(
        url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _register_vector(dbapi_connection, connection_record):
        dbapi_connection.run_async(register_vector)

    logger.info(
        "database_engine_configured",
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        total_connections=settings.DB_POOL_SIZE + settings.DB_MAX_OVERFLOW,
    )
    return engine


def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


async def dispose_engine():
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def index_statements(table_name: str, language: str = "english") -> Iterable[str]:
    """DDL for the indexes every chunk table carries."""
    return [
        # HNSW for nearest-neighbour search on cosine distance
        f"CREATE INDEX IF NOT EXISTS {table_name}_embedding_hnsw_idx "
        f"ON {table_name} USING hnsw (embedding vector_cosine_ops)",
        # GIN over the same expression the lexical search ranks with
        f"CREATE INDEX IF NOT EXISTS {table_name}_content_fts_idx "
        f"ON {table_name} USING gin (to_tsvector({regconfig_literal(language)}, content))",
        f"CREATE INDEX IF NOT EXISTS {table_name}_path_idx ON {table_name} (path)",
    ]


async def create_vector_extension(database_url: str):
    """
    Create the pgvector extension over a connection that does not register
    the vector codec (registration fails until the type exists).
    """
    bootstrap = create_async_engine(to_async_url(database_url), poolclass=NullPool)
    try:
        async with bootstrap.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    finally:
        await bootstrap.dispose()


async def init_db(
    engine: Optional[AsyncEngine] = None,
    language: Optional[str] = None,
    max_retries: int = 5,
    retry_delay: float = 2.0,
):
    """
    Initializes the database: pgvector extension, one table per supported
    dimension, and the vector / full-text / path indexes on each.
    """
    engine = engine or get_engine()
    language = language or settings.fts_language
    tables = [model.__table__ for model in VECTOR_TABLES.values()]

    for i in range(max_retries):
        try:
            logger.info("connecting_to_database", attempt=i + 1)

            # 1. Enable Vector Extension
            await create_vector_extension(engine.url.render_as_string(hide_password=False))

            async with engine.begin() as conn:
                # 2. Create Tables
                await conn.run_sync(SQLModel.metadata.create_all, tables=tables)

                # 3. Create Indexes
                logger.info("creating_indexes", tables=len(tables))
                for table in tables:
                    for statement in index_statements(table.name, language):
                        await conn.execute(text(statement))

            logger.info("database_initialized", status="success", tables=[t.name for t in tables])
            return
        except Exception as e:
            logger.error("database_connection_failed", error=str(e), attempt=i + 1)
            if i < max_retries - 1:
                logger.info("retrying_connection", delay=retry_delay)
                await asyncio.sleep(retry_delay)
            else:
                logger.critical("initialization_failed")
                raise
