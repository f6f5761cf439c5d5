"""Async SQLAlchemy engine and store factory."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import Settings
from db.memory_store import InMemoryStore
from db.sql_store import SqlAlchemyStore
from db.store import Store
from models.base import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by the settings."""
    options: dict = {"echo": False, "pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create the collection tables if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def create_store(settings: Settings) -> tuple[Store, AsyncEngine | None]:
    """
    Build the store selected by STORE_BACKEND.

    Returns the store and, for the SQL backend, the engine the caller must
    dispose on shutdown.
    """
    if settings.store_backend == "memory":
        return InMemoryStore(), None

    engine = create_engine(settings)
    await init_models(engine)
    store = SqlAlchemyStore(
        create_session_factory(engine),
        operation_timeout=settings.store_operation_timeout_seconds,
    )
    return store, engine
