from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings

Base = declarative_base()


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create the async engine; SQLite connections get foreign keys switched on."""
    db_engine = create_async_engine(url, echo=echo, **kwargs)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_models(db_engine: AsyncEngine = engine) -> None:
    # Registers every table on Base.metadata before create_all
    import taskboard.models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
