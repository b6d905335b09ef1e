from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from kvstream.config import get_settings

settings = get_settings()

engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=1800,
)

# StreamWorker opens one session per tick
async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
)
