# database/connection.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from database.models import Base
from config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)


def create_engine(url: str) -> AsyncEngine:
    """Postgres (asyncpg) gets a connection pool, sqlite doesn't support one"""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


engine = create_engine(DATABASE_URL)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db(reset: bool = False, bind: AsyncEngine = None):
    """Create the users, accounts, debts and orders tables"""
    bind = bind or engine
    try:
        async with bind.begin() as conn:
            if reset:
                logger.warning("⚠️ Dropping all tables and resetting database...")
                await conn.run_sync(Base.metadata.drop_all)

            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"✅ Database ready ({', '.join(sorted(Base.metadata.tables))})")
    except Exception as e:
        logger.error(f"❌ Error initializing database: {e}")
        raise


async def close_db():
    await engine.dispose()
    logger.info("🔌 Database connections closed")
