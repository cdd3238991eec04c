"""
Database configuration and connection management
数据库配置和连接管理 - 健康检查与断线重连
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy import text
from moji.core.config import settings
import logging
import asyncio
import time
from typing import Optional

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def _engine_options(url: str) -> dict:
    """SQLite has no connection pool to tune"""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


class DatabaseManager:
    """Database manager with connection recovery"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.DATABASE_URL
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._connection_retries = 0
        self._max_retries = 3
        self._retry_delay = 1.0
        self._health_check_interval = 30
        self._last_health_check = 0

    async def initialize(self):
        """Initialize database engine and session factory"""
        try:
            self.engine = create_async_engine(
                self.url,
                echo=False,
                **_engine_options(self.url),
            )
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=True,
            )

            await self._test_connection()
            logger.info("Database manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database manager: {e}")
            raise

    async def _test_connection(self) -> bool:
        """Test database connection health"""
        try:
            if not self.engine:
                return False

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))

            self._connection_retries = 0
            self._last_health_check = time.time()
            return True

        except (DisconnectionError, OperationalError) as e:
            logger.warning(f"Database connection test failed: {e}")
            return False

    async def _reconnect(self) -> bool:
        """Attempt to reconnect to database with exponential backoff"""
        if self._connection_retries >= self._max_retries:
            logger.error("Maximum database reconnection attempts exceeded")
            return False

        self._connection_retries += 1
        delay = self._retry_delay * (2 ** (self._connection_retries - 1))

        logger.info(f"Attempting database reconnection {self._connection_retries}/{self._max_retries} after {delay}s")
        await asyncio.sleep(delay)

        try:
            if self.engine:
                await self.engine.dispose()
            await self.initialize()
            return True

        except Exception as e:
            logger.error(f"Database reconnection attempt {self._connection_retries} failed: {e}")
            return False

    async def health_check(self) -> bool:
        """Perform periodic health check"""
        if not self.engine:
            return False

        current_time = time.time()
        if current_time - self._last_health_check < self._health_check_interval:
            return True

        if await self._test_connection():
            return True

        return await self._reconnect()

    async def create_all(self):
        """Create all tables registered on Base"""
        # Import all models to ensure they are registered
        from moji.models import room, player, game_settings, ui_copy  # noqa

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()


async def init_db():
    """Initialize database connection and create tables if needed"""
    try:
        await db_manager.initialize()
        await db_manager.create_all()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def get_db() -> AsyncSession:
    """Dependency to get database session"""
    if not db_manager.session_factory:
        await db_manager.initialize()

    session = db_manager.session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_db():
    """Close database connections"""
    await db_manager.close()


async def health_check() -> dict:
    """Database health check for monitoring"""
    try:
        is_healthy = await db_manager.health_check()
        return {
            "status": "healthy" if is_healthy else "unhealthy",
            "connection_retries": db_manager._connection_retries,
            "last_health_check": db_manager._last_health_check
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
            "connection_retries": db_manager._connection_retries
        }
