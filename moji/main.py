"""
FastAPI main application entry point
MOJI! 双人 emoji 猜歌游戏服务主入口
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from moji.core.config import settings
from moji.core.database import init_db, close_db, health_check as db_health_check
from moji.core.redis_client import init_redis, close_redis, redis_health_check
from moji.api.v1.api import api_router
from moji.middleware.logging import LoggingMiddleware
from moji.services.realtime import realtime_broker
from moji.utils.rate_limit import voice_error_rate_limiter, safari_voice_error_rate_limiter
from moji.websocket.connection_manager import connection_manager
import asyncio
import logging
import os

# Configure logging - 同时输出到控制台和文件
log_level = getattr(logging, settings.LOG_LEVEL.upper())
log_format = settings.LOG_FORMAT

# 确保日志目录存在
log_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
os.makedirs(log_dir, exist_ok=True)
log_file = os.path.join(log_dir, 'app.log')

logging.basicConfig(
    level=log_level,
    format=log_format,
    handlers=[
        logging.StreamHandler(),  # 控制台输出
        logging.FileHandler(log_file, encoding='utf-8')  # 文件输出
    ]
)
logger = logging.getLogger(__name__)

# 减少 SQLAlchemy 和 httpx 的日志噪音
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

ERROR_LIMITER_CLEANUP_INTERVAL = 300


async def _cleanup_error_limiters():
    """Periodically drop stale client error entries"""
    while True:
        await asyncio.sleep(ERROR_LIMITER_CLEANUP_INTERVAL)
        removed = voice_error_rate_limiter.cleanup() + safari_voice_error_rate_limiter.cleanup()
        if removed:
            logger.debug(f"Dropped {removed} stale client error entries")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting MOJI! game server...")
    cleanup_task = None

    try:
        await init_db()
        await init_redis()
        await realtime_broker.start()
        cleanup_task = asyncio.create_task(_cleanup_error_limiters())
        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        if cleanup_task:
            cleanup_task.cancel()
            try:
                await cleanup_task
            except asyncio.CancelledError:
                pass

        for connection_id in list(connection_manager.active_connections):
            await connection_manager.disconnect(connection_id, "Server shutting down")

        await realtime_broker.stop()
        await close_redis()
        await close_db()
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="MOJI!",
    description="MOJI! - guess the music from emojis, two players head to head",
    version="1.0.0",
    lifespan=lifespan,
    # 禁用尾部斜杠重定向
    redirect_slashes=False
)

app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "MOJI! game server API",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Health check covering the database, Redis and realtime delivery"""
    database = await db_health_check()
    redis = await redis_health_check()
    overall = "healthy" if database.get("status") == "healthy" else "degraded"
    return {
        "status": overall,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "database": database,
        "redis": redis,
        "realtime": {
            "mode": "redis" if realtime_broker.uses_redis else "in-process",
            "connections": connection_manager.get_connection_count(),
            "channels": connection_manager.get_channel_count(),
        },
    }
