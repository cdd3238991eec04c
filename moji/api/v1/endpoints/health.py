"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter

from moji.core.database import health_check as db_health_check
from moji.core.redis_client import redis_health_check
from moji.websocket.connection_manager import connection_manager

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    基础健康检查端点
    """
    return {
        "status": "healthy",
        "service": "moji-game-server",
        "version": "1.0.0",
        "websocket_connections": connection_manager.get_connection_count(),
    }


@router.get("/health/database")
async def database_health():
    """
    Database connection health check
    数据库连接健康检查
    """
    return await db_health_check()


@router.get("/health/redis")
async def redis_health():
    """
    Redis connection health check
    Redis连接健康检查
    """
    return await redis_health_check()
