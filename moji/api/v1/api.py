"""
API v1 router
API v1 路由配置
"""

from fastapi import APIRouter

from moji.api.v1.endpoints import health, rooms, games, puzzles, ui_copy, admin, websocket

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(games.router, prefix="/games", tags=["games"])
api_router.include_router(puzzles.router, prefix="/puzzles", tags=["puzzles"])
api_router.include_router(ui_copy.router, prefix="/ui-copy", tags=["ui-copy"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
