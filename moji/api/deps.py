"""
Shared API dependencies
API 公共依赖 - 服务实例与管理员认证
"""

import hashlib
from datetime import datetime, timezone
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from moji.core.config import settings
from moji.core.database import get_db
from moji.services.game import GameEngine
from moji.services.puzzles import PuzzleService, get_puzzle_service
from moji.services.realtime import RealtimeBroker, get_realtime_broker
from moji.services.room import RoomService
from moji.services.settings import SettingsService
from moji.services.ui_copy import UICopyService


async def get_room_service(
    db: AsyncSession = Depends(get_db),
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    broker: RealtimeBroker = Depends(get_realtime_broker),
) -> RoomService:
    """获取房间服务依赖"""
    return RoomService(db, puzzle_service, broker)


async def get_game_engine(
    db: AsyncSession = Depends(get_db),
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    broker: RealtimeBroker = Depends(get_realtime_broker),
) -> GameEngine:
    """获取游戏引擎依赖"""
    return GameEngine(db, puzzle_service, broker)


async def get_settings_service(db: AsyncSession = Depends(get_db)) -> SettingsService:
    return SettingsService(db)


async def get_ui_copy_service(db: AsyncSession = Depends(get_db)) -> UICopyService:
    return UICopyService(db)


# === 管理员Token ===

def generate_admin_token(password: str) -> str:
    """生成管理员token(密码+日期，每天有效)"""
    date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    token_source = f"{password}:{date_str}:admin_secret"
    return hashlib.sha256(token_source.encode()).hexdigest()


def verify_admin_token(token: str) -> bool:
    return token == generate_admin_token(settings.ADMIN_PASSWORD)


async def get_admin_token(x_admin_token: str = Header(None)) -> str:
    """验证管理员Token依赖"""
    if not x_admin_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication required"
        )
    if not verify_admin_token(x_admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token invalid or expired"
        )
    return x_admin_token
