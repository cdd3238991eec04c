"""
Game settings service
游戏设置服务 - 单行 game_settings 表，未保存时使用配置默认值
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from moji.core.config import settings as app_settings
from moji.models.game_settings import GameSettingsRow
from moji.schemas.settings import GameSettings, GameSettingsResponse

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def default_settings() -> GameSettingsResponse:
    return GameSettingsResponse(
        round_timer=app_settings.DEFAULT_ROUND_TIMER,
        puzzles_per_game=app_settings.DEFAULT_PUZZLES_PER_GAME,
        win_condition=app_settings.DEFAULT_WIN_CONDITION,
        countdown_duration=app_settings.DEFAULT_COUNTDOWN_DURATION,
        puzzle_order=app_settings.DEFAULT_PUZZLE_ORDER,
        sequential_index=app_settings.DEFAULT_SEQUENTIAL_INDEX,
        version=0,
    )


class SettingsService:
    """游戏设置读写"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self) -> Optional[GameSettingsRow]:
        result = await self.db.execute(
            select(GameSettingsRow).where(GameSettingsRow.id == SETTINGS_ROW_ID)
        )
        return result.scalar_one_or_none()

    async def get_settings(self) -> GameSettingsResponse:
        row = await self._get_row()
        if not row:
            return default_settings()
        return GameSettingsResponse(
            round_timer=row.round_timer,
            puzzles_per_game=row.puzzles_per_game,
            win_condition=row.win_condition,
            countdown_duration=row.countdown_duration,
            puzzle_order=row.puzzle_order,
            sequential_index=row.sequential_index,
            version=row.version,
        )

    async def save_settings(self, new: GameSettings, expected_version: Optional[int] = None) -> GameSettingsResponse:
        """
        保存设置
        expected_version 不为空时做 compare-and-set，版本不一致返回 409
        """
        values = {
            "round_timer": new.round_timer,
            "puzzles_per_game": new.puzzles_per_game,
            "win_condition": new.win_condition,
            "countdown_duration": new.countdown_duration,
            "puzzle_order": new.puzzle_order.value,
            "sequential_index": new.sequential_index,
        }

        row = await self._get_row()
        if row is None:
            if expected_version not in (None, 0):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Settings were changed by someone else"
                )
            self.db.add(GameSettingsRow(id=SETTINGS_ROW_ID, version=1, **values))
            await self.db.commit()
            logger.info(f"[SETTINGS] Created game settings: {values}")
            return await self.get_settings()

        stmt = update(GameSettingsRow).where(GameSettingsRow.id == SETTINGS_ROW_ID)
        if expected_version is not None:
            stmt = stmt.where(GameSettingsRow.version == expected_version)
        stmt = stmt.values(version=GameSettingsRow.version + 1, **values)

        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning(f"[SETTINGS] Stale save rejected, expected version {expected_version}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Settings were changed by someone else"
            )

        await self.db.commit()
        self.db.expire_all()
        logger.info(f"[SETTINGS] Saved game settings: {values}")
        return await self.get_settings()

    # Convenience getters
    async def get_round_timer(self) -> int:
        return (await self.get_settings()).round_timer

    async def get_puzzles_per_game(self) -> int:
        return (await self.get_settings()).puzzles_per_game

    async def get_win_condition(self) -> int:
        return (await self.get_settings()).win_condition

    async def get_countdown_duration(self) -> int:
        return (await self.get_settings()).countdown_duration


def get_settings_service(db: AsyncSession) -> SettingsService:
    """Get settings service instance"""
    return SettingsService(db)
