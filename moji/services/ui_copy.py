"""
UI copy service
界面文案服务 - 所有面向用户的文字集中管理，首次读取时写入默认文案
"""

import copy
import json
import logging
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from moji.models.ui_copy import UICopySectionRow
from moji.schemas.ui_copy import UICopySection

logger = logging.getLogger(__name__)

DEFAULT_UI_COPY: List[dict] = [
    {
        "id": "game",
        "name": "Game Screen",
        "description": "Text shown during gameplay",
        "values": {
            "game.waiting": "Loading puzzles...",
            "game.error.title": "Failed to Load Puzzles",
            "game.error.reload": "Reload Game",
            "game.input.placeholder": "Type your guess...",
            "game.room.label": "Game:",
            "game.player.you": "YOU",
            "game.player.opponent": "OPP",
        },
    },
    {
        "id": "answer",
        "name": "Answer Reveal",
        "description": "Text shown when revealing answers",
        "values": {
            "answer.correct.you": "YOU WON!",
            "answer.correct.opponent": "OPPONENT WON!",
            "answer.label": "The answer was:",
            "answer.waiting": "Waiting for other player...",
            "answer.next.single": "READY FOR NEXT ROUND",
            "answer.next.multi": "READY FOR NEXT PUZZLE",
        },
    },
    {
        "id": "lobby",
        "name": "Lobby Screen",
        "description": "Text shown in the game lobby",
        "values": {
            "lobby.title": "MOJI!",
            "lobby.share": "Share this game with a friend",
            "lobby.copy": "COPY GAME LINK",
            "lobby.copied": "COPIED!",
            "lobby.copied.help": "Send this URL to a friend to play together",
            "lobby.join.alert": "wants to join!",
            "lobby.join.help": "Let them in to start the game",
            "lobby.join.button": "ADMIT",
            "lobby.ready": "Players ready!",
            "lobby.start": "START GAME",
            "lobby.waiting.host": "Waiting for Player 1 to let you in...",
            "lobby.starting": "Starting game...",
        },
    },
    {
        "id": "home",
        "name": "Home Screen",
        "description": "Text shown on the home page",
        "values": {
            "home.title": "MOJI!",
            "home.subtitle": "Guess the music from emojis",
            "home.button.start": "START NEW GAME",
            "home.button.join": "JOIN GAME",
            "home.button.admin": "ADMIN",
        },
    },
    {
        "id": "timer",
        "name": "Timer Messages",
        "description": "Text related to game timing",
        "values": {
            "timer.warning": "10 seconds left!",
            "timer.expired": "Time's up!",
        },
    },
    {
        "id": "clues",
        "name": "Clue System",
        "description": "Text for the clue/hint system",
        "values": {
            "clues.button": "GET CLUE",
            "clues.remaining": "clues left",
            "clues.none": "No clues remaining",
        },
    },
    {
        "id": "errors",
        "name": "Error Messages",
        "description": "Error messages shown to users",
        "values": {
            "error.room.notfound": "Room not found",
            "error.room.full": "Room is full",
            "error.connection": "Connection lost",
            "error.generic": "Something went wrong. Please try again.",
        },
    },
    {
        "id": "voice",
        "name": "Voice Input",
        "description": "Text for voice input features",
        "values": {
            "voice.permission": "Allow microphone access to use voice",
            "voice.listening": "Listening...",
            "voice.error": "Voice recognition failed",
            "voice.unsupported": "Voice input not supported in your browser",
        },
    },
]


def section_id_for_key(key: str) -> str:
    """Keys are namespaced by their section: 'lobby.start' lives in 'lobby'"""
    return key.split(".", 1)[0]


class UICopyService:
    """界面文案管理"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_rows(self) -> List[UICopySectionRow]:
        result = await self.db.execute(select(UICopySectionRow))
        rows = list(result.scalars().all())
        if rows:
            return rows

        # first read seeds the defaults
        try:
            await self._write_sections(copy.deepcopy(DEFAULT_UI_COPY))
            logger.info(f"[UI_COPY] Seeded {len(DEFAULT_UI_COPY)} default sections")
        except IntegrityError:
            # another request seeded first
            await self.db.rollback()
        result = await self.db.execute(select(UICopySectionRow))
        return list(result.scalars().all())

    async def _write_sections(self, sections: List[dict]):
        """
        用 sections 整体替换现有文案，单个事务内完成
        已有的分区原地更新，缺失的删除，新的插入
        """
        result = await self.db.execute(select(UICopySectionRow))
        existing = {row.id: row for row in result.scalars().all()}

        for section in sections:
            row = existing.pop(section["id"], None)
            if row is None:
                row = UICopySectionRow(id=section["id"])
                self.db.add(row)
            row.name = section.get("name", section["id"])
            row.description = section.get("description", "")
            row.values = dict(section.get("values", {}))

        for row in existing.values():
            await self.db.delete(row)
        await self.db.commit()

    async def get_sections(self) -> List[UICopySection]:
        rows = await self._load_rows()
        order = {s["id"]: i for i, s in enumerate(DEFAULT_UI_COPY)}
        rows.sort(key=lambda r: (order.get(r.id, len(order)), r.id))
        return [UICopySection.model_validate(row) for row in rows]

    async def get_section(self, section_id: str) -> Optional[UICopySection]:
        sections = await self.get_sections()
        return next((s for s in sections if s.id == section_id), None)

    async def get_value(self, key: str) -> str:
        """Text for a key; an unknown key comes back as itself"""
        section = await self.get_section(section_id_for_key(key))
        if not section:
            return key
        return section.values.get(key) or key

    async def get_row(self, section_id: str) -> Optional[UICopySectionRow]:
        await self._load_rows()
        return await self.db.get(UICopySectionRow, section_id)

    async def update_value(self, key: str, value: str) -> bool:
        """Set one key; keys whose section does not exist are ignored"""
        row = await self.get_row(section_id_for_key(key))
        if not row:
            logger.warning(f"[UI_COPY] No section for key {key}")
            return False
        # reassign so the JSON column is flagged dirty
        row.values = {**(row.values or {}), key: value}
        await self.db.commit()
        return True

    async def update_section(self, section_id: str, values: Dict[str, str]) -> bool:
        """Merge values into a section"""
        row = await self.get_row(section_id)
        if not row:
            return False
        row.values = {**(row.values or {}), **values}
        await self.db.commit()
        logger.info(f"[UI_COPY] Updated {len(values)} values in section {section_id}")
        return True

    async def reset_to_defaults(self) -> List[UICopySection]:
        await self._write_sections(copy.deepcopy(DEFAULT_UI_COPY))
        logger.info("[UI_COPY] Reset to defaults")
        return await self.get_sections()

    async def export_copy(self) -> str:
        sections = await self.get_sections()
        return json.dumps([s.model_dump() for s in sections], ensure_ascii=False, indent=2)

    async def import_copy(self, json_string: str) -> bool:
        """
        导入文案；必须是 JSON 数组，否则返回 False 且不修改现有文案
        """
        try:
            imported = json.loads(json_string)
        except json.JSONDecodeError as e:
            logger.error(f"[UI_COPY] Failed to import UI copy: {e}")
            return False

        if not isinstance(imported, list):
            return False

        try:
            sections = [UICopySection.model_validate(item) for item in imported]
        except ValueError as e:
            logger.error(f"[UI_COPY] Failed to import UI copy: {e}")
            return False

        ids = [s.id for s in sections]
        if len(set(ids)) != len(ids):
            logger.error(f"[UI_COPY] Failed to import UI copy: duplicate section ids in {ids}")
            return False

        try:
            await self._write_sections([s.model_dump() for s in sections])
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"[UI_COPY] Failed to import UI copy: {e}")
            return False

        logger.info(f"[UI_COPY] Imported {len(sections)} sections")
        return True


def get_ui_copy_service(db: AsyncSession) -> UICopyService:
    """Get UI copy service instance"""
    return UICopyService(db)


def require_section(section: Optional[UICopySection], section_id: str) -> UICopySection:
    if not section:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Section {section_id} not found"
        )
    return section
