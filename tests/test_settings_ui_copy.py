"""
Game settings and UI copy tests
游戏设置与界面文案测试
"""

import json

import pytest
from fastapi import HTTPException

from moji.core.config import settings as app_settings
from moji.schemas.settings import GameSettings, PuzzleOrder
from moji.services.settings import SettingsService
from moji.services.ui_copy import UICopyService, DEFAULT_UI_COPY, section_id_for_key


class TestSettingsService:
    """游戏设置测试"""

    @pytest.mark.asyncio
    async def test_defaults_before_first_save(self, db_session):
        current = await SettingsService(db_session).get_settings()
        assert current.version == 0
        assert current.round_timer == app_settings.DEFAULT_ROUND_TIMER
        assert current.win_condition == app_settings.DEFAULT_WIN_CONDITION
        assert current.puzzle_order == PuzzleOrder.RANDOM

    @pytest.mark.asyncio
    async def test_save_creates_then_updates(self, db_session):
        service = SettingsService(db_session)
        saved = await service.save_settings(GameSettings(round_timer=20, win_condition=3))
        assert saved.version == 1
        assert saved.round_timer == 20

        saved = await service.save_settings(GameSettings(round_timer=40, puzzle_order="sequential"), expected_version=1)
        assert saved.version == 2
        assert saved.round_timer == 40
        assert saved.puzzle_order == PuzzleOrder.SEQUENTIAL
        assert await service.get_round_timer() == 40
        assert await service.get_puzzles_per_game() == 10
        assert await service.get_win_condition() == 6
        assert await service.get_countdown_duration() == 3

    @pytest.mark.asyncio
    async def test_stale_save_conflicts(self, db_session):
        service = SettingsService(db_session)
        await service.save_settings(GameSettings())
        await service.save_settings(GameSettings(round_timer=15), expected_version=1)

        with pytest.raises(HTTPException) as exc_info:
            await service.save_settings(GameSettings(round_timer=60), expected_version=1)
        assert exc_info.value.status_code == 409
        assert await service.get_round_timer() == 15

    @pytest.mark.asyncio
    async def test_first_save_with_wrong_version_conflicts(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            await SettingsService(db_session).save_settings(GameSettings(), expected_version=3)
        assert exc_info.value.status_code == 409


class TestUICopyService:
    """界面文案测试"""

    @pytest.mark.asyncio
    async def test_first_read_seeds_defaults(self, db_session):
        sections = await UICopyService(db_session).get_sections()
        assert [s.id for s in sections] == [s["id"] for s in DEFAULT_UI_COPY]

    @pytest.mark.asyncio
    async def test_get_value(self, db_session):
        service = UICopyService(db_session)
        assert await service.get_value("lobby.title") == "MOJI!"
        assert await service.get_value("lobby.missing") == "lobby.missing"
        assert await service.get_value("nowhere.key") == "nowhere.key"

    @pytest.mark.asyncio
    async def test_update_value_and_section(self, db_session):
        service = UICopyService(db_session)
        assert await service.update_value("lobby.title", "MOJI!!")
        assert await service.get_value("lobby.title") == "MOJI!!"
        assert not await service.update_value("nowhere.key", "x")

        assert await service.update_section("timer", {"timer.extra": "hurry"})
        section = await service.get_section("timer")
        assert section.values["timer.extra"] == "hurry"
        # 合并而不是覆盖
        assert len(section.values) > 1
        assert not await service.update_section("nowhere", {"a": "b"})

    @pytest.mark.asyncio
    async def test_reset_restores_defaults(self, db_session):
        service = UICopyService(db_session)
        await service.update_value("lobby.title", "Changed")
        await service.reset_to_defaults()
        assert await service.get_value("lobby.title") == "MOJI!"

    @pytest.mark.asyncio
    async def test_import_requires_array(self, db_session):
        service = UICopyService(db_session)
        assert not await service.import_copy('{"id": "lobby"}')
        assert not await service.import_copy("not json")
        assert len(await service.get_sections()) == len(DEFAULT_UI_COPY)

    @pytest.mark.asyncio
    async def test_export_then_import(self, db_session):
        service = UICopyService(db_session)
        exported = json.loads(await service.export_copy())
        lobby = next(s for s in exported if s["id"] == "lobby")
        lobby["values"]["lobby.title"] = "Imported"

        assert await service.import_copy(json.dumps([lobby]))
        sections = await service.get_sections()
        assert [s.id for s in sections] == ["lobby"]
        assert await service.get_value("lobby.title") == "Imported"

    @pytest.mark.asyncio
    async def test_import_with_duplicate_sections_keeps_existing_copy(self, db_session):
        service = UICopyService(db_session)
        assert await service.update_value("game.waiting", "CUSTOM")

        duplicated = [
            {"id": "game", "name": "Game", "values": {"game.waiting": "first"}},
            {"id": "game", "name": "Game", "values": {"game.waiting": "second"}},
        ]
        assert not await service.import_copy(json.dumps(duplicated))

        assert await service.get_value("game.waiting") == "CUSTOM"
        assert len(await service.get_sections()) == len(DEFAULT_UI_COPY)

    @pytest.mark.asyncio
    async def test_import_updates_existing_and_adds_new_sections(self, db_session):
        service = UICopyService(db_session)
        await service.get_sections()

        imported = [
            {"id": "game", "name": "Game", "values": {"game.waiting": "Hold on"}},
            {"id": "credits", "name": "Credits", "values": {"credits.title": "Thanks"}},
        ]
        assert await service.import_copy(json.dumps(imported))

        sections = await service.get_sections()
        assert [s.id for s in sections] == ["game", "credits"]
        assert await service.get_value("game.waiting") == "Hold on"
        assert await service.get_value("credits.title") == "Thanks"

    def test_section_for_key(self):
        assert section_id_for_key("answer.correct.you") == "answer"
        assert section_id_for_key("plain") == "plain"
