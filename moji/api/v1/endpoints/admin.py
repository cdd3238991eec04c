"""
Admin API endpoints
管理后台API端点 - 独立密码验证；谜题库、游戏设置、界面文案的编辑
"""

from typing import Any, Dict, List
from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from moji.core.config import settings
from moji.api.deps import (
    get_admin_token, generate_admin_token, get_room_service,
    get_settings_service, get_ui_copy_service,
)
from moji.services.puzzles import PuzzleService, get_puzzle_service, validate_puzzle
from moji.services.room import RoomService
from moji.services.settings import SettingsService
from moji.services.ui_copy import UICopyService, require_section
from moji.schemas.common import MessageResponse
from moji.schemas.puzzle import (
    Puzzle, PuzzleListResponse, PuzzleValidationResponse, PuzzleImportRequest
)
from moji.schemas.room import PlayerResponse
from moji.schemas.settings import GameSettingsResponse, GameSettingsUpdate
from moji.schemas.ui_copy import (
    UICopySection, UICopyValueUpdate, UICopySectionUpdate, UICopyImportRequest
)

router = APIRouter()


# === Schemas ===

class AdminLoginRequest(BaseModel):
    """管理员登录请求"""
    password: str


class AdminLoginResponse(BaseModel):
    """管理员登录响应"""
    success: bool
    token: str = ""
    message: str = ""


# === 登录端点 ===

@router.post("/login", response_model=AdminLoginResponse)
async def admin_login(request: AdminLoginRequest):
    """
    管理员登录
    """
    if request.password == settings.ADMIN_PASSWORD:
        return AdminLoginResponse(
            success=True,
            token=generate_admin_token(request.password),
            message="Login successful"
        )
    return AdminLoginResponse(
        success=False,
        message="Wrong password"
    )


# === 谜题库 ===

@router.get("/puzzles", response_model=PuzzleListResponse)
async def list_puzzles(
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    snapshot = await puzzle_service.get_snapshot()
    return PuzzleListResponse(version=snapshot.version, puzzles=snapshot.puzzles, total=len(snapshot.puzzles))


@router.put("/puzzles", response_model=PuzzleListResponse)
async def save_puzzles(
    puzzles: List[Puzzle],
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    """整体替换谜题库"""
    snapshot = await puzzle_service.save_puzzles(puzzles)
    return PuzzleListResponse(version=snapshot.version, puzzles=snapshot.puzzles, total=len(snapshot.puzzles))


@router.get("/puzzles/next-id")
async def next_puzzle_id(
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    return {"next_id": await puzzle_service.next_id()}


@router.get("/puzzles/export", response_class=PlainTextResponse)
async def export_puzzles(
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    """导出 puzzles.json 备份"""
    return PlainTextResponse(await puzzle_service.export_puzzles(), media_type="application/json")


@router.post("/puzzles/import", response_model=PuzzleListResponse)
async def import_puzzles(
    request: PuzzleImportRequest,
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    snapshot = await puzzle_service.import_puzzles(request.data)
    return PuzzleListResponse(version=snapshot.version, puzzles=snapshot.puzzles, total=len(snapshot.puzzles))


@router.post("/puzzles/validate", response_model=PuzzleValidationResponse)
async def validate_puzzle_data(
    data: Dict[str, Any] = Body(...),
    _: str = Depends(get_admin_token)
):
    errors = validate_puzzle(data)
    return PuzzleValidationResponse(valid=not errors, errors=errors)


@router.post("/puzzles", response_model=Puzzle, response_model_by_alias=True, status_code=status.HTTP_201_CREATED)
async def add_puzzle(
    data: Dict[str, Any] = Body(...),
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    """新增谜题；未提供 id 时自动分配"""
    return await puzzle_service.add_puzzle(data)


@router.put("/puzzles/{puzzle_id}", response_model=Puzzle, response_model_by_alias=True)
async def update_puzzle(
    puzzle_id: int,
    data: Dict[str, Any] = Body(...),
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    return await puzzle_service.update_puzzle(puzzle_id, data)


@router.delete("/puzzles/{puzzle_id}", response_model=MessageResponse)
async def delete_puzzle(
    puzzle_id: int,
    puzzle_service: PuzzleService = Depends(get_puzzle_service),
    _: str = Depends(get_admin_token)
):
    deleted = await puzzle_service.delete_puzzle(puzzle_id)
    return MessageResponse(message="Puzzle deleted" if deleted else "Puzzle not found, nothing deleted")


# === 游戏设置 ===

@router.get("/settings", response_model=GameSettingsResponse)
async def get_game_settings(
    settings_service: SettingsService = Depends(get_settings_service),
    _: str = Depends(get_admin_token)
):
    return await settings_service.get_settings()


@router.put("/settings", response_model=GameSettingsResponse)
async def save_game_settings(
    update: GameSettingsUpdate,
    settings_service: SettingsService = Depends(get_settings_service),
    _: str = Depends(get_admin_token)
):
    """保存设置；带 expected_version 时版本不一致返回 409"""
    return await settings_service.save_settings(update, update.expected_version)


# === 界面文案 ===

@router.get("/ui-copy/export", response_class=PlainTextResponse)
async def export_ui_copy(
    ui_copy: UICopyService = Depends(get_ui_copy_service),
    _: str = Depends(get_admin_token)
):
    return PlainTextResponse(await ui_copy.export_copy(), media_type="application/json")


@router.post("/ui-copy/import", response_model=MessageResponse)
async def import_ui_copy(
    request: UICopyImportRequest,
    ui_copy: UICopyService = Depends(get_ui_copy_service),
    _: str = Depends(get_admin_token)
):
    if not await ui_copy.import_copy(request.data):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="UI copy import must be a JSON array of sections"
        )
    return MessageResponse(message="UI copy imported")


@router.post("/ui-copy/reset", response_model=List[UICopySection])
async def reset_ui_copy(
    ui_copy: UICopyService = Depends(get_ui_copy_service),
    _: str = Depends(get_admin_token)
):
    return await ui_copy.reset_to_defaults()


@router.put("/ui-copy/values/{key}", response_model=MessageResponse)
async def update_ui_copy_value(
    key: str,
    request: UICopyValueUpdate,
    ui_copy: UICopyService = Depends(get_ui_copy_service),
    _: str = Depends(get_admin_token)
):
    if not await ui_copy.update_value(key, request.value):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No section for key {key}"
        )
    return MessageResponse(message="Value updated")


@router.put("/ui-copy/sections/{section_id}", response_model=UICopySection)
async def update_ui_copy_section(
    section_id: str,
    request: UICopySectionUpdate,
    ui_copy: UICopyService = Depends(get_ui_copy_service),
    _: str = Depends(get_admin_token)
):
    """合并更新一个分组的文案"""
    if not await ui_copy.update_section(section_id, request.values):
        require_section(None, section_id)
    return require_section(await ui_copy.get_section(section_id), section_id)


# === 玩家 ===

@router.post("/players/{player_id}/approve", response_model=PlayerResponse)
async def approve_player(
    player_id: str,
    room_service: RoomService = Depends(get_room_service),
    _: str = Depends(get_admin_token)
):
    """手动放行玩家"""
    player = await room_service.approve_player(player_id)
    return PlayerResponse.model_validate(player)
