"""
Room management API endpoints
房间管理API端点 - 建房、加入、房主放行
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from moji.api.deps import get_room_service
from moji.models.room import GameRoom
from moji.services.room import RoomService
from moji.services.session import derive_state
from moji.schemas.room import (
    RoomCreate, RoomJoinRequest, RoomAdmitRequest, PlayerResponse, RoomResponse,
    RoomCreateResponse, RoomJoinResponse, RoomDetailResponse
)

router = APIRouter()


def room_response(room: GameRoom) -> RoomResponse:
    return RoomResponse(**room.to_row(), created_at=room.created_at, updated_at=room.updated_at)


@router.post("", response_model=RoomCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: Optional[RoomCreate] = None,
    room_service: RoomService = Depends(get_room_service)
):
    """
    创建新房间

    - **creator_name**: 房主显示名 (默认 Player 1)
    - 返回的 player.id 是房主身份，放行加入者时需要带上
    """
    room_data = room_data or RoomCreate()
    try:
        room, creator = await room_service.create_room(room_data.creator_name, room_data.max_players)
        return RoomCreateResponse(room=room_response(room), player=PlayerResponse.model_validate(creator))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create room: {str(e)}"
        )


@router.get("/{room_id}", response_model=RoomDetailResponse)
async def get_room(
    room_id: str,
    room_service: RoomService = Depends(get_room_service)
):
    """
    获取房间详细信息(含玩家、待放行玩家与对局状态)
    """
    room = await room_service.get_room(room_id)
    players = await room_service.get_room_players(room_id)
    game_settings = await room_service.settings_service.get_settings()
    pending = next((p for p in players if not p.is_creator and not p.approved), None)
    state = derive_state(room, players, game_settings.win_condition)

    return RoomDetailResponse(
        room=room_response(room),
        players=[PlayerResponse.model_validate(p) for p in players],
        pending_player=PlayerResponse.model_validate(pending) if pending else None,
        session_state=state.name,
    )


@router.get("/{room_id}/players", response_model=List[PlayerResponse])
async def get_room_players(
    room_id: str,
    room_service: RoomService = Depends(get_room_service)
):
    """按加入顺序返回玩家"""
    await room_service.get_room(room_id)
    players = await room_service.get_room_players(room_id)
    return [PlayerResponse.model_validate(p) for p in players]


@router.post("/{room_id}/join", response_model=RoomJoinResponse)
async def join_room(
    room_id: str,
    join_data: Optional[RoomJoinRequest] = None,
    room_service: RoomService = Depends(get_room_service)
):
    """
    加入房间

    重复加入返回已有的 2 号玩家 (already_joined=true)
    """
    join_data = join_data or RoomJoinRequest()
    try:
        player, already_joined = await room_service.join_room(room_id, join_data.player_name)
        room = await room_service.get_room(room_id)
        return RoomJoinResponse(
            room=room_response(room),
            player=PlayerResponse.model_validate(player),
            already_joined=already_joined,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to join room: {str(e)}"
        )


@router.post("/{room_id}/admit", response_model=RoomResponse)
async def admit_player(
    room_id: str,
    admit_data: RoomAdmitRequest,
    room_service: RoomService = Depends(get_room_service)
):
    """
    房主放行等待中的玩家并开局

    - **player_id**: 房主的玩家ID
    """
    try:
        room = await room_service.admit_player(room_id, admit_data.player_id)
        return room_response(room)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to admit player: {str(e)}"
        )
