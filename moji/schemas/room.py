"""
Room Pydantic schemas
房间数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class RoomCreate(BaseModel):
    """创建房间请求模型"""
    creator_name: str = Field(default="Player 1", min_length=1, max_length=50, description="房主显示名")
    max_players: int = Field(default=2, ge=2, le=2, description="最大玩家数")


class RoomJoinRequest(BaseModel):
    """加入房间请求"""
    player_name: str = Field(default="Player 2", min_length=1, max_length=50)


class RoomAdmitRequest(BaseModel):
    """房主放行请求"""
    player_id: str = Field(..., description="房主玩家ID")


class PlayerResponse(BaseModel):
    """房间玩家"""
    id: str
    room_id: str
    player_name: str
    is_creator: bool
    approved: bool
    seat: int
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoomResponse(BaseModel):
    """房间响应模型"""
    id: str
    created_by: str
    status: str
    max_players: int
    puzzle_sequence: List[int] = Field(default_factory=list)
    current_puzzle_index: int = 0
    game_state: str
    round_winner: Optional[str] = None
    round_started_at: Optional[datetime] = None
    player1_score: int = 0
    player2_score: int = 0
    players_ready_for_next: List[str] = Field(default_factory=list)
    winner: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoomCreateResponse(BaseModel):
    """Newly created room plus the creator's player id"""
    room: RoomResponse
    player: PlayerResponse


class RoomJoinResponse(BaseModel):
    """加入房间响应"""
    room: RoomResponse
    player: PlayerResponse
    already_joined: bool = False


class RoomDetailResponse(BaseModel):
    """房间详细信息响应"""
    room: RoomResponse
    players: List[PlayerResponse] = Field(default_factory=list)
    pending_player: Optional[PlayerResponse] = None
    session_state: str
