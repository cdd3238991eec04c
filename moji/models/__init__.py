# Database models
from .room import GameRoom, RoomStatus, GameState
from .player import RoomPlayer, CREATOR_SEAT, JOINER_SEAT
from .game_settings import GameSettingsRow
from .ui_copy import UICopySectionRow

__all__ = [
    "GameRoom", "RoomStatus", "GameState",
    "RoomPlayer", "CREATOR_SEAT", "JOINER_SEAT",
    "GameSettingsRow",
    "UICopySectionRow",
]
