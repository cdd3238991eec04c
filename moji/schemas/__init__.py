# Pydantic schemas
from .common import (
    ResponseStatus, MessageResponse, WebSocketMessage, ChangeEvent, ChangeNotification
)
from .room import (
    RoomCreate, RoomJoinRequest, RoomAdmitRequest, PlayerResponse, RoomResponse,
    RoomCreateResponse, RoomJoinResponse, RoomDetailResponse
)
from .puzzle import (
    PuzzleType, PuzzleLink, Puzzle, PuzzlePublic, PuzzleDocument,
    PuzzleValidationResponse, PuzzleListResponse, PuzzleImportRequest
)
from .settings import PuzzleOrder, GameSettings, GameSettingsResponse, GameSettingsUpdate
from .ui_copy import (
    UICopySection, UICopyValueUpdate, UICopySectionUpdate, UICopyValueResponse, UICopyImportRequest
)
from .game import (
    AnswerSubmit, AnswerResult, PlayerReadyRequest, ReadyResult, GameStateResponse,
    ClueResponse, RevealResponse, ClientErrorReport
)

__all__ = [
    # Common schemas
    "ResponseStatus", "MessageResponse", "WebSocketMessage", "ChangeEvent", "ChangeNotification",

    # Room schemas
    "RoomCreate", "RoomJoinRequest", "RoomAdmitRequest", "PlayerResponse", "RoomResponse",
    "RoomCreateResponse", "RoomJoinResponse", "RoomDetailResponse",

    # Puzzle schemas
    "PuzzleType", "PuzzleLink", "Puzzle", "PuzzlePublic", "PuzzleDocument",
    "PuzzleValidationResponse", "PuzzleListResponse", "PuzzleImportRequest",

    # Settings schemas
    "PuzzleOrder", "GameSettings", "GameSettingsResponse", "GameSettingsUpdate",

    # UI copy schemas
    "UICopySection", "UICopyValueUpdate", "UICopySectionUpdate", "UICopyValueResponse",
    "UICopyImportRequest",

    # Game schemas
    "AnswerSubmit", "AnswerResult", "PlayerReadyRequest", "ReadyResult", "GameStateResponse",
    "ClueResponse", "RevealResponse", "ClientErrorReport",
]
