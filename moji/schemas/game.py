"""
Game Pydantic schemas
游戏数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from moji.schemas.puzzle import PuzzleLink, PuzzlePublic


class AnswerSubmit(BaseModel):
    """提交答案"""
    player_id: str
    answer: str = Field(..., max_length=200)


class AnswerResult(BaseModel):
    correct: bool
    round_winner: Optional[str] = None
    scores: Dict[str, int] = Field(default_factory=dict)
    finished: bool = False
    winner: Optional[str] = None


class PlayerReadyRequest(BaseModel):
    player_id: str


class ReadyResult(BaseModel):
    players_ready_for_next: List[str]
    advanced: bool = False
    current_puzzle_index: int
    finished: bool = False


class GameStateResponse(BaseModel):
    """Everything a game screen needs to render one tick"""
    game_id: str
    status: str
    session_state: str
    game_state: str
    current_puzzle_index: int
    total_puzzles: int
    puzzle: Optional[PuzzlePublic] = None
    round_winner: Optional[str] = None
    scores: Dict[str, int]
    players_ready_for_next: List[str]
    time_left: int
    round_timer: int
    win_condition: int
    winner: Optional[str] = None
    version: int


class ClueResponse(BaseModel):
    number: int
    clue: str
    remaining: int


class RevealResponse(BaseModel):
    puzzle_id: int
    display_answer: str
    video_url: Optional[str] = None
    fallback_url: Optional[str] = None
    mux_playback_id: Optional[str] = None
    links: List[PuzzleLink] = Field(default_factory=list)
    round_winner: Optional[str] = None


class ClientErrorReport(BaseModel):
    """client_error payload sent over the room socket"""
    error: str
    message: str = ""
    safari: bool = False
