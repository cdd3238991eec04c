"""
Puzzle Pydantic schemas
谜题数据模型 - 与 puzzles.json 文档字段保持一致(camelCase 别名)
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from enum import Enum


class PuzzleType(str, Enum):
    """谜题类型"""
    ARTIST = "artist"
    SONG = "song"
    SONG_ARTIST = "song-artist"
    ALBUM = "album"


class PuzzleLink(BaseModel):
    name: str
    url: str


class Puzzle(BaseModel):
    """
    一道 emoji 谜题
    JSON 文档使用 camelCase 字段名(displayAnswer, videoFile ...)，Python 侧用 snake_case
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    type: str
    emoji: str = ""
    clues: List[str] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)
    display_answer: str = Field(default="", alias="displayAnswer")
    video_file: Optional[str] = Field(default=None, alias="videoFile")
    video_url: Optional[str] = Field(default=None, alias="videoUrl")
    mux_playback_id: Optional[str] = Field(default=None, alias="muxPlaybackId")
    links: List[PuzzleLink] = Field(default_factory=list)

    # Catalogue metadata
    genre: Optional[str] = None
    sub_genre: Optional[str] = Field(default=None, alias="subGenre")
    decade: Optional[str] = None
    year: Optional[int] = None
    artist_type: Optional[str] = Field(default=None, alias="artistType")
    country: Optional[str] = None
    region: Optional[str] = None
    album: Optional[str] = None

    def to_document(self) -> dict:
        """Serialize back to the puzzles.json shape"""
        return self.model_dump(by_alias=True, exclude_none=True)


class PuzzlePublic(BaseModel):
    """Puzzle as shown during a round: no answers, no clues"""
    id: int
    type: str
    emoji: str
    clue_count: int


class PuzzleDocument(BaseModel):
    """puzzles.json 顶层结构"""
    puzzles: List[Puzzle] = Field(default_factory=list)


class PuzzleValidationResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class PuzzleListResponse(BaseModel):
    version: int
    puzzles: List[Puzzle]
    total: int


class PuzzleImportRequest(BaseModel):
    """Raw JSON text of a puzzles document"""
    data: str = Field(..., min_length=1)
