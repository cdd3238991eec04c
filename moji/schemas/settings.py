"""
Game settings schemas
游戏设置数据模型
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class PuzzleOrder(str, Enum):
    RANDOM = "random"
    SEQUENTIAL = "sequential"


class GameSettings(BaseModel):
    """管理员可调的游戏参数"""
    round_timer: int = Field(default=30, ge=5, le=300, description="每轮时长(秒)")
    puzzles_per_game: int = Field(default=10, ge=1, le=50, description="每局谜题数")
    win_condition: int = Field(default=6, ge=1, le=50, description="获胜所需分数")
    countdown_duration: int = Field(default=3, ge=0, le=10, description="开局倒计时(秒)")
    puzzle_order: PuzzleOrder = Field(default=PuzzleOrder.RANDOM)
    sequential_index: Optional[int] = Field(default=2, ge=1)


class GameSettingsResponse(GameSettings):
    version: int = 0


class GameSettingsUpdate(GameSettings):
    """Settings save request; expected_version turns it into compare-and-set"""
    expected_version: Optional[int] = Field(default=None, ge=0)
