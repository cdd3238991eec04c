"""
Game settings model
游戏设置模型 - 单行表
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from moji.core.database import Base


class GameSettingsRow(Base):
    """Admin-editable game tuning, one row"""

    __tablename__ = "game_settings"

    id = Column(Integer, primary_key=True, default=1)
    round_timer = Column(Integer, nullable=False)
    puzzles_per_game = Column(Integer, nullable=False)
    win_condition = Column(Integer, nullable=False)
    countdown_duration = Column(Integer, nullable=False)
    puzzle_order = Column(String(20), nullable=False, default="random")
    sequential_index = Column(Integer, nullable=True)
    version = Column(Integer, default=1, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<GameSettingsRow(version={self.version}, puzzles_per_game={self.puzzles_per_game})>"
