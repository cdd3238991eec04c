"""
Room model
房间数据模型 - 一局双人对战的全部共享状态
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from moji.core.database import Base


class RoomStatus(PyEnum):
    """Room status enumeration"""
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class GameState(PyEnum):
    """Round state while a room is playing"""
    PLAYING = "playing"
    SHOWING_ANSWER = "showing_answer"


class GameRoom(Base):
    """Shareable multiplayer session keyed by a short code"""

    __tablename__ = "game_rooms"

    id = Column(String(16), primary_key=True, index=True)
    created_by = Column(String(50), nullable=False)
    status = Column(Enum(RoomStatus, values_callable=lambda obj: [e.value for e in obj]),
                    default=RoomStatus.WAITING, nullable=False, index=True)
    max_players = Column(Integer, default=2, nullable=False)

    # Game progress
    puzzle_sequence = Column(JSON, nullable=True)  # ordered puzzle ids
    current_puzzle_index = Column(Integer, default=0, nullable=False)
    game_state = Column(Enum(GameState, values_callable=lambda obj: [e.value for e in obj]),
                        default=GameState.PLAYING, nullable=False)
    round_winner = Column(String(10), nullable=True)  # player1 / player2
    round_started_at = Column(DateTime(timezone=True), nullable=True)
    player1_score = Column(Integer, default=0, nullable=False)
    player2_score = Column(Integer, default=0, nullable=False)
    players_ready_for_next = Column(JSON, default=list, nullable=False)
    winner = Column(String(10), nullable=True)

    # Bumped on every write, compared on conditional updates
    version = Column(Integer, default=1, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    players = relationship("RoomPlayer", back_populates="room", order_by="RoomPlayer.joined_at")

    def __repr__(self):
        return f"<GameRoom(id={self.id}, status={self.status}, state={self.game_state})>"

    @property
    def sequence_length(self) -> int:
        return len(self.puzzle_sequence) if self.puzzle_sequence else 0

    @property
    def current_puzzle_id(self):
        """Puzzle id of the current round, None outside the sequence"""
        if 0 <= self.current_puzzle_index < self.sequence_length:
            return self.puzzle_sequence[self.current_puzzle_index]
        return None

    def to_row(self) -> dict:
        """Row payload published on change notifications"""
        return {
            "id": self.id,
            "created_by": self.created_by,
            "status": self.status.value if isinstance(self.status, RoomStatus) else self.status,
            "max_players": self.max_players,
            "puzzle_sequence": list(self.puzzle_sequence or []),
            "current_puzzle_index": self.current_puzzle_index,
            "game_state": self.game_state.value if isinstance(self.game_state, GameState) else self.game_state,
            "round_winner": self.round_winner,
            "round_started_at": self.round_started_at.isoformat() if self.round_started_at else None,
            "player1_score": self.player1_score,
            "player2_score": self.player2_score,
            "players_ready_for_next": list(self.players_ready_for_next or []),
            "winner": self.winner,
            "version": self.version,
        }
