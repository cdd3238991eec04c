"""
Room player model
房间玩家模型
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from moji.core.database import Base

CREATOR_SEAT = 1
JOINER_SEAT = 2


class RoomPlayer(Base):
    """
    房间内的玩家
    seat 1 为房主，seat 2 为加入者；(room_id, seat) 唯一，数据库层面保证不会重复加入
    """

    __tablename__ = "room_players"
    __table_args__ = (
        UniqueConstraint("room_id", "seat", name="uq_room_players_room_seat"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(16), ForeignKey("game_rooms.id"), nullable=False, index=True)
    player_name = Column(String(50), nullable=False)
    is_creator = Column(Boolean, default=False, nullable=False)
    approved = Column(Boolean, default=False, nullable=False)
    seat = Column(Integer, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("GameRoom", back_populates="players")

    def __repr__(self):
        return f"<RoomPlayer(id={self.id}, room_id={self.room_id}, name={self.player_name}, approved={self.approved})>"

    @property
    def player_key(self) -> str:
        """Score slot this player owns: player1 for the creator"""
        return "player1" if self.is_creator else "player2"

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "player_name": self.player_name,
            "is_creator": self.is_creator,
            "approved": self.approved,
            "seat": self.seat,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
