"""
Room management service
房间管理服务 - 建房、加入、房主放行

The (room_id, seat) unique key keeps a room at one creator and one joiner no
matter how many join requests race. Room writes after creation go through
compare_and_set_room so two writers never overwrite each other.
"""

import uuid
import secrets
import string
import logging
from typing import List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update
from fastapi import HTTPException, status

from moji.core.config import settings
from moji.models.room import GameRoom, RoomStatus, GameState
from moji.models.player import RoomPlayer, CREATOR_SEAT, JOINER_SEAT
from moji.schemas.common import ChangeEvent
from moji.services.puzzles import PuzzleService
from moji.services.realtime import RealtimeBroker, realtime_broker
from moji.services.settings import SettingsService

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.digits + string.ascii_uppercase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_room_code(length: Optional[int] = None) -> str:
    """Short shareable code, upper-case base 36"""
    length = length or settings.ROOM_CODE_LENGTH
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


async def compare_and_set_room(db: AsyncSession, room: GameRoom, **values) -> bool:
    """
    条件更新房间：仅当数据库中的 version 仍等于 room.version 时写入并 version+1
    成功返回 True(由调用方提交)；被其他写入抢先时回滚并返回 False
    """
    stmt = (
        update(GameRoom)
        .where(GameRoom.id == room.id, GameRoom.version == room.version)
        .values(version=room.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        await db.rollback()
        return False
    return True


class RoomService:
    """房间管理服务类"""

    def __init__(
        self,
        db: AsyncSession,
        puzzle_service: Optional[PuzzleService] = None,
        broker: Optional[RealtimeBroker] = None,
    ):
        self.db = db
        self.puzzle_service = puzzle_service or PuzzleService()
        self.broker = broker or realtime_broker
        self.settings_service = SettingsService(db)

    async def create_room(
        self,
        creator_name: Optional[str] = None,
        max_players: Optional[int] = None,
    ) -> Tuple[GameRoom, RoomPlayer]:
        """
        创建新房间，房主作为已放行的 1 号座位加入
        返回 (room, creator)；客户端保存 creator.id 作为房主身份
        """
        creator_name = creator_name or settings.CREATOR_NAME

        # 房间码冲突时重新生成
        room_id = generate_room_code()
        while await self.db.get(GameRoom, room_id) is not None:
            room_id = generate_room_code()

        room = GameRoom(
            id=room_id,
            created_by=creator_name,
            status=RoomStatus.WAITING,
            max_players=max_players or settings.ROOM_MAX_PLAYERS,
            puzzle_sequence=[],
            current_puzzle_index=0,
            game_state=GameState.PLAYING,
            player1_score=0,
            player2_score=0,
            players_ready_for_next=[],
            version=1,
        )
        creator = RoomPlayer(
            id=str(uuid.uuid4()),
            room_id=room_id,
            player_name=creator_name,
            is_creator=True,
            approved=True,
            seat=CREATOR_SEAT,
        )

        self.db.add(room)
        await self.db.flush()
        self.db.add(creator)
        await self.db.commit()
        await self.db.refresh(room)
        await self.db.refresh(creator)

        logger.info(f"[ROOM] Created room {room_id} by {creator_name}")

        await self.broker.room_changed(room.to_row(), ChangeEvent.INSERT)
        await self.broker.player_changed(creator.to_row(), ChangeEvent.INSERT)
        return room, creator

    async def get_room(self, room_id: str) -> GameRoom:
        """获取房间，不存在时 404"""
        result = await self.db.execute(
            select(GameRoom).where(GameRoom.id == room_id).execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if not room:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Room not found"
            )
        return room

    async def get_room_players(self, room_id: str) -> List[RoomPlayer]:
        """按加入顺序返回房间玩家"""
        result = await self.db.execute(
            select(RoomPlayer)
            .where(RoomPlayer.room_id == room_id)
            .order_by(RoomPlayer.joined_at, RoomPlayer.seat)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_player(self, player_id: str) -> RoomPlayer:
        player = await self.db.get(RoomPlayer, player_id)
        if not player:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Player not found"
            )
        return player

    async def get_pending_player(self, room_id: str) -> Optional[RoomPlayer]:
        """等待房主放行的加入者"""
        players = await self.get_room_players(room_id)
        return next((p for p in players if not p.is_creator and not p.approved), None)

    async def join_room(self, room_id: str, player_name: Optional[str] = None) -> Tuple[RoomPlayer, bool]:
        """
        加入房间，返回 (player, already_joined)
        已有加入者时返回那名玩家本身，不会插入第二行
        """
        room = await self.get_room(room_id)
        players = await self.get_room_players(room_id)

        joiner = next((p for p in players if not p.is_creator), None)
        if joiner:
            logger.info(f"[ROOM] Duplicate join on room {room_id}, returning player {joiner.id}")
            return joiner, True

        if room.status != RoomStatus.WAITING:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game already started"
            )

        if len(players) >= room.max_players:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Room is full"
            )

        player = RoomPlayer(
            id=str(uuid.uuid4()),
            room_id=room_id,
            player_name=player_name or settings.JOINER_NAME,
            is_creator=False,
            approved=False,
            seat=JOINER_SEAT,
        )
        self.db.add(player)
        try:
            await self.db.commit()
        except IntegrityError:
            # another request took seat 2 first
            await self.db.rollback()
            existing = await self._get_seat(room_id, JOINER_SEAT)
            if existing is None:
                raise
            logger.info(f"[ROOM] Concurrent join on room {room_id} resolved to player {existing.id}")
            return existing, True

        await self.db.refresh(player)
        logger.info(f"[ROOM] Player {player.id} ({player.player_name}) joined room {room_id}, waiting for admit")

        await self.broker.player_changed(player.to_row(), ChangeEvent.INSERT)
        return player, False

    async def _get_seat(self, room_id: str, seat: int) -> Optional[RoomPlayer]:
        result = await self.db.execute(
            select(RoomPlayer).where(RoomPlayer.room_id == room_id, RoomPlayer.seat == seat)
        )
        return result.scalar_one_or_none()

    async def admit_player(self, room_id: str, player_id: str) -> GameRoom:
        """
        房主放行等待中的玩家并开局
        生成谜题序列、重置比分、标记放行，在同一事务中完成
        """
        room = await self.get_room(room_id)

        creator = await self._get_seat(room_id, CREATOR_SEAT)
        if not creator or creator.id != player_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the room creator can admit players"
            )

        pending = await self.get_pending_player(room_id)
        if not pending:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No player waiting to be admitted"
            )

        if room.status != RoomStatus.WAITING:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game already started"
            )

        game_settings = await self.settings_service.get_settings()
        sequence = await self.puzzle_service.select_for_game(
            game_settings.puzzles_per_game,
            game_settings.puzzle_order.value,
            game_settings.sequential_index,
        )
        if not sequence:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No puzzles available"
            )

        updated = await compare_and_set_room(
            self.db,
            room,
            status=RoomStatus.PLAYING,
            puzzle_sequence=sequence,
            current_puzzle_index=0,
            game_state=GameState.PLAYING,
            round_winner=None,
            player1_score=0,
            player2_score=0,
            players_ready_for_next=[],
            winner=None,
            round_started_at=utcnow(),
        )
        if not updated:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Room was changed by another request"
            )

        pending.approved = True
        await self.db.commit()
        await self.db.refresh(room)
        await self.db.refresh(pending)

        logger.info(f"[ROOM] Room {room_id} started with {len(sequence)} puzzles, admitted {pending.id}")

        await self.broker.player_changed(pending.to_row())
        await self.broker.room_changed(room.to_row())
        return room

    async def approve_player(self, player_id: str) -> RoomPlayer:
        """标记玩家已放行"""
        player = await self.get_player(player_id)
        if not player.approved:
            player.approved = True
            await self.db.commit()
            await self.db.refresh(player)
            await self.broker.player_changed(player.to_row())
        return player


def get_room_service(db: AsyncSession) -> RoomService:
    """Get room service instance"""
    return RoomService(db)
