"""
Game service
游戏核心逻辑服务 - 答题、超时、准备下一题、提示与揭晓

All room writes are compare-and-set on GameRoom.version. The state machine in
moji.services.session decides what the next state is; this module only maps
that state onto columns.
"""

import logging
from typing import List, Optional, Sequence, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from moji.core.config import settings
from moji.models.room import GameRoom, RoomStatus, GameState
from moji.models.player import RoomPlayer
from moji.schemas.game import (
    AnswerResult, ReadyResult, GameStateResponse, ClueResponse, RevealResponse
)
from moji.schemas.puzzle import Puzzle, PuzzlePublic
from moji.schemas.settings import GameSettingsResponse
from moji.services.puzzles import PuzzleService, get_video_url, get_youtube_fallback
from moji.services.realtime import RealtimeBroker, realtime_broker
from moji.services.room import RoomService, compare_and_set_room, utcnow
from moji.services.session import (
    SessionState, Playing, ShowingAnswer, Finished,
    CorrectAnswer, TimeExpired, PlayerReady, InvalidTransition, derive_state, transition,
)
from moji.services.settings import SettingsService

logger = logging.getLogger(__name__)

CLUE_COUNT = 3


def check_answer(puzzle_answers: Sequence[str], submitted: str) -> bool:
    """
    判断答案是否正确
    去掉首尾空白后不区分大小写地与任一可接受答案完全相同；不做标点归一化
    """
    guess = (submitted or "").strip().lower()
    return any(guess == accepted.lower() for accepted in puzzle_answers)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def time_left(round_started_at: Optional[datetime], round_timer: int, now: Optional[datetime] = None) -> int:
    """Whole seconds left in the round, never negative"""
    started = _aware(round_started_at)
    if started is None:
        return round_timer
    now = now or utcnow()
    elapsed = (now - started).total_seconds()
    return max(0, int(round_timer - elapsed + 0.999))


def columns_for(state: SessionState) -> dict:
    """Room column values that persist a playing/showing/finished state"""
    if isinstance(state, Finished):
        return {
            "status": RoomStatus.FINISHED,
            "game_state": GameState.SHOWING_ANSWER,
            "player1_score": state.scores.player1,
            "player2_score": state.scores.player2,
            "winner": state.winner,
        }
    if isinstance(state, ShowingAnswer):
        return {
            "game_state": GameState.SHOWING_ANSWER,
            "round_winner": state.winner,
            "player1_score": state.scores.player1,
            "player2_score": state.scores.player2,
            "players_ready_for_next": sorted(state.ready),
        }
    if isinstance(state, Playing):
        return {
            "status": RoomStatus.PLAYING,
            "current_puzzle_index": state.index,
            "game_state": GameState.PLAYING,
            "round_winner": None,
            "players_ready_for_next": [],
            "round_started_at": utcnow(),
        }
    raise ValueError(f"Cannot persist {type(state).__name__}")


class GameEngine:
    """游戏引擎 - 管理一局的状态推进"""

    def __init__(
        self,
        db: AsyncSession,
        puzzle_service: Optional[PuzzleService] = None,
        broker: Optional[RealtimeBroker] = None,
    ):
        self.db = db
        self.puzzle_service = puzzle_service or PuzzleService()
        self.broker = broker or realtime_broker
        self.rooms = RoomService(db, self.puzzle_service, self.broker)
        self.settings_service = SettingsService(db)

    async def _load(self, game_id: str) -> Tuple[GameRoom, List[RoomPlayer], GameSettingsResponse, SessionState]:
        room = await self.rooms.get_room(game_id)
        players = await self.rooms.get_room_players(game_id)
        game_settings = await self.settings_service.get_settings()
        state = derive_state(room, players, game_settings.win_condition)
        return room, players, game_settings, state

    async def _current_puzzle(self, room: GameRoom) -> Optional[Puzzle]:
        puzzle_id = room.current_puzzle_id
        if puzzle_id is None:
            return None
        snapshot = await self.puzzle_service.get_snapshot()
        return snapshot.by_id(puzzle_id)

    async def _require_puzzle(self, room: GameRoom) -> Puzzle:
        puzzle = await self._current_puzzle(room)
        if not puzzle:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Puzzle not found"
            )
        return puzzle

    @staticmethod
    def _require_player(players: List[RoomPlayer], player_id: str) -> RoomPlayer:
        player = next((p for p in players if p.id == player_id), None)
        if not player or not player.approved:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Player is not part of this game"
            )
        return player

    async def _commit_and_publish(self, room: GameRoom) -> GameRoom:
        await self.db.commit()
        await self.db.refresh(room)
        await self.broker.room_changed(room.to_row())
        return room

    async def get_game(self, game_id: str) -> GameStateResponse:
        """获取游戏当前状态(不含答案)"""
        room, players, game_settings, state = await self._load(game_id)
        puzzle = await self._current_puzzle(room)

        remaining = game_settings.round_timer
        if isinstance(state, Playing):
            remaining = time_left(room.round_started_at, game_settings.round_timer)
        elif isinstance(state, (ShowingAnswer, Finished)):
            remaining = 0

        return GameStateResponse(
            game_id=room.id,
            status=room.status.value,
            session_state=state.name,
            game_state=room.game_state.value,
            current_puzzle_index=room.current_puzzle_index,
            total_puzzles=room.sequence_length,
            puzzle=PuzzlePublic(
                id=puzzle.id, type=puzzle.type, emoji=puzzle.emoji, clue_count=len(puzzle.clues)
            ) if puzzle else None,
            round_winner=room.round_winner,
            scores={"player1": room.player1_score, "player2": room.player2_score},
            players_ready_for_next=list(room.players_ready_for_next or []),
            time_left=remaining,
            round_timer=game_settings.round_timer,
            win_condition=game_settings.win_condition,
            winner=room.winner,
            version=room.version,
        )

    async def submit_answer(self, game_id: str, player_id: str, answer: str) -> AnswerResult:
        """
        提交答案
        错误答案不写库；正确答案以 compare-and-set 结束本轮，抢输的一方得到 409
        """
        room, players, _, state = await self._load(game_id)
        player_key = self._require_player(players, player_id).player_key
        puzzle = await self._require_puzzle(room)

        if not check_answer(puzzle.answers, answer):
            logger.debug(f"[ANSWER] Wrong answer in {game_id} from {player_key}")
            return AnswerResult(
                correct=False,
                scores={"player1": room.player1_score, "player2": room.player2_score},
            )

        new_state = transition_or_conflict(state, CorrectAnswer(winner=player_key))

        values = columns_for(new_state)
        values["round_winner"] = player_key
        values["players_ready_for_next"] = []

        if not await compare_and_set_room(self.db, room, **values):
            logger.info(f"[ANSWER] {player_key} lost the race in {game_id}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Round already resolved"
            )
        room = await self._commit_and_publish(room)

        finished = isinstance(new_state, Finished)
        logger.info(f"[ANSWER] {player_key} solved puzzle {puzzle.id} in {game_id}"
                    + (", wins the game" if finished else ""))
        return AnswerResult(
            correct=True,
            round_winner=player_key,
            scores={"player1": room.player1_score, "player2": room.player2_score},
            finished=finished,
            winner=room.winner,
        )

    async def expire_round(self, game_id: str) -> GameStateResponse:
        """
        倒计时结束：本轮无人答对，进入揭晓
        已在揭晓或已结束时为幂等空操作；计时未到返回 400
        """
        room, _, game_settings, state = await self._load(game_id)

        if isinstance(state, (ShowingAnswer, Finished)):
            return await self.get_game(game_id)

        if not isinstance(state, Playing):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Game has not started"
            )

        remaining = time_left(room.round_started_at, game_settings.round_timer)
        if remaining > settings.ROUND_EXPIRY_GRACE_SECONDS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Round still has {remaining} seconds left"
            )

        new_state = transition_or_conflict(state, TimeExpired())
        if await compare_and_set_room(self.db, room, **columns_for(new_state)):
            await self._commit_and_publish(room)
            logger.info(f"[TIMER] Round {room.current_puzzle_index} of {game_id} expired with no winner")
            return await self.get_game(game_id)

        # lost to a correct answer or the other player's time-up
        room, _, _, state = await self._load(game_id)
        if isinstance(state, (ShowingAnswer, Finished)):
            return await self.get_game(game_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Room was changed by another request"
        )

    async def mark_player_ready(self, game_id: str, player_id: str) -> ReadyResult:
        """
        玩家准备进入下一题
        幂等地加入准备集合；两名玩家都准备好后前进一题，或在题目用完时结束
        """
        for attempt in range(settings.CAS_MAX_RETRIES):
            room, players, _, state = await self._load(game_id)

            if not isinstance(state, ShowingAnswer):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Not waiting for players to be ready"
                )

            new_state = transition_or_conflict(state, PlayerReady(player_id=player_id))
            if new_state is state:
                # duplicate or non-player: nothing to write
                return ReadyResult(
                    players_ready_for_next=list(room.players_ready_for_next or []),
                    advanced=False,
                    current_puzzle_index=room.current_puzzle_index,
                )

            if await compare_and_set_room(self.db, room, **columns_for(new_state)):
                room = await self._commit_and_publish(room)
                advanced = isinstance(new_state, Playing)
                finished = isinstance(new_state, Finished)
                if advanced:
                    logger.info(f"[READY] Both players ready in {game_id}, moving to puzzle {room.current_puzzle_index}")
                elif finished:
                    logger.info(f"[READY] Puzzle sequence of {game_id} exhausted, winner {room.winner}")
                return ReadyResult(
                    players_ready_for_next=list(room.players_ready_for_next or []),
                    advanced=advanced,
                    current_puzzle_index=room.current_puzzle_index,
                    finished=finished,
                )

            logger.debug(f"[READY] Version conflict in {game_id}, retry {attempt + 1}/{settings.CAS_MAX_RETRIES}")

        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Room is busy, try again"
        )

    async def get_clue(self, game_id: str, number: int) -> ClueResponse:
        """第 n 条提示(1..3)"""
        if not 1 <= number <= CLUE_COUNT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Clue number must be between 1 and {CLUE_COUNT}"
            )
        room = await self.rooms.get_room(game_id)
        puzzle = await self._require_puzzle(room)
        if number > len(puzzle.clues):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No clues remaining"
            )
        return ClueResponse(
            number=number,
            clue=puzzle.clues[number - 1],
            remaining=len(puzzle.clues) - number,
        )

    async def reveal(self, game_id: str) -> RevealResponse:
        """揭晓答案：仅在揭晓阶段或结束后可用"""
        room, _, _, state = await self._load(game_id)
        if not isinstance(state, (ShowingAnswer, Finished)):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Answer not revealed yet"
            )
        puzzle = await self._require_puzzle(room)
        return RevealResponse(
            puzzle_id=puzzle.id,
            display_answer=puzzle.display_answer,
            video_url=get_video_url(puzzle.video_file) or puzzle.video_url,
            fallback_url=get_youtube_fallback(puzzle.video_file),
            mux_playback_id=puzzle.mux_playback_id,
            links=puzzle.links,
            round_winner=room.round_winner,
        )


def transition_or_conflict(state: SessionState, event) -> SessionState:
    """Run the state machine; an event that no longer applies is a 409"""
    try:
        return transition(state, event)
    except InvalidTransition as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )


def get_game_engine(db: AsyncSession) -> GameEngine:
    """Get game engine instance"""
    return GameEngine(db)
