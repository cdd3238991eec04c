"""
Session lifecycle
对局生命周期状态机 - 所有状态变化都经过 transition()

WaitingForPlayer2 -> PendingAdmit -> Playing <-> ShowingAnswer -> Finished
"""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional, Sequence, Union

from moji.models.room import GameRoom, RoomStatus, GameState
from moji.models.player import RoomPlayer

PLAYER1 = "player1"
PLAYER2 = "player2"
PLAYER_KEYS = (PLAYER1, PLAYER2)


class InvalidTransition(Exception):
    """Event does not apply to the current state"""

    def __init__(self, state, event):
        self.state = state
        self.event = event
        super().__init__(f"{type(event).__name__} is not valid in {type(state).__name__}")


@dataclass(frozen=True)
class Scores:
    player1: int = 0
    player2: int = 0

    def add_point(self, key: str) -> "Scores":
        if key == PLAYER1:
            return replace(self, player1=self.player1 + 1)
        if key == PLAYER2:
            return replace(self, player2=self.player2 + 1)
        raise ValueError(f"Unknown player key: {key}")

    def of(self, key: str) -> int:
        return self.player1 if key == PLAYER1 else self.player2

    def leader(self) -> Optional[str]:
        """Higher scorer, None on a tie"""
        if self.player1 > self.player2:
            return PLAYER1
        if self.player2 > self.player1:
            return PLAYER2
        return None

    def as_dict(self) -> dict:
        return {PLAYER1: self.player1, PLAYER2: self.player2}


@dataclass(frozen=True)
class Rules:
    total_puzzles: int
    win_condition: int


# States

@dataclass(frozen=True)
class WaitingForPlayer2:
    name = "waiting_for_player2"


@dataclass(frozen=True)
class PendingAdmit:
    joiner_id: Optional[str] = None
    name = "pending_admit"


@dataclass(frozen=True)
class Playing:
    index: int
    rules: Rules
    scores: Scores = field(default_factory=Scores)
    player_ids: FrozenSet[str] = frozenset()
    name = "playing"


@dataclass(frozen=True)
class ShowingAnswer:
    index: int
    rules: Rules
    scores: Scores
    player_ids: FrozenSet[str]
    winner: Optional[str] = None
    ready: FrozenSet[str] = frozenset()
    name = "showing_answer"


@dataclass(frozen=True)
class Finished:
    scores: Scores
    winner: Optional[str] = None
    name = "finished"


SessionState = Union[WaitingForPlayer2, PendingAdmit, Playing, ShowingAnswer, Finished]


# Events

@dataclass(frozen=True)
class PlayerJoined:
    player_id: Optional[str] = None


@dataclass(frozen=True)
class PlayerAdmitted:
    rules: Rules
    player_ids: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class CorrectAnswer:
    winner: str


@dataclass(frozen=True)
class TimeExpired:
    pass


@dataclass(frozen=True)
class PlayerReady:
    player_id: str


SessionEvent = Union[PlayerJoined, PlayerAdmitted, CorrectAnswer, TimeExpired, PlayerReady]


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Apply one event; raises InvalidTransition for any pair not listed below"""
    if isinstance(state, WaitingForPlayer2) and isinstance(event, PlayerJoined):
        return PendingAdmit(joiner_id=event.player_id)

    if isinstance(state, PendingAdmit):
        if isinstance(event, PlayerJoined):
            # duplicate join keeps the first joiner
            return state
        if isinstance(event, PlayerAdmitted):
            return Playing(index=0, rules=event.rules, scores=Scores(), player_ids=event.player_ids)

    if isinstance(state, Playing):
        if isinstance(event, CorrectAnswer):
            scores = state.scores.add_point(event.winner)
            if scores.of(event.winner) >= state.rules.win_condition:
                return Finished(scores=scores, winner=event.winner)
            return ShowingAnswer(
                index=state.index,
                rules=state.rules,
                scores=scores,
                player_ids=state.player_ids,
                winner=event.winner,
            )
        if isinstance(event, TimeExpired):
            return ShowingAnswer(
                index=state.index,
                rules=state.rules,
                scores=state.scores,
                player_ids=state.player_ids,
                winner=None,
            )

    if isinstance(state, ShowingAnswer) and isinstance(event, PlayerReady):
        if event.player_id not in state.player_ids or event.player_id in state.ready:
            return state
        ready = state.ready | {event.player_id}
        if ready < state.player_ids:
            return replace(state, ready=ready)
        next_index = state.index + 1
        if next_index >= state.rules.total_puzzles:
            return Finished(scores=state.scores, winner=state.scores.leader())
        return Playing(index=next_index, rules=state.rules, scores=state.scores, player_ids=state.player_ids)

    raise InvalidTransition(state, event)


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def derive_state(room: GameRoom, players: Sequence[RoomPlayer], win_condition: int) -> SessionState:
    """Rebuild the session state from stored rows"""
    scores = Scores(player1=room.player1_score or 0, player2=room.player2_score or 0)
    status = _enum_value(room.status)

    if status == RoomStatus.FINISHED.value:
        return Finished(scores=scores, winner=room.winner)

    if status == RoomStatus.WAITING.value:
        joiner = next((p for p in players if not p.is_creator), None)
        if joiner is None:
            return WaitingForPlayer2()
        return PendingAdmit(joiner_id=joiner.id)

    rules = Rules(total_puzzles=room.sequence_length, win_condition=win_condition)
    player_ids = frozenset(p.id for p in players if p.approved)
    if _enum_value(room.game_state) == GameState.SHOWING_ANSWER.value:
        return ShowingAnswer(
            index=room.current_puzzle_index,
            rules=rules,
            scores=scores,
            player_ids=player_ids,
            winner=room.round_winner,
            ready=frozenset(room.players_ready_for_next or []),
        )
    return Playing(index=room.current_puzzle_index, rules=rules, scores=scores, player_ids=player_ids)
