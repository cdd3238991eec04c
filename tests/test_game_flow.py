"""
Game flow tests
对局流程测试 - 答题、抢答冲突、超时、准备下一题、结束
"""

import pytest
from fastapi import HTTPException

from moji.models.room import RoomStatus, GameState
from moji.services.realtime import room_channel

ANSWERS = {0: "under the bridge", 1: "ocean eyes", 2: "queen"}


async def finish_round_with_ready(game_engine, room_id, creator_id, joiner_id):
    await game_engine.mark_player_ready(room_id, creator_id)
    return await game_engine.mark_player_ready(room_id, joiner_id)


class TestGameState:
    """游戏状态查询"""

    @pytest.mark.asyncio
    async def test_initial_state(self, started_room, game_engine):
        room_id, _, _ = started_room
        state = await game_engine.get_game(room_id)

        assert state.status == "playing"
        assert state.session_state == "playing"
        assert state.game_state == "playing"
        assert state.total_puzzles == 3
        assert state.puzzle.id == 1
        assert state.puzzle.clue_count == 3
        assert state.scores == {"player1": 0, "player2": 0}
        assert 25 <= state.time_left <= 30
        assert state.win_condition == 2

    @pytest.mark.asyncio
    async def test_clues(self, started_room, game_engine):
        room_id, _, _ = started_room
        clue = await game_engine.get_clue(room_id, 1)
        assert clue.clue == "Red Hot Chili Peppers"
        assert clue.remaining == 2

        for number in (0, 4):
            with pytest.raises(HTTPException) as exc_info:
                await game_engine.get_clue(room_id, number)
            assert exc_info.value.status_code == 400


class TestAnswers:
    """答题测试"""

    @pytest.mark.asyncio
    async def test_wrong_answer_changes_nothing(self, started_room, game_engine):
        room_id, creator_id, _ = started_room
        before = await game_engine.get_game(room_id)

        result = await game_engine.submit_answer(room_id, creator_id, "smells like teen spirit")

        assert not result.correct
        after = await game_engine.get_game(room_id)
        assert after.version == before.version
        assert after.game_state == "playing"

    @pytest.mark.asyncio
    async def test_correct_answer_scores_and_reveals(
        self, started_room, game_engine, manager, make_websocket
    ):
        room_id, _, joiner_id = started_room
        websocket = make_websocket()
        await manager.connect("conn-1", websocket, channels=[room_channel(room_id)])

        result = await game_engine.submit_answer(room_id, joiner_id, "  Under The Bridge ")

        assert result.correct
        assert result.round_winner == "player2"
        assert result.scores == {"player1": 0, "player2": 1}
        assert not result.finished

        state = await game_engine.get_game(room_id)
        assert state.game_state == "showing_answer"
        assert state.round_winner == "player2"
        assert state.time_left == 0

        update = websocket.messages_sent[-1]
        assert update["table"] == "game_rooms"
        assert update["event"] == "UPDATE"
        assert update["new"]["game_state"] == "showing_answer"
        assert update["new"]["player2_score"] == 1
        await manager.disconnect("conn-1")

    @pytest.mark.asyncio
    async def test_second_correct_answer_conflicts(self, started_room, game_engine):
        room_id, creator_id, joiner_id = started_room
        await game_engine.submit_answer(room_id, joiner_id, ANSWERS[0])

        with pytest.raises(HTTPException) as exc_info:
            await game_engine.submit_answer(room_id, creator_id, ANSWERS[0])
        assert exc_info.value.status_code == 409

        state = await game_engine.get_game(room_id)
        assert state.scores == {"player1": 0, "player2": 1}
        assert state.round_winner == "player2"

    @pytest.mark.asyncio
    async def test_outsider_cannot_answer(self, started_room, game_engine):
        room_id, _, _ = started_room
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.submit_answer(room_id, "stranger", ANSWERS[0])
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_reveal_only_after_round(self, started_room, game_engine):
        room_id, creator_id, _ = started_room
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.reveal(room_id)
        assert exc_info.value.status_code == 400

        await game_engine.submit_answer(room_id, creator_id, ANSWERS[0])
        reveal = await game_engine.reveal(room_id)
        assert reveal.display_answer == "Under the Bridge - Red Hot Chili Peppers"
        assert reveal.video_url == "/videos/rhcp-under-the-bridge.mp4"
        assert reveal.fallback_url == "https://www.youtube.com/embed/lwlogyj7nFE"
        assert reveal.round_winner == "player1"
        assert reveal.links[0].name == "YouTube"


class TestTimeUp:
    """倒计时结束测试"""

    @pytest.mark.asyncio
    async def test_time_up_before_expiry_rejected(self, started_room, game_engine):
        room_id, _, _ = started_room
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.expire_round(room_id)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_time_up_reveals_without_winner(self, started_room, game_engine, expire_clock):
        room_id, _, _ = started_room
        await expire_clock(room_id)

        state = await game_engine.expire_round(room_id)
        assert state.game_state == "showing_answer"
        assert state.round_winner is None
        assert state.scores == {"player1": 0, "player2": 0}

        # 两个客户端都会上报超时，第二次是空操作
        again = await game_engine.expire_round(room_id)
        assert again.version == state.version

    @pytest.mark.asyncio
    async def test_time_up_after_correct_answer_is_noop(self, started_room, game_engine, expire_clock):
        room_id, creator_id, _ = started_room
        await game_engine.submit_answer(room_id, creator_id, ANSWERS[0])
        await expire_clock(room_id)

        state = await game_engine.expire_round(room_id)
        assert state.round_winner == "player1"
        assert state.scores["player1"] == 1


class TestReadyAndProgress:
    """准备下一题与结束测试"""

    @pytest.mark.asyncio
    async def test_ready_before_reveal_rejected(self, started_room, game_engine):
        room_id, creator_id, _ = started_room
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.mark_player_ready(room_id, creator_id)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_both_ready_advances(self, started_room, game_engine):
        room_id, creator_id, joiner_id = started_room
        await game_engine.submit_answer(room_id, joiner_id, ANSWERS[0])

        first = await game_engine.mark_player_ready(room_id, creator_id)
        assert not first.advanced
        assert first.players_ready_for_next == [creator_id]
        version = (await game_engine.get_game(room_id)).version

        # 重复准备不写库
        repeat = await game_engine.mark_player_ready(room_id, creator_id)
        assert repeat.players_ready_for_next == [creator_id]
        assert (await game_engine.get_game(room_id)).version == version

        second = await game_engine.mark_player_ready(room_id, joiner_id)
        assert second.advanced
        assert second.current_puzzle_index == 1
        assert second.players_ready_for_next == []

        state = await game_engine.get_game(room_id)
        assert state.game_state == "playing"
        assert state.round_winner is None
        assert state.puzzle.id == 2
        assert state.scores == {"player1": 0, "player2": 1}
        assert state.time_left >= 25

    @pytest.mark.asyncio
    async def test_win_condition_finishes_game(self, started_room, game_engine, room_service):
        room_id, creator_id, joiner_id = started_room

        await game_engine.submit_answer(room_id, creator_id, ANSWERS[0])
        await finish_round_with_ready(game_engine, room_id, creator_id, joiner_id)
        result = await game_engine.submit_answer(room_id, creator_id, ANSWERS[1])

        assert result.finished
        assert result.winner == "player1"
        room = await room_service.get_room(room_id)
        assert room.status == RoomStatus.FINISHED
        assert room.game_state == GameState.SHOWING_ANSWER
        assert room.winner == "player1"
        assert room.player1_score == 2

        # 已结束的对局不再接受操作
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.mark_player_ready(room_id, creator_id)
        assert exc_info.value.status_code == 400
        with pytest.raises(HTTPException) as exc_info:
            await game_engine.submit_answer(room_id, joiner_id, ANSWERS[1])
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_exhausted_sequence_finishes_with_leader(self, started_room, game_engine, expire_clock):
        room_id, creator_id, joiner_id = started_room

        await game_engine.submit_answer(room_id, joiner_id, ANSWERS[0])
        await finish_round_with_ready(game_engine, room_id, creator_id, joiner_id)
        for _ in range(2):
            await expire_clock(room_id)
            await game_engine.expire_round(room_id)
            last = await finish_round_with_ready(game_engine, room_id, creator_id, joiner_id)

        assert last.finished
        state = await game_engine.get_game(room_id)
        assert state.status == "finished"
        assert state.session_state == "finished"
        assert state.winner == "player2"

    @pytest.mark.asyncio
    async def test_exhausted_sequence_tie_has_no_winner(self, started_room, game_engine, expire_clock):
        room_id, creator_id, joiner_id = started_room

        for _ in range(3):
            await expire_clock(room_id)
            await game_engine.expire_round(room_id)
            last = await finish_round_with_ready(game_engine, room_id, creator_id, joiner_id)

        assert last.finished
        state = await game_engine.get_game(room_id)
        assert state.status == "finished"
        assert state.winner is None
