"""
Game API endpoints
游戏API端点 - 答题、超时、准备、提示与揭晓
"""

from fastapi import APIRouter, Depends, HTTPException, status

from moji.api.deps import get_game_engine
from moji.services.game import GameEngine
from moji.schemas.game import (
    AnswerSubmit, AnswerResult, PlayerReadyRequest, ReadyResult,
    GameStateResponse, ClueResponse, RevealResponse
)

router = APIRouter()


@router.get("/{game_id}", response_model=GameStateResponse)
async def get_game(
    game_id: str,
    engine: GameEngine = Depends(get_game_engine)
):
    """获取游戏状态(当前谜题不含答案)"""
    return await engine.get_game(game_id)


@router.post("/{game_id}/answer", response_model=AnswerResult)
async def submit_answer(
    game_id: str,
    submission: AnswerSubmit,
    engine: GameEngine = Depends(get_game_engine)
):
    """
    提交答案

    - 答错: correct=false，不修改房间
    - 答对: 本轮结束并加分；另一名玩家已先答对时返回 409
    """
    try:
        return await engine.submit_answer(game_id, submission.player_id, submission.answer)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to submit answer: {str(e)}"
        )


@router.post("/{game_id}/time-up", response_model=GameStateResponse)
async def time_up(
    game_id: str,
    engine: GameEngine = Depends(get_game_engine)
):
    """倒计时结束，本轮无人得分"""
    try:
        return await engine.expire_round(game_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to expire round: {str(e)}"
        )


@router.post("/{game_id}/ready", response_model=ReadyResult)
async def player_ready(
    game_id: str,
    ready: PlayerReadyRequest,
    engine: GameEngine = Depends(get_game_engine)
):
    """玩家准备进入下一题"""
    try:
        return await engine.mark_player_ready(game_id, ready.player_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to mark player ready: {str(e)}"
        )


@router.get("/{game_id}/clues/{number}", response_model=ClueResponse)
async def get_clue(
    game_id: str,
    number: int,
    engine: GameEngine = Depends(get_game_engine)
):
    """获取第 n 条提示 (1-3)"""
    return await engine.get_clue(game_id, number)


@router.get("/{game_id}/reveal", response_model=RevealResponse)
async def reveal(
    game_id: str,
    engine: GameEngine = Depends(get_game_engine)
):
    """揭晓答案与视频"""
    return await engine.reveal(game_id)
