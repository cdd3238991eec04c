"""
Puzzle catalogue API endpoints
谜题库公开端点(编辑接口在 admin 下)
"""

from fastapi import APIRouter, Depends

from moji.services.puzzles import PuzzleService, get_puzzle_service
from moji.schemas.puzzle import PuzzleListResponse

router = APIRouter()


@router.get("", response_model=PuzzleListResponse)
async def list_puzzles(puzzle_service: PuzzleService = Depends(get_puzzle_service)):
    """当前谜题库快照"""
    snapshot = await puzzle_service.get_snapshot()
    return PuzzleListResponse(version=snapshot.version, puzzles=snapshot.puzzles, total=len(snapshot.puzzles))
