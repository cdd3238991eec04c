"""
Puzzle catalogue service
谜题库服务 - puzzles.json 文档的加载、编辑、导入导出与出题顺序

Reads hand out an immutable (version, puzzles) snapshot. Every save replaces
the snapshot with a new one whose version is one higher.
"""

import asyncio
import json
import logging
import os
import random
import time
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional

import httpx
from fastapi import HTTPException, status
from pydantic import ValidationError

from moji.core.config import settings
from moji.schemas.puzzle import Puzzle, PuzzleType
from moji.schemas.settings import PuzzleOrder

logger = logging.getLogger(__name__)

VALID_TYPES = [t.value for t in PuzzleType]

YOUTUBE_FALLBACKS: Dict[str, str] = {
    "rhcp-under-the-bridge.mp4": "https://www.youtube.com/embed/lwlogyj7nFE",
    "billie-eilish-ocean-eyes-official.mp4": "https://www.youtube.com/embed/viimfQi_pUw",
    "soundgarden-black-hole-sun.mp4": "https://www.youtube.com/embed/3mbBbFH9fAg",
    "survivor-eye-of-the-tiger.mp4": "https://www.youtube.com/embed/btPJPFnesV4",
    "daft-punk-around-the-world.mp4": "https://www.youtube.com/embed/dwDns8x3Jb4",
    "gorillaz-clint-eastwood.mp4": "https://www.youtube.com/embed/1V_xRb0x9aw",
    "billy-idol-eyes-without-face.mp4": "https://www.youtube.com/embed/9OFpfTd0EIs",
    "rainbow-stargazer.mp4": "https://www.youtube.com/embed/p3VgV31vmUE",
    "prince-purple-rain.mp4": "https://www.youtube.com/embed/TvnYmWpD_T8",
    "dire-straits-money-for-nothing.mp4": "https://www.youtube.com/embed/wTP2RUD_cL0",
}


class PuzzleSnapshot(NamedTuple):
    version: int
    puzzles: List[Puzzle]

    def by_id(self, puzzle_id: int) -> Optional[Puzzle]:
        return next((p for p in self.puzzles if p.id == puzzle_id), None)


def get_video_url(video_file: Optional[str]) -> Optional[str]:
    """Public path of a bundled video"""
    if not video_file:
        return None
    return f"{settings.VIDEO_BASE_PATH.rstrip('/')}/{video_file}"


def get_youtube_fallback(video_file: Optional[str]) -> Optional[str]:
    """YouTube embed to use when the local video fails to play"""
    if not video_file:
        return None
    return YOUTUBE_FALLBACKS.get(video_file)


def validate_puzzle(puzzle: dict) -> List[str]:
    """
    校验一道谜题(JSON 文档格式)，返回错误列表；空列表表示通过
    """
    errors = []

    if not str(puzzle.get("emoji") or "").strip():
        errors.append("Emoji is required")

    if not str(puzzle.get("displayAnswer") or "").strip():
        errors.append("Display answer is required")

    if puzzle.get("type") not in VALID_TYPES:
        errors.append("Valid type is required (artist, song, song-artist, or album)")

    clues = puzzle.get("clues") or []
    if len(clues) != 3 or any(not str(c).strip() for c in clues):
        errors.append("Three clues are required")

    answers = puzzle.get("answers") or []
    if not answers or any(not str(a).strip() for a in answers):
        errors.append("At least one answer is required")

    if puzzle.get("videoFile") and puzzle.get("videoUrl"):
        errors.append("Cannot have both video file and video URL")

    return errors


def check_catalogue(puzzles: List[Puzzle]) -> List[str]:
    """
    整个目录的校验：id 不可重复，每道题都要通过 validate_puzzle
    """
    errors = []
    seen = set()
    for puzzle in puzzles:
        if puzzle.id in seen:
            errors.append(f"Duplicate puzzle id {puzzle.id}")
        seen.add(puzzle.id)
        errors.extend(f"Puzzle {puzzle.id}: {e}" for e in validate_puzzle(puzzle.to_document()))
    return errors


def select_sequence(
    puzzles: List[Puzzle],
    count: int,
    order: str = PuzzleOrder.SEQUENTIAL.value,
    start: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    为一局挑选谜题 id
    random: Fisher-Yates 洗牌后截取前 count 个
    sequential: 按 id 排序，从第一个 id >= start 的谜题开始连续取，到末尾回绕
    """
    ids = list(dict.fromkeys(p.id for p in puzzles))
    count = max(0, min(count, len(ids)))
    if count == 0:
        return []

    if order == PuzzleOrder.RANDOM.value:
        rng = rng or random.Random()
        shuffled = list(ids)
        for i in range(len(shuffled) - 1, 0, -1):
            j = rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled[:count]

    ordered = sorted(ids)
    first = 0
    if start is not None:
        first = next((i for i, pid in enumerate(ordered) if pid >= start), 0)
    return [ordered[(first + k) % len(ordered)] for k in range(count)]


class PuzzleStore:
    """Process-wide holder of the current catalogue snapshot"""

    def __init__(self, path: Optional[str] = None, url: Optional[str] = None):
        self.path = Path(path or settings.PUZZLES_FILE)
        self.url = url if url is not None else settings.PUZZLES_URL
        self._snapshot: Optional[PuzzleSnapshot] = None
        self._lock = asyncio.Lock()

    async def snapshot(self) -> PuzzleSnapshot:
        if self._snapshot is not None:
            return self._snapshot
        async with self._lock:
            if self._snapshot is None:
                puzzles = await self._load()
                self._snapshot = PuzzleSnapshot(version=1, puzzles=puzzles)
        return self._snapshot

    async def replace(self, puzzles: List[Puzzle]) -> PuzzleSnapshot:
        """Persist a new catalogue and publish it as the next version"""
        async with self._lock:
            return self._publish(puzzles)

    async def modify(self, change: Callable[[List[Puzzle]], List[Puzzle]]) -> PuzzleSnapshot:
        """
        在锁内读取当前目录、计算新目录并保存
        change 可抛出 HTTPException，此时目录保持不变
        """
        async with self._lock:
            if self._snapshot is None:
                self._snapshot = PuzzleSnapshot(version=1, puzzles=await self._load())
            return self._publish(change(list(self._snapshot.puzzles)))

    def _publish(self, puzzles: List[Puzzle]) -> PuzzleSnapshot:
        current = self._snapshot.version if self._snapshot else 0
        self._write_file({"puzzles": [p.to_document() for p in puzzles]})
        self._snapshot = PuzzleSnapshot(version=current + 1, puzzles=list(puzzles))
        logger.info(f"[PUZZLES] Saved {len(puzzles)} puzzles, catalogue version {self._snapshot.version}")
        return self._snapshot

    async def _load(self) -> List[Puzzle]:
        if self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
            puzzles = self._parse_document(document)
            logger.info(f"[PUZZLES] Loaded {len(puzzles)} puzzles from {self.path}")
            return puzzles

        if not self.url:
            logger.warning(f"[PUZZLES] {self.path} not found and no PUZZLES_URL configured, catalogue is empty")
            return []

        document = await self._fetch_remote()
        puzzles = self._parse_document(document)
        self._write_file({"puzzles": [p.to_document() for p in puzzles]})
        logger.info(f"[PUZZLES] Loaded {len(puzzles)} puzzles from {self.url} and saved to {self.path}")
        return puzzles

    async def _fetch_remote(self) -> dict:
        # t=<millis> defeats intermediary caches
        params = {"t": int(time.time() * 1000)}
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(settings.PUZZLES_FETCH_TIMEOUT),
                follow_redirects=True,
            ) as client:
                response = await client.get(self.url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"[PUZZLES] Failed to fetch {self.url}: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Failed to load puzzles"
            )

        if response.status_code != 200:
            logger.error(f"[PUZZLES] Failed to fetch puzzles.json: {response.status_code}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to fetch puzzles.json: {response.status_code}"
            )
        return response.json()

    @staticmethod
    def _parse_document(document) -> List[Puzzle]:
        if not isinstance(document, dict) or not isinstance(document.get("puzzles"), list):
            raise ValueError("Invalid puzzle data format")
        return [Puzzle.model_validate(item) for item in document["puzzles"]]

    def _write_file(self, document: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)


# Global puzzle store
puzzle_store = PuzzleStore()


class PuzzleService:
    """谜题库管理服务"""

    def __init__(self, store: Optional[PuzzleStore] = None, rng: Optional[random.Random] = None):
        self.store = store or puzzle_store
        self.rng = rng

    async def get_snapshot(self) -> PuzzleSnapshot:
        return await self.store.snapshot()

    async def get_puzzles(self) -> List[Puzzle]:
        snapshot = await self.store.snapshot()
        return list(snapshot.puzzles)

    async def get_puzzle(self, puzzle_id: int) -> Puzzle:
        snapshot = await self.store.snapshot()
        puzzle = snapshot.by_id(puzzle_id)
        if not puzzle:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Puzzle with id {puzzle_id} not found"
            )
        return puzzle

    async def save_puzzles(self, puzzles: List[Puzzle]) -> PuzzleSnapshot:
        self._ensure_catalogue(puzzles)
        return await self.store.replace(puzzles)

    async def next_id(self) -> int:
        snapshot = await self.store.snapshot()
        if not snapshot.puzzles:
            return 1
        return max(p.id for p in snapshot.puzzles) + 1

    async def add_puzzle(self, data: dict) -> Puzzle:
        """Validate and append a puzzle; a missing id gets the next free one"""
        self._ensure_valid(data)
        added = []

        def append(puzzles: List[Puzzle]) -> List[Puzzle]:
            item = dict(data)
            if item.get("id") is None:
                item["id"] = max((p.id for p in puzzles), default=0) + 1
            if any(p.id == item["id"] for p in puzzles):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Puzzle with id {item['id']} already exists"
                )
            added.append(Puzzle.model_validate(item))
            return puzzles + added

        await self.store.modify(append)
        return added[0]

    async def update_puzzle(self, puzzle_id: int, data: dict) -> Puzzle:
        self._ensure_valid(data)
        puzzle = Puzzle.model_validate({**data, "id": puzzle_id})

        def swap(puzzles: List[Puzzle]) -> List[Puzzle]:
            if not any(p.id == puzzle_id for p in puzzles):
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Puzzle with id {puzzle_id} not found"
                )
            return [puzzle if p.id == puzzle_id else p for p in puzzles]

        await self.store.modify(swap)
        return puzzle

    async def delete_puzzle(self, puzzle_id: int) -> bool:
        """Remove a puzzle; deleting an unknown id leaves the catalogue as is"""
        snapshot = await self.store.snapshot()
        if not snapshot.by_id(puzzle_id):
            return False
        await self.store.modify(lambda puzzles: [p for p in puzzles if p.id != puzzle_id])
        return True

    async def export_puzzles(self) -> str:
        snapshot = await self.store.snapshot()
        return json.dumps(
            {"puzzles": [p.to_document() for p in snapshot.puzzles]},
            ensure_ascii=False,
            indent=2,
        )

    async def import_puzzles(self, json_data: str) -> PuzzleSnapshot:
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            logger.warning(f"[PUZZLES] Import rejected, invalid JSON: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid JSON"
            )

        if not isinstance(data, dict) or not isinstance(data.get("puzzles"), list):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid puzzle data format"
            )

        try:
            puzzles = [Puzzle.model_validate(item) for item in data["puzzles"]]
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid puzzle data format: {e.error_count()} errors"
            )

        self._ensure_catalogue(puzzles)
        snapshot = await self.store.replace(puzzles)
        logger.info(f"[PUZZLES] Imported {len(puzzles)} puzzles")
        return snapshot

    async def select_for_game(self, count: int, order: str, start: Optional[int]) -> List[int]:
        snapshot = await self.store.snapshot()
        return select_sequence(snapshot.puzzles, count, order, start, rng=self.rng)

    @staticmethod
    def _ensure_valid(data: dict):
        errors = validate_puzzle(data)
        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=errors
            )

    @staticmethod
    def _ensure_catalogue(puzzles: List[Puzzle]):
        errors = check_catalogue(puzzles)
        if errors:
            logger.warning(f"[PUZZLES] Catalogue rejected: {errors[0]} ({len(errors)} errors)")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=errors
            )


def get_puzzle_service() -> PuzzleService:
    """Dependency to get the puzzle service"""
    return PuzzleService()
