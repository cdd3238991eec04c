"""
Pytest configuration and fixtures
测试配置和固件
"""

import json
import pytest
from datetime import timedelta
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

import moji.models  # noqa: F401 - register tables on Base.metadata
from moji.core.database import Base, get_db
from moji.core.redis_client import RedisManager
from moji.main import app
from moji.models.room import GameRoom
from moji.schemas.settings import GameSettings
from moji.services.game import GameEngine
from moji.services.puzzles import PuzzleStore, PuzzleService, get_puzzle_service
from moji.services.realtime import RealtimeBroker, get_realtime_broker
from moji.services.room import RoomService, utcnow
from moji.services.settings import SettingsService
from moji.websocket.connection_manager import ConnectionManager


# Test database URL (in-memory SQLite for fast testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PUZZLES = {
    "puzzles": [
        {
            "id": 1,
            "type": "song",
            "emoji": "🌉⬇️",
            "clues": ["Red Hot Chili Peppers", "1991", "Blood Sugar Sex Magik"],
            "answers": ["under the bridge"],
            "displayAnswer": "Under the Bridge - Red Hot Chili Peppers",
            "videoFile": "rhcp-under-the-bridge.mp4",
            "links": [{"name": "YouTube", "url": "https://www.youtube.com/watch?v=lwlogyj7nFE"}],
        },
        {
            "id": 2,
            "type": "song",
            "emoji": "🌊👀",
            "clues": ["Billie Eilish", "Finneas", "2016"],
            "answers": ["ocean eyes"],
            "displayAnswer": "Ocean Eyes - Billie Eilish",
            "videoFile": "billie-eilish-ocean-eyes-official.mp4",
        },
        {
            "id": 3,
            "type": "artist",
            "emoji": "👑",
            "clues": ["Freddie Mercury", "Bohemian Rhapsody", "Live Aid"],
            "answers": ["queen"],
            "displayAnswer": "Queen",
            "muxPlaybackId": "abc123",
        },
        {
            "id": 5,
            "type": "album",
            "emoji": "🌑🌈",
            "clues": ["Pink Floyd", "1973", "Prism"],
            "answers": ["the dark side of the moon", "dark side of the moon"],
            "displayAnswer": "The Dark Side of the Moon - Pink Floyd",
            "videoUrl": "https://example.com/dsotm.mp4",
        },
    ]
}

# 测试用游戏设置：3 题一局，先得 2 分获胜
TEST_SETTINGS = GameSettings(
    round_timer=30,
    puzzles_per_game=3,
    win_condition=2,
    countdown_duration=3,
    puzzle_order="sequential",
    sequential_index=1,
)


class MockWebSocket:
    """记录发送内容的 WebSocket 替身"""

    def __init__(self, fail_on_send: bool = False):
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.fail_on_send = fail_on_send
        self.messages_sent = []

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed = True
        self.close_code = code

    async def send_text(self, data: str):
        if self.fail_on_send:
            raise ConnectionError("socket gone")
        self.messages_sent.append(json.loads(data))


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def puzzles_file(tmp_path):
    path = tmp_path / "puzzles.json"
    path.write_text(json.dumps(TEST_PUZZLES, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def puzzle_store(puzzles_file):
    return PuzzleStore(path=str(puzzles_file), url="")


@pytest.fixture
def puzzle_service(puzzle_store):
    return PuzzleService(puzzle_store)


@pytest.fixture
def manager():
    return ConnectionManager(max_connections=10, ping_interval=30)


@pytest.fixture
def broker(manager):
    """In-process broker: the RedisManager is never initialized"""
    return RealtimeBroker(manager=manager, redis=RedisManager())


@pytest.fixture
def room_service(db_session, puzzle_service, broker):
    return RoomService(db_session, puzzle_service, broker)


@pytest.fixture
def game_engine(db_session, puzzle_service, broker):
    return GameEngine(db_session, puzzle_service, broker)


@pytest.fixture
async def game_settings(db_session):
    return await SettingsService(db_session).save_settings(TEST_SETTINGS)


@pytest.fixture
async def started_room(game_settings, room_service):
    """A room whose joiner has been admitted: (room_id, creator_id, joiner_id)"""
    room, creator = await room_service.create_room("Alice")
    joiner, _ = await room_service.join_room(room.id, "Bob")
    await room_service.admit_player(room.id, creator.id)
    return room.id, creator.id, joiner.id


@pytest.fixture
def expire_clock(db_session):
    """把本轮开始时间拨回，使计时已经结束"""
    async def _expire(room_id: str, seconds: int = 120):
        await db_session.execute(
            update(GameRoom)
            .where(GameRoom.id == room_id)
            .values(round_started_at=utcnow() - timedelta(seconds=seconds))
        )
        await db_session.commit()
    return _expire


@pytest.fixture
def override_dependencies(db_session, puzzle_service, broker):
    """Override database, puzzle and realtime dependencies for testing"""
    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_puzzle_service] = lambda: puzzle_service
    app.dependency_overrides[get_realtime_broker] = lambda: broker
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app without a network"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_websocket():
    return MockWebSocket
