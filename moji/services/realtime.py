"""
Realtime change notifications
行变更推送服务 - 房间/玩家写入后通知订阅了对应频道的浏览器

Channel names follow the table:filter form, e.g. game_rooms:id=eq.ABCD1234.
With Redis reachable every worker publishes to Redis and a listener task in
each worker forwards to its own sockets; otherwise delivery stays in-process.
"""

import asyncio
import json
import logging
from typing import Optional

from moji.core.config import settings
from moji.core.redis_client import redis_manager, RedisManager
from moji.schemas.common import ChangeEvent, ChangeNotification
from moji.websocket.connection_manager import connection_manager, ConnectionManager

logger = logging.getLogger(__name__)

ROOMS_TABLE = "game_rooms"
PLAYERS_TABLE = "room_players"


def room_filter(room_id: str) -> str:
    return f"id=eq.{room_id}"


def players_filter(room_id: str) -> str:
    return f"room_id=eq.{room_id}"


def room_channel(room_id: str) -> str:
    return f"{ROOMS_TABLE}:{room_filter(room_id)}"


def players_channel(room_id: str) -> str:
    return f"{PLAYERS_TABLE}:{players_filter(room_id)}"


def build_notification(event: ChangeEvent, table: str, row_filter: str, row: dict) -> dict:
    return ChangeNotification(event=event, table=table, filter=row_filter, new=row).model_dump(mode="json")


class RealtimeBroker:
    """实时消息分发"""

    def __init__(self, manager: Optional[ConnectionManager] = None, redis: Optional[RedisManager] = None):
        self.manager = manager or connection_manager
        self.redis = redis or redis_manager
        self.prefix = settings.REALTIME_CHANNEL_PREFIX
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def uses_redis(self) -> bool:
        return self.redis.available and self._listener_task is not None

    async def publish(self, channel: str, message: dict) -> None:
        """Deliver a message to every subscriber of a channel"""
        if self.uses_redis:
            try:
                await self.redis.publish_message(f"{self.prefix}:{channel}", message)
                return
            except Exception as e:
                logger.warning(f"[REALTIME] Redis publish failed, delivering locally: {e}")
        await self.manager.broadcast_to_channel(channel, message)

    async def room_changed(self, room_row: dict, event: ChangeEvent = ChangeEvent.UPDATE) -> None:
        room_id = room_row["id"]
        await self.publish(
            room_channel(room_id),
            build_notification(event, ROOMS_TABLE, room_filter(room_id), room_row),
        )

    async def player_changed(self, player_row: dict, event: ChangeEvent = ChangeEvent.UPDATE) -> None:
        room_id = player_row["room_id"]
        await self.publish(
            players_channel(room_id),
            build_notification(event, PLAYERS_TABLE, players_filter(room_id), player_row),
        )

    async def start(self) -> None:
        """Start the Redis listener when Redis is reachable"""
        if not self.redis.available:
            logger.info("[REALTIME] Redis unavailable, using in-process delivery")
            return
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(f"{self.prefix}:*")
        self._listener_task = asyncio.create_task(self._listen(pubsub))
        logger.info(f"[REALTIME] Listening on Redis pattern {self.prefix}:*")

    async def stop(self) -> None:
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
            logger.info("[REALTIME] Redis listener stopped")

    async def _listen(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                await self.handle_redis_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[REALTIME] Redis listener error: {e}")
            self._listener_task = None
        finally:
            await pubsub.aclose()

    async def handle_redis_message(self, message: dict) -> int:
        """Forward one Redis pub/sub message to local subscribers"""
        channel = message["channel"]
        if isinstance(channel, bytes):
            channel = channel.decode()
        local_channel = channel[len(self.prefix) + 1:] if channel.startswith(f"{self.prefix}:") else channel
        try:
            payload = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.error(f"[REALTIME] Dropping malformed message on {channel}: {e}")
            return 0
        return await self.manager.broadcast_to_channel(local_channel, payload)


# 全局实时分发实例
realtime_broker = RealtimeBroker()


def get_realtime_broker() -> RealtimeBroker:
    return realtime_broker
