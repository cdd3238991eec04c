"""
WebSocket连接管理器
管理浏览器的 WebSocket 连接与频道订阅，按频道广播行变更通知
"""

import json
import logging
import asyncio
from typing import Dict, Set, Optional, List, Any, Iterable
from datetime import datetime
from fastapi import WebSocket

from moji.core.config import settings

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    WebSocket连接管理器
    一个连接可以订阅多个频道(例如 game_rooms:id=eq.ABCD1234)
    """

    def __init__(self, max_connections: Optional[int] = None, ping_interval: Optional[int] = None):
        # 活跃连接: connection_id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

        # 频道订阅: channel -> Set[connection_id]
        self.channel_subscribers: Dict[str, Set[str]] = {}

        # 连接订阅: connection_id -> Set[channel]
        self.connection_channels: Dict[str, Set[str]] = {}

        # 连接元数据: connection_id -> connection_info
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

        self.max_connections = max_connections or settings.MAX_WEBSOCKET_CONNECTIONS
        self.ping_interval = ping_interval or settings.WEBSOCKET_PING_INTERVAL

        self._heartbeat_tasks: Dict[str, asyncio.Task] = {}

    async def connect(
        self,
        connection_id: str,
        websocket: WebSocket,
        channels: Iterable[str] = (),
        player_id: Optional[str] = None,
    ) -> bool:
        """建立WebSocket连接并订阅频道"""
        if len(self.active_connections) >= self.max_connections:
            logger.warning(f"Connection limit reached, rejecting connection {connection_id}")
            return False

        await websocket.accept()

        if connection_id in self.active_connections:
            await self.disconnect(connection_id, "New connection established")

        self.active_connections[connection_id] = websocket
        self.connection_channels[connection_id] = set()
        self.connection_metadata[connection_id] = {
            "connected_at": datetime.now(),
            "last_ping": datetime.now(),
            "player_id": player_id,
        }

        for channel in channels:
            self.subscribe(connection_id, channel)

        self._start_heartbeat(connection_id)

        logger.info(f"Connection {connection_id} (player {player_id}) subscribed to {sorted(self.connection_channels[connection_id])}")
        return True

    async def disconnect(self, connection_id: str, reason: str = "Connection closed") -> None:
        """断开WebSocket连接并清理订阅"""
        task = self._heartbeat_tasks.pop(connection_id, None)
        if task and task is not asyncio.current_task():
            task.cancel()

        for channel in list(self.connection_channels.get(connection_id, ())):
            self.unsubscribe(connection_id, channel)
        self.connection_channels.pop(connection_id, None)

        websocket = self.active_connections.pop(connection_id, None)
        if websocket is not None:
            try:
                await websocket.close(code=1000, reason=reason)
            except RuntimeError as e:
                # already closed by the peer
                logger.debug(f"Close on connection {connection_id} ignored: {e}")

        self.connection_metadata.pop(connection_id, None)
        logger.info(f"Connection {connection_id} disconnected: {reason}")

    def subscribe(self, connection_id: str, channel: str) -> bool:
        if connection_id not in self.active_connections:
            logger.warning(f"Connection {connection_id} not connected, cannot subscribe to {channel}")
            return False
        self.channel_subscribers.setdefault(channel, set()).add(connection_id)
        self.connection_channels.setdefault(connection_id, set()).add(channel)
        return True

    def unsubscribe(self, connection_id: str, channel: str) -> bool:
        subscribers = self.channel_subscribers.get(channel)
        if not subscribers or connection_id not in subscribers:
            return False
        subscribers.discard(connection_id)
        if not subscribers:
            del self.channel_subscribers[channel]
        self.connection_channels.get(connection_id, set()).discard(channel)
        return True

    def touch(self, connection_id: str) -> None:
        """Record liveness after a ping from the client"""
        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["last_ping"] = datetime.now()

    async def send_to_connection(self, connection_id: str, message: dict) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.error(f"Error sending message to connection {connection_id}: {e}")
            await self.disconnect(connection_id, "Send failed")
            return False

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """广播消息到频道所有订阅者"""
        subscribers = self.channel_subscribers.get(channel)
        if not subscribers:
            logger.debug(f"[BROADCAST] No subscribers on {channel}")
            return 0

        sent_count = 0
        for connection_id in list(subscribers):
            if await self.send_to_connection(connection_id, message):
                sent_count += 1

        logger.info(f"[BROADCAST] Sent {message.get('table', message.get('type', 'unknown'))} "
                    f"{message.get('event', '')} to {sent_count} connections on {channel}")
        return sent_count

    def _start_heartbeat(self, connection_id: str) -> None:
        """启动心跳监控"""
        async def heartbeat_task():
            try:
                while connection_id in self.active_connections:
                    await asyncio.sleep(self.ping_interval)

                    if connection_id not in self.active_connections:
                        break

                    last_ping = self.connection_metadata.get(connection_id, {}).get("last_ping")
                    if last_ping:
                        silence = (datetime.now() - last_ping).total_seconds()
                        # 超过 3 个心跳周期没有响应，断开连接
                        if silence > self.ping_interval * 3:
                            logger.warning(f"Connection {connection_id} heartbeat timeout ({silence:.1f}s), disconnecting")
                            await self.disconnect(connection_id, "Heartbeat timeout")
                            break

                    await self.send_to_connection(connection_id, {
                        "type": "ping",
                        "data": {"timestamp": datetime.now().isoformat()}
                    })

            except asyncio.CancelledError:
                logger.debug(f"Heartbeat task cancelled for connection {connection_id}")

        if connection_id in self._heartbeat_tasks:
            self._heartbeat_tasks[connection_id].cancel()

        self._heartbeat_tasks[connection_id] = asyncio.create_task(heartbeat_task())

    def get_connection_count(self) -> int:
        """获取当前连接数"""
        return len(self.active_connections)

    def get_channel_count(self) -> int:
        return len(self.channel_subscribers)

    def get_subscribers(self, channel: str) -> List[str]:
        return list(self.channel_subscribers.get(channel, set()))

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections


# 全局连接管理器实例
connection_manager = ConnectionManager()
