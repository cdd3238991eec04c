"""
WebSocket endpoints
WebSocket连接端点 - 订阅房间的行变更通知
"""

import json
import uuid
import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from moji.core.database import db_manager
from moji.models.room import GameRoom
from moji.schemas.game import ClientErrorReport
from moji.services.realtime import room_channel, players_channel
from moji.utils.rate_limit import (
    voice_error_key, rate_limited_handler,
    voice_error_rate_limiter, safari_voice_error_rate_limiter,
)
from moji.websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)
router = APIRouter()


async def room_exists(room_id: str) -> bool:
    """查询房间是否存在；会话在返回前关闭，长连接不占用数据库连接"""
    if not db_manager.session_factory:
        await db_manager.initialize()

    async with db_manager.session_factory() as session:
        return await session.get(GameRoom, room_id) is not None


def _log_client_error(room_id: str, player_id: Optional[str]):
    def on_error(message: str, count: int):
        logger.warning(f"[CLIENT_ERROR] room={room_id} player={player_id} count={count}: {message}")
    return on_error


async def handle_client_error(connection_id: str, room_id: str, player_id: Optional[str], data: dict):
    """记录浏览器上报的语音/麦克风错误，按错误 key 限流"""
    try:
        report = ClientErrorReport.model_validate(data or {})
    except ValidationError:
        await connection_manager.send_to_connection(connection_id, {
            "type": "error",
            "data": {"message": "Invalid client_error payload"}
        })
        return

    limiter = safari_voice_error_rate_limiter if report.safari else voice_error_rate_limiter
    error_key = voice_error_key(report.error)
    handle = rate_limited_handler(limiter, _log_client_error(room_id, player_id))
    processed = handle(error_key, report.message or report.error)

    await connection_manager.send_to_connection(connection_id, {
        "type": "client_error_ack",
        "data": {
            "key": error_key,
            "processed": processed,
            "cooldown_ms": limiter.get_cooldown_remaining(error_key),
        }
    })


async def handle_websocket_message(connection_id: str, room_id: str, player_id: Optional[str], message: dict):
    message_type = message.get("type")

    if message_type == "ping":
        connection_manager.touch(connection_id)
        await connection_manager.send_to_connection(connection_id, {"type": "pong"})
    elif message_type == "pong":
        connection_manager.touch(connection_id)
    elif message_type == "client_error":
        await handle_client_error(connection_id, room_id, player_id, message.get("data") or {})
    else:
        await connection_manager.send_to_connection(connection_id, {
            "type": "error",
            "data": {"message": f"Unknown message type: {message_type}"}
        })


@router.websocket("/rooms/{room_id}")
async def websocket_room_endpoint(
    websocket: WebSocket,
    room_id: str,
    player_id: Optional[str] = None,
):
    """
    房间WebSocket连接端点
    订阅 game_rooms:id=eq.<room> 与 room_players:room_id=eq.<room> 两个频道
    """
    logger.info(f"[WS_CONNECT] Connection attempt for room {room_id} (player {player_id})")

    if not await room_exists(room_id):
        logger.warning(f"[WS_CONNECT] Room {room_id} not found")
        await websocket.close(code=4004, reason="Room not found")
        return

    connection_id = str(uuid.uuid4())
    connected = await connection_manager.connect(
        connection_id,
        websocket,
        channels=(room_channel(room_id), players_channel(room_id)),
        player_id=player_id,
    )
    if not connected:
        await websocket.close(code=4002, reason="Connection limit reached")
        return

    await connection_manager.send_to_connection(connection_id, {
        "type": "subscribed",
        "data": {"room_id": room_id, "channels": [room_channel(room_id), players_channel(room_id)]}
    })

    try:
        while True:
            try:
                data = await websocket.receive_text()
                message = json.loads(data)
            except json.JSONDecodeError:
                await connection_manager.send_to_connection(connection_id, {
                    "type": "error",
                    "data": {"message": "Invalid JSON format"}
                })
                continue

            if not isinstance(message, dict) or "type" not in message:
                await connection_manager.send_to_connection(connection_id, {
                    "type": "error",
                    "data": {"message": "Invalid message format"}
                })
                continue

            await handle_websocket_message(connection_id, room_id, player_id, message)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection_id} in room {room_id}")
    finally:
        await connection_manager.disconnect(connection_id, "Connection closed")
