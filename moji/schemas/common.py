"""
Common Pydantic schemas
通用数据验证和序列化模型
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime
from enum import Enum


class ResponseStatus(str, Enum):
    """响应状态枚举"""
    SUCCESS = "success"
    ERROR = "error"


class MessageResponse(BaseModel):
    """Plain acknowledgement"""
    status: ResponseStatus = ResponseStatus.SUCCESS
    message: str = ""
    data: Optional[Any] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class WebSocketMessage(BaseModel):
    """WebSocket消息模型"""
    type: str = Field(..., description="消息类型")
    data: Optional[Dict[str, Any]] = Field(None, description="消息数据")
    timestamp: datetime = Field(default_factory=datetime.now)


class ChangeEvent(str, Enum):
    """Row change kinds pushed to subscribers"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class ChangeNotification(BaseModel):
    """Row-change notification delivered on a realtime channel"""
    type: str = "postgres_changes"
    event: ChangeEvent
    table: str
    filter: str
    new: Dict[str, Any]
