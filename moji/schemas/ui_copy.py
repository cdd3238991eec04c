"""
UI copy schemas
界面文案数据模型
"""

from pydantic import BaseModel, Field
from typing import Dict


class UICopySection(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    name: str
    description: str = ""
    values: Dict[str, str] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class UICopyValueUpdate(BaseModel):
    value: str


class UICopySectionUpdate(BaseModel):
    values: Dict[str, str]


class UICopyValueResponse(BaseModel):
    key: str
    value: str


class UICopyImportRequest(BaseModel):
    """Raw JSON text: an array of sections"""
    data: str = Field(..., min_length=1)
