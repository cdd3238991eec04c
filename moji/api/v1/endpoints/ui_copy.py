"""
UI copy API endpoints
界面文案公开端点
"""

from typing import List
from fastapi import APIRouter, Depends

from moji.api.deps import get_ui_copy_service
from moji.services.ui_copy import UICopyService
from moji.schemas.ui_copy import UICopySection, UICopyValueResponse

router = APIRouter()


@router.get("", response_model=List[UICopySection])
async def get_sections(ui_copy: UICopyService = Depends(get_ui_copy_service)):
    return await ui_copy.get_sections()


@router.get("/{key}", response_model=UICopyValueResponse)
async def get_value(key: str, ui_copy: UICopyService = Depends(get_ui_copy_service)):
    """文案值；未知 key 原样返回"""
    return UICopyValueResponse(key=key, value=await ui_copy.get_value(key))
