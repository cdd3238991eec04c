"""
UI copy model
界面文案模型
"""

from sqlalchemy import Column, String, JSON, DateTime
from sqlalchemy.sql import func
from moji.core.database import Base


class UICopySectionRow(Base):
    """A named group of user-facing strings"""

    __tablename__ = "ui_copy_sections"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=False, default="")
    values = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UICopySectionRow(id={self.id}, keys={len(self.values or {})})>"
