"""
Progress document model - one JSON document per user.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin


class UserProgressRecord(Base, TimestampMixin):
    """
    Serialized UserProgress for one user.

    `version` guards writes: a save only succeeds against the version it loaded.
    """

    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    document: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
