"""
Kernel Data Models

SQLAlchemy models for persisted learner state.
"""

from src.kernel.models.base import Base, TimestampMixin
from src.kernel.models.progress import UserProgressRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "UserProgressRecord",
]
