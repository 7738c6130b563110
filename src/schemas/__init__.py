"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.common import ErrorResponse, HealthResponse
from src.schemas.quiz import (
    AnswerResultResponse,
    AnswerSubmitRequest,
    LevelProgressResponse,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    # Quiz
    "AnswerResultResponse",
    "AnswerSubmitRequest",
    "LevelProgressResponse",
]
