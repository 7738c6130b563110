"""
Pydantic schemas for quiz API.
"""

from pydantic import BaseModel

from src.engines.quiz.info import HintInfo, LevelInfo, LevelProgressInfo, TaskInfo, TopicInfo


class AnswerSubmitRequest(BaseModel):
    """Answer to the user's in-flight task."""

    answer: str


class AnswerResultResponse(BaseModel):
    """Whether the submitted answer was correct."""

    correct: bool


class LevelProgressResponse(LevelProgressInfo):
    """Level progress with the derived completion flag."""

    complete: bool

    @classmethod
    def from_info(cls, info: LevelProgressInfo) -> "LevelProgressResponse":
        return cls(**info.model_dump(), complete=info.is_complete)


__all__ = [
    "AnswerSubmitRequest",
    "AnswerResultResponse",
    "HintInfo",
    "LevelInfo",
    "LevelProgressResponse",
    "TaskInfo",
    "TopicInfo",
]
