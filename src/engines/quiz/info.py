"""
Public result shapes returned by the engine. The canonical answer never
appears in any of these.
"""

from typing import List

from pydantic import BaseModel

from src.engines.quiz.catalog import Level, Topic
from src.engines.quiz.generators import Task


class TopicInfo(BaseModel):
    """Topic summary."""

    name: str
    id: str

    @classmethod
    def from_topic(cls, topic: Topic) -> "TopicInfo":
        return cls(name=topic.name, id=topic.id)


class LevelInfo(BaseModel):
    """Level summary."""

    id: str
    description: str

    @classmethod
    def from_level(cls, level: Level) -> "LevelInfo":
        return cls(id=level.id, description=level.description)


class TaskInfo(BaseModel):
    """Task as shown to the learner."""

    question: str
    possible_answers: List[str] = []
    has_hints: bool
    text: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskInfo":
        return cls(
            question=task.question,
            possible_answers=list(task.possible_answers),
            has_hints=len(task.hints) > 0,
            text=task.text,
        )


class LevelProgressInfo(BaseModel):
    """
    Mastered vs. total generators in a level, plus the summed streak figures
    (earned vs. required) used for progress bars.
    """

    mastered: int
    total: int
    streak_earned: int
    streak_required: int

    @property
    def is_complete(self) -> bool:
        return self.mastered == self.total


class HintInfo(BaseModel):
    """Next revealed hint."""

    hint: str
    has_more: bool
