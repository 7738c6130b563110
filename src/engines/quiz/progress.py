"""
Progress model - per-user nested state (topic -> level -> generator streaks)
plus the single in-flight task.

Entries are created only through the explicit get-or-create helpers below, so
a LevelProgress exists exactly for the levels a user has unlocked.
"""

import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.engines.quiz.catalog import Level
from src.engines.quiz.generators import Task


class TaskState(BaseModel):
    """Persisted record of the user's in-flight task."""

    task_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    text: str
    answer: str
    hints: List[str] = []
    hints_taken: int = 0
    generator_id: str
    is_solved: bool = False

    @classmethod
    def from_task(cls, task: Task) -> "TaskState":
        return cls(
            text=task.text,
            answer=task.answer,
            hints=list(task.hints),
            generator_id=task.generator_id,
            is_solved=task.is_solved,
        )

    @property
    def hints_remaining(self) -> int:
        return len(self.hints) - self.hints_taken


class LevelProgress(BaseModel):
    """Streak counters for one unlocked level."""

    level_id: str
    streaks: Dict[str, int] = {}

    @classmethod
    def for_level(cls, level: Level) -> "LevelProgress":
        return cls(level_id=level.id, streaks={g.id: 0 for g in level.generators})

    def streak(self, generator_id: str) -> int:
        return self.streaks.get(generator_id, 0)

    def set_streak(self, generator_id: str, value: int, required: int) -> int:
        """Store a counter clamped to [0, required]; returns the stored value."""
        clamped = max(0, min(value, required))
        self.streaks[generator_id] = clamped
        return clamped

    def sync_generators(self, level: Level) -> bool:
        """Add zero counters for generators added since unlock. Returns True if changed."""
        changed = False
        for generator in level.generators:
            if generator.id not in self.streaks:
                self.streaks[generator.id] = 0
                changed = True
        return changed

    def mastered_count(self, level: Level) -> int:
        return sum(1 for g in level.generators if self.streak(g.id) >= g.streak)

    def is_complete(self, level: Level) -> bool:
        return all(self.streak(g.id) >= g.streak for g in level.generators)


class TopicProgress(BaseModel):
    """Unlocked levels of one topic."""

    topic_id: str
    levels: Dict[str, LevelProgress] = {}

    def is_unlocked(self, level_id: str) -> bool:
        return level_id in self.levels

    def level(self, level_id: str) -> Optional[LevelProgress]:
        return self.levels.get(level_id)

    def unlock(self, level: Level) -> bool:
        """Unlock a level with all-zero streaks. Idempotent; True only when newly created."""
        if level.id in self.levels:
            return False
        self.levels[level.id] = LevelProgress.for_level(level)
        return True


class UserProgress(BaseModel):
    """
    Everything the engine knows about one user.

    `version` is the optimistic-concurrency token maintained by the store.
    """

    user_id: str
    current_topic_id: Optional[str] = None
    current_level_id: Optional[str] = None
    current_task: Optional[TaskState] = None
    topics: Dict[str, TopicProgress] = {}
    version: int = 0

    def topic(self, topic_id: str) -> Optional[TopicProgress]:
        return self.topics.get(topic_id)

    def get_or_create_topic(self, topic_id: str, entry_level: Optional[Level]) -> TopicProgress:
        """Return topic progress, creating it with only the entry level unlocked."""
        topic_progress = self.topics.get(topic_id)
        if topic_progress is None:
            topic_progress = TopicProgress(topic_id=topic_id)
            if entry_level is not None:
                topic_progress.unlock(entry_level)
            self.topics[topic_id] = topic_progress
        return topic_progress

    def has_position(self) -> bool:
        return self.current_topic_id is not None and self.current_level_id is not None

    def has_current_task(self) -> bool:
        return self.current_task is not None

    def active_level_progress(self) -> Optional[LevelProgress]:
        if not self.has_position():
            return None
        topic_progress = self.topics.get(self.current_topic_id)
        if topic_progress is None:
            return None
        return topic_progress.level(self.current_level_id)
