"""
Quiz Service - the progression engine.

Each user-facing operation is one read-modify-write cycle over the user's
progress record, serialized per user:

    load (or lazily provision) -> validate against catalog -> apply rules
    -> select generator / produce task -> persist -> QuizResult

Progression rules:
- A generator's streak rises by one per correct answer, is clamped at the
  generator's required streak and drops to 0 on an incorrect answer
  (mastered generators are frozen).
- A level is complete when every generator is mastered; completing it
  unlocks its next levels with all-zero streaks (idempotent).
- Hints are revealed in authored order, one per request.
"""

import random
from typing import List, Optional, Tuple

from src.engines.quiz.catalog import ContentCatalog, Level
from src.engines.quiz.info import HintInfo, LevelInfo, LevelProgressInfo, TaskInfo, TopicInfo
from src.engines.quiz.locks import UserLockRegistry
from src.engines.quiz.progress import LevelProgress, TaskState, TopicProgress, UserProgress
from src.engines.quiz.result import FailureKind, QuizResult
from src.engines.quiz.selector import GeneratorSelector, UniformGeneratorSelector
from src.engines.quiz.store import ProgressStore
from src.logging_config import get_logger

logger = get_logger(__name__)


class QuizService:
    """Progression engine over a read-only catalog and a progress store."""

    def __init__(
        self,
        catalog: ContentCatalog,
        store: ProgressStore,
        selector: Optional[GeneratorSelector] = None,
        rng: Optional[random.Random] = None,
        locks: Optional[UserLockRegistry] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.selector = selector or UniformGeneratorSelector()
        self.rng = rng if rng is not None else random.Random()
        self.locks = locks or UserLockRegistry()

    # ------------------------------------------------------------------
    # Catalog views
    # ------------------------------------------------------------------

    def list_topics(self) -> QuizResult[List[TopicInfo]]:
        """List every topic in the catalog."""
        topics = [TopicInfo.from_topic(t) for t in self.catalog.get_topics()]
        logger.info("Listed topics", extra={"count": len(topics)})
        return QuizResult.ok(topics)

    def list_levels(self, topic_id: str) -> QuizResult[List[LevelInfo]]:
        """List every level of a topic, locked or not."""
        if not self.catalog.topic_exists(topic_id):
            return self._topic_not_found(topic_id)
        levels = [LevelInfo.from_level(level) for level in self.catalog.get_levels(topic_id)]
        logger.info("Listed levels", extra={"topic_id": topic_id, "count": len(levels)})
        return QuizResult.ok(levels)

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    async def available_levels(self, user_id: str, topic_id: str) -> QuizResult[List[LevelInfo]]:
        """Levels the user has unlocked in a topic, in authored order."""
        if not self.catalog.topic_exists(topic_id):
            return self._topic_not_found(topic_id)

        async with self.locks.lock_for(user_id):
            progress, dirty = await self._load_or_provision(user_id)
            topic_progress, created = self._ensure_topic(progress, topic_id)
            if dirty or created:
                await self.store.save(progress)

        levels = [
            LevelInfo.from_level(level)
            for level in self.catalog.get_levels(topic_id)
            if topic_progress.is_unlocked(level.id)
        ]
        logger.info(
            "Listed available levels",
            extra={"user_id": user_id, "topic_id": topic_id, "count": len(levels)},
        )
        return QuizResult.ok(levels)

    async def level_progress(self, user_id: str, topic_id: str, level_id: str) -> QuizResult[LevelProgressInfo]:
        """Mastered vs. total generators of an unlocked level."""
        topic = self.catalog.find_topic(topic_id)
        if topic is None:
            return self._topic_not_found(topic_id)
        level = self.catalog.find_level(topic.id, level_id)
        if level is None:
            return self._level_not_found(topic_id, level_id)

        async with self.locks.lock_for(user_id):
            progress, dirty = await self._load_or_provision(user_id)
            topic_progress, created = self._ensure_topic(progress, topic_id)
            level_progress, synced = self._ensure_level(topic_progress, level)
            if dirty or created or synced:
                await self.store.save(progress)

        if level_progress is None:
            return self._level_locked(user_id, topic_id, level_id)
        return QuizResult.ok(self._summarize(level_progress, level))

    async def next_task(self, user_id: str, topic_id: str, level_id: str) -> QuizResult[TaskInfo]:
        """Draw a new task from the level and make it the user's in-flight task."""
        async with self.locks.lock_for(user_id):
            return await self._issue_task(user_id, topic_id, level_id)

    async def continue_task(self, user_id: str) -> QuizResult[TaskInfo]:
        """Draw a new task from the user's last position."""
        async with self.locks.lock_for(user_id):
            progress = await self.store.load(user_id)
            if progress is None or not progress.has_position():
                logger.info("Continue rejected: no prior task", extra={"user_id": user_id})
                return QuizResult.fail(FailureKind.ACCESS_DENIED, f"User {user_id} hasn't started any task")
            return await self._issue_task(user_id, progress.current_topic_id, progress.current_level_id)

    async def check_answer(self, user_id: str, answer: str) -> QuizResult[bool]:
        """
        Check an answer against the in-flight task.

        The comparison is an exact string match. A solved task accepts no
        further answers; an unsolved one may be retried.
        """
        async with self.locks.lock_for(user_id):
            progress = await self.store.load(user_id)
            if progress is None or not progress.has_current_task():
                logger.info("Answer rejected: no task in progress", extra={"user_id": user_id})
                return QuizResult.fail(FailureKind.ACCESS_DENIED, f"User {user_id} hasn't started any task")

            task = progress.current_task
            if task.is_solved:
                logger.info("Answer rejected: task already solved", extra={"user_id": user_id})
                return QuizResult.fail(FailureKind.ACCESS_DENIED, "Current task is solved already")

            correct = answer == task.answer
            if correct:
                task.is_solved = True
            self._update_streak(progress, task, correct)
            await self.store.save(progress)

        logger.info(
            "Checked answer",
            extra={"user_id": user_id, "generator_id": task.generator_id, "correct": correct},
        )
        return QuizResult.ok(correct)

    async def request_hint(self, user_id: str) -> QuizResult[HintInfo]:
        """Reveal the next hint of the in-flight task."""
        async with self.locks.lock_for(user_id):
            progress = await self.store.load(user_id)
            if progress is None or not progress.has_current_task():
                logger.info("Hint rejected: no task in progress", extra={"user_id": user_id})
                return QuizResult.fail(FailureKind.ACCESS_DENIED, f"User {user_id} hasn't started any task")

            task = progress.current_task
            if task.hints_remaining <= 0:
                return QuizResult.fail(FailureKind.OUT_OF_HINTS, "Out of hints")

            index = task.hints_taken
            task.hints_taken = index + 1
            await self.store.save(progress)

        logger.info("Revealed hint", extra={"user_id": user_id, "hint_index": index})
        return QuizResult.ok(HintInfo(hint=task.hints[index], has_more=task.hints_remaining > 0))

    # ------------------------------------------------------------------
    # Internals (caller holds the user's lock)
    # ------------------------------------------------------------------

    async def _issue_task(self, user_id: str, topic_id: str, level_id: str) -> QuizResult[TaskInfo]:
        topic = self.catalog.find_topic(topic_id)
        if topic is None:
            return self._topic_not_found(topic_id)
        level = self.catalog.find_level(topic.id, level_id)
        if level is None:
            return self._level_not_found(topic_id, level_id)

        progress, dirty = await self._load_or_provision(user_id)
        topic_progress, created = self._ensure_topic(progress, topic_id)
        level_progress, synced = self._ensure_level(topic_progress, level)
        if level_progress is None:
            if dirty or created:
                await self.store.save(progress)
            return self._level_locked(user_id, topic_id, level_id)

        selection = self.selector.select(level.generators, level_progress.streaks, self.rng)
        if selection.is_failure:
            # Mastered level: leave the stored record untouched.
            logger.info(
                "No eligible generator",
                extra={"user_id": user_id, "topic_id": topic_id, "level_id": level_id},
            )
            return QuizResult(failure=selection.failure)

        generator = selection.value
        task = generator.produce(self.rng)
        progress.current_topic_id = topic_id
        progress.current_level_id = level_id
        progress.current_task = TaskState.from_task(task)
        await self.store.save(progress)

        logger.info(
            "Issued task",
            extra={
                "user_id": user_id,
                "topic_id": topic_id,
                "level_id": level_id,
                "generator_id": generator.id,
            },
        )
        return QuizResult.ok(TaskInfo.from_task(task))

    async def _load_or_provision(self, user_id: str) -> Tuple[UserProgress, bool]:
        """Load progress, creating it (seeded with the default topic) on first contact."""
        progress = await self.store.load(user_id)
        if progress is not None:
            return progress, False

        progress = await self.store.create(user_id)
        logger.info("Provisioned progress for new user", extra={"user_id": user_id})
        default_topic = self.catalog.default_topic()
        if default_topic is None or progress.topic(default_topic.id) is not None:
            return progress, False
        progress.get_or_create_topic(default_topic.id, self.catalog.entry_level(default_topic.id))
        return progress, True

    def _ensure_topic(self, progress: UserProgress, topic_id: str) -> Tuple[TopicProgress, bool]:
        existed = progress.topic(topic_id) is not None
        topic_progress = progress.get_or_create_topic(topic_id, self.catalog.entry_level(topic_id))
        return topic_progress, not existed

    @staticmethod
    def _ensure_level(topic_progress: TopicProgress, level: Level) -> Tuple[Optional[LevelProgress], bool]:
        level_progress = topic_progress.level(level.id)
        if level_progress is None:
            return None, False
        return level_progress, level_progress.sync_generators(level)

    def _update_streak(self, progress: UserProgress, task: TaskState, correct: bool) -> None:
        topic_id, level_id = progress.current_topic_id, progress.current_level_id
        level = self.catalog.find_level(topic_id, level_id) if progress.has_position() else None
        generator = self.catalog.find_generator(topic_id, level_id, task.generator_id) if level else None
        level_progress = progress.active_level_progress()
        if generator is None or level_progress is None:
            logger.warning(
                "Task generator is no longer in the catalog; streak unchanged",
                extra={"user_id": progress.user_id, "generator_id": task.generator_id},
            )
            return

        current = level_progress.streak(generator.id)
        if current >= generator.streak:
            return  # mastered generators are frozen

        if not correct:
            level_progress.set_streak(generator.id, 0, generator.streak)
            return

        level_progress.set_streak(generator.id, current + 1, generator.streak)
        if level_progress.is_complete(level):
            self._unlock_next_levels(progress, topic_id, level)

    def _unlock_next_levels(self, progress: UserProgress, topic_id: str, level: Level) -> List[str]:
        """
        Unlock every level listed in `level.next_levels`.

        Catalogs built by ContentCatalog reject dangling ids at load time; an
        unknown id reaching this point is only logged and skipped.
        """
        topic_progress = progress.topics[topic_id]
        unlocked = []
        for next_id in level.next_levels:
            next_level = self.catalog.find_level(topic_id, next_id)
            if next_level is None:
                logger.warning(
                    "Completed level unlocks an unknown level",
                    extra={"topic_id": topic_id, "level_id": level.id, "next_level_id": next_id},
                )
                continue
            if topic_progress.unlock(next_level):
                unlocked.append(next_id)
        logger.info(
            "Level completed",
            extra={
                "user_id": progress.user_id,
                "topic_id": topic_id,
                "level_id": level.id,
                "unlocked": unlocked,
            },
        )
        return unlocked

    @staticmethod
    def _summarize(level_progress: LevelProgress, level: Level) -> LevelProgressInfo:
        return LevelProgressInfo(
            mastered=level_progress.mastered_count(level),
            total=len(level.generators),
            streak_earned=sum(min(level_progress.streak(g.id), g.streak) for g in level.generators),
            streak_required=sum(g.streak for g in level.generators),
        )

    @staticmethod
    def _topic_not_found(topic_id: str) -> QuizResult:
        logger.info("Unknown topic", extra={"topic_id": topic_id})
        return QuizResult.fail(FailureKind.NOT_FOUND, f"Topic {topic_id} does not exist")

    @staticmethod
    def _level_not_found(topic_id: str, level_id: str) -> QuizResult:
        logger.info("Unknown level", extra={"topic_id": topic_id, "level_id": level_id})
        return QuizResult.fail(FailureKind.NOT_FOUND, f"Level {level_id} does not exist in topic {topic_id}")

    @staticmethod
    def _level_locked(user_id: str, topic_id: str, level_id: str) -> QuizResult:
        logger.info(
            "Level locked for user",
            extra={"user_id": user_id, "topic_id": topic_id, "level_id": level_id},
        )
        return QuizResult.fail(
            FailureKind.ACCESS_DENIED,
            f"User {user_id} doesn't have access to level {level_id} in topic {topic_id}",
        )
