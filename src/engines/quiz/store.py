"""
Progress Store - load/create/save of per-user progress records.

Saves are compare-and-swap on `UserProgress.version`; a stale write raises
ConcurrentUpdateError instead of silently overwriting newer progress.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.engines.quiz.progress import UserProgress
from src.kernel.models.progress import UserProgressRecord
from src.logging_config import get_logger

logger = get_logger(__name__)


class ProgressStoreError(Exception):
    """Infrastructure failure while loading or persisting progress."""


class ConcurrentUpdateError(ProgressStoreError):
    """The stored record changed since it was loaded."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(f"Progress for user {user_id} was modified concurrently (expected version {expected_version})")
        self.user_id = user_id
        self.expected_version = expected_version


class ProgressStore(ABC):
    """Storage collaborator consumed by the engine."""

    @abstractmethod
    async def load(self, user_id: str) -> Optional[UserProgress]:
        """Return the stored progress or None."""

    @abstractmethod
    async def create(self, user_id: str) -> UserProgress:
        """Insert and return an empty progress record."""

    @abstractmethod
    async def save(self, progress: UserProgress) -> None:
        """Persist progress if its version is current; bumps progress.version."""


class InMemoryProgressStore(ProgressStore):
    """Dict-backed store; records are deep-copied in and out."""

    def __init__(self):
        self._records: Dict[str, UserProgress] = {}

    async def load(self, user_id: str) -> Optional[UserProgress]:
        record = self._records.get(user_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, user_id: str) -> UserProgress:
        existing = self._records.get(user_id)
        if existing is not None:
            return existing.model_copy(deep=True)
        progress = UserProgress(user_id=user_id)
        self._records[user_id] = progress.model_copy(deep=True)
        return progress

    async def save(self, progress: UserProgress) -> None:
        current = self._records.get(progress.user_id)
        current_version = current.version if current else 0
        if current is None or current_version != progress.version:
            raise ConcurrentUpdateError(progress.user_id, progress.version)
        progress.version += 1
        self._records[progress.user_id] = progress.model_copy(deep=True)


class SqlProgressStore(ProgressStore):
    """SQLAlchemy-backed store keeping one JSON document per user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_progress(row: UserProgressRecord) -> UserProgress:
        return UserProgress.model_validate({**row.document, "user_id": row.user_id, "version": row.version})

    async def load(self, user_id: str) -> Optional[UserProgress]:
        try:
            result = await self.session.execute(
                select(UserProgressRecord)
                .where(UserProgressRecord.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise ProgressStoreError(f"Could not load progress for user {user_id}") from exc
        return self._to_progress(row) if row else None

    async def create(self, user_id: str) -> UserProgress:
        progress = UserProgress(user_id=user_id)
        row = UserProgressRecord(
            user_id=user_id,
            document=progress.model_dump(mode="json", exclude={"version"}),
            version=0,
        )
        self.session.add(row)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request inserted the same user first.
            await self.session.rollback()
            logger.info("Progress record already created", extra={"user_id": user_id})
            existing = await self.load(user_id)
            if existing is None:
                raise ProgressStoreError(f"Could not create progress for user {user_id}")
            return existing
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise ProgressStoreError(f"Could not create progress for user {user_id}") from exc
        return progress

    async def save(self, progress: UserProgress) -> None:
        expected = progress.version
        statement = (
            update(UserProgressRecord)
            .where(
                UserProgressRecord.user_id == progress.user_id,
                UserProgressRecord.version == expected,
            )
            .values(
                document=progress.model_dump(mode="json", exclude={"version"}),
                version=expected + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(statement)
            if result.rowcount != 1:
                await self.session.rollback()
                raise ConcurrentUpdateError(progress.user_id, expected)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise ProgressStoreError(f"Could not save progress for user {progress.user_id}") from exc
        progress.version = expected + 1
