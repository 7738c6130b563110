"""
FastAPI dependencies for database sessions and the quiz engine.
"""

import random
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.database import get_db
from src.engines.quiz.catalog import ContentCatalog, load_catalog
from src.engines.quiz.locks import UserLockRegistry
from src.engines.quiz.selector import GeneratorSelector, build_selector
from src.engines.quiz.service import QuizService
from src.engines.quiz.store import SqlProgressStore


DbSession = Annotated[AsyncSession, Depends(get_db)]


@lru_cache
def get_catalog() -> ContentCatalog:
    """Content catalog, loaded once per process."""
    settings = get_settings()
    return load_catalog(settings.catalog_path, default_topic_id=settings.default_topic_id)


@lru_cache
def get_random() -> random.Random:
    """Process-wide random source for task generation and selection."""
    return random.Random(get_settings().random_seed)


@lru_cache
def get_selector() -> GeneratorSelector:
    """Generator selection policy from settings."""
    return build_selector(get_settings().selector_policy)


@lru_cache
def get_user_locks() -> UserLockRegistry:
    """Per-user locks shared by every request in this process."""
    return UserLockRegistry()


def get_quiz_service(
    db: DbSession,
    catalog: Annotated[ContentCatalog, Depends(get_catalog)],
    rng: Annotated[random.Random, Depends(get_random)],
    selector: Annotated[GeneratorSelector, Depends(get_selector)],
    locks: Annotated[UserLockRegistry, Depends(get_user_locks)],
) -> QuizService:
    """Quiz engine bound to this request's database session."""
    return QuizService(catalog, SqlProgressStore(db), selector=selector, rng=rng, locks=locks)


QuizServiceDep = Annotated[QuizService, Depends(get_quiz_service)]

