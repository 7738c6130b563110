"""
Quiz Engine - topic/level progression driven by task generators.

Content:
- Topic: ordered levels; the first level is unlocked for every learner
- Level: task generators plus the levels unlocked on completion
- Task generator: produces concrete tasks and declares the streak
  (consecutive correct answers) required to master it

Progression:
- Next task drawn from an unmastered generator of an unlocked level
- Correct answer: streak + 1 (capped); incorrect answer: streak reset to 0
- All generators mastered: level complete, next levels unlocked
- Hints revealed one at a time in authored order
"""

from src.engines.quiz.catalog import CatalogIntegrityError, ContentCatalog, Level, Topic, load_catalog
from src.engines.quiz.generators import (
    Task,
    TaskGenerator,
    TemplateTaskGenerator,
    build_generator,
    register_generator,
)
from src.engines.quiz.info import HintInfo, LevelInfo, LevelProgressInfo, TaskInfo, TopicInfo
from src.engines.quiz.locks import UserLockRegistry
from src.engines.quiz.progress import LevelProgress, TaskState, TopicProgress, UserProgress
from src.engines.quiz.result import FailureKind, QuizFailure, QuizResult
from src.engines.quiz.selector import (
    GeneratorSelector,
    UniformGeneratorSelector,
    WeightedGeneratorSelector,
    build_selector,
)
from src.engines.quiz.service import QuizService
from src.engines.quiz.store import (
    ConcurrentUpdateError,
    InMemoryProgressStore,
    ProgressStore,
    ProgressStoreError,
    SqlProgressStore,
)

__all__ = [
    # Catalog
    "CatalogIntegrityError",
    "ContentCatalog",
    "Level",
    "Topic",
    "load_catalog",
    # Generators
    "Task",
    "TaskGenerator",
    "TemplateTaskGenerator",
    "build_generator",
    "register_generator",
    # Results
    "FailureKind",
    "QuizFailure",
    "QuizResult",
    "HintInfo",
    "LevelInfo",
    "LevelProgressInfo",
    "TaskInfo",
    "TopicInfo",
    # Progress
    "LevelProgress",
    "TaskState",
    "TopicProgress",
    "UserProgress",
    # Selection
    "GeneratorSelector",
    "UniformGeneratorSelector",
    "WeightedGeneratorSelector",
    "build_selector",
    # Engine
    "QuizService",
    "UserLockRegistry",
    # Storage
    "ConcurrentUpdateError",
    "InMemoryProgressStore",
    "ProgressStore",
    "ProgressStoreError",
    "SqlProgressStore",
]
