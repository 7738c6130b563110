"""
Result type for quiz engine operations.

Expected domain conditions (unknown topic, locked level, no hints left, ...)
are returned as a failure value instead of raised, so callers branch on
`is_success` rather than catching exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Domain failure kinds surfaced by the engine."""
    NOT_FOUND = "not_found"  # topic or level missing from the catalog
    ACCESS_DENIED = "access_denied"  # level locked, no task, task solved
    NO_ELIGIBLE_GENERATOR = "no_eligible_generator"  # level fully mastered
    OUT_OF_HINTS = "out_of_hints"


@dataclass(frozen=True)
class QuizFailure:
    """A typed, recoverable failure."""

    kind: FailureKind
    message: str


@dataclass(frozen=True)
class QuizResult(Generic[T]):
    """Either a success value or a QuizFailure."""

    value: Optional[T] = None
    failure: Optional[QuizFailure] = None

    @classmethod
    def ok(cls, value: T) -> "QuizResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, message: str) -> "QuizResult[T]":
        return cls(failure=QuizFailure(kind=kind, message=message))

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def is_failure(self) -> bool:
        return self.failure is not None
