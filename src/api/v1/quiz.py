"""
Quiz endpoints - topics, levels, tasks, answers and hints.

Engine failures are mapped to HTTP statuses here; the engine itself never
raises for expected domain conditions.
"""

from typing import List, TypeVar

from fastapi import APIRouter, HTTPException, status

from src.api.deps import QuizServiceDep
from src.engines.quiz.info import HintInfo, LevelInfo, TaskInfo, TopicInfo
from src.engines.quiz.result import FailureKind, QuizResult
from src.schemas.common import ErrorResponse
from src.schemas.quiz import AnswerResultResponse, AnswerSubmitRequest, LevelProgressResponse

T = TypeVar("T")

router = APIRouter(
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
)

_STATUS_BY_FAILURE = {
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    FailureKind.NO_ELIGIBLE_GENERATOR: status.HTTP_409_CONFLICT,
    FailureKind.OUT_OF_HINTS: status.HTTP_409_CONFLICT,
}


def _unwrap(result: QuizResult[T]) -> T:
    """Return the success value or raise the matching HTTPException."""
    if result.is_failure:
        failure = result.failure
        raise HTTPException(
            status_code=_STATUS_BY_FAILURE[failure.kind],
            detail={"code": failure.kind.value, "message": failure.message},
        )
    return result.value


@router.get("/topics", response_model=List[TopicInfo])
async def list_topics(service: QuizServiceDep):
    """List every topic."""
    return _unwrap(service.list_topics())


@router.get("/topics/{topic_id}/levels", response_model=List[LevelInfo])
async def list_levels(topic_id: str, service: QuizServiceDep):
    """List every level of a topic."""
    return _unwrap(service.list_levels(topic_id))


@router.get("/users/{user_id}/topics/{topic_id}/levels", response_model=List[LevelInfo])
async def available_levels(user_id: str, topic_id: str, service: QuizServiceDep):
    """List the levels a user has unlocked in a topic."""
    return _unwrap(await service.available_levels(user_id, topic_id))


@router.get(
    "/users/{user_id}/topics/{topic_id}/levels/{level_id}/progress",
    response_model=LevelProgressResponse,
)
async def level_progress(user_id: str, topic_id: str, level_id: str, service: QuizServiceDep):
    """Mastered vs. total generators for an unlocked level."""
    info = _unwrap(await service.level_progress(user_id, topic_id, level_id))
    return LevelProgressResponse.from_info(info)


@router.post("/users/{user_id}/topics/{topic_id}/levels/{level_id}/task", response_model=TaskInfo)
async def next_task(user_id: str, topic_id: str, level_id: str, service: QuizServiceDep):
    """Start a new task in a level."""
    return _unwrap(await service.next_task(user_id, topic_id, level_id))


@router.post("/users/{user_id}/task/next", response_model=TaskInfo)
async def continue_task(user_id: str, service: QuizServiceDep):
    """Start a new task in the level the user last worked on."""
    return _unwrap(await service.continue_task(user_id))


@router.post("/users/{user_id}/task/answer", response_model=AnswerResultResponse)
async def check_answer(user_id: str, body: AnswerSubmitRequest, service: QuizServiceDep):
    """Submit an answer to the in-flight task."""
    correct = _unwrap(await service.check_answer(user_id, body.answer))
    return AnswerResultResponse(correct=correct)


@router.post("/users/{user_id}/task/hint", response_model=HintInfo)
async def request_hint(user_id: str, service: QuizServiceDep):
    """Reveal the next hint of the in-flight task."""
    return _unwrap(await service.request_hint(user_id))
