"""Unit tests for the quiz progression engine."""

import asyncio
import logging
import random

import pytest

from src.engines.quiz.catalog import ContentCatalog, Level
from src.engines.quiz.progress import TaskState, UserProgress
from src.engines.quiz.result import FailureKind
from src.engines.quiz.service import QuizService
from src.engines.quiz.store import InMemoryProgressStore, ProgressStoreError

USER = "learner-1"
SERVICE_LOGGER = "src.engines.quiz.service"


class FailingSaveStore(InMemoryProgressStore):
    """In-memory store whose writes fail once `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False
        self.failed_saves = 0

    async def save(self, progress):
        if self.failing:
            self.failed_saves += 1
            raise ProgressStoreError("disk gone")
        await super().save(progress)


async def current_answer(store: InMemoryProgressStore, user_id: str = USER) -> str:
    progress = await store.load(user_id)
    return progress.current_task.answer


async def solve_next(service: QuizService, store: InMemoryProgressStore, level_id: str, user_id: str = USER):
    """Draw a task from `level_id` and answer it correctly."""
    result = await service.next_task(user_id, "arith", level_id)
    assert result.is_success, result.failure
    answer = await service.check_answer(user_id, await current_answer(store, user_id))
    assert answer.value is True


async def master_level(service: QuizService, store: InMemoryProgressStore, level_id: str, user_id: str = USER):
    """Answer correctly until the level has no eligible generator left."""
    for _ in range(20):
        result = await service.next_task(user_id, "arith", level_id)
        if result.is_failure:
            assert result.failure.kind == FailureKind.NO_ELIGIBLE_GENERATOR
            return
        await service.check_answer(user_id, await current_answer(store, user_id))
    pytest.fail(f"Level {level_id} was never mastered")


async def seed_in_flight_task(
    store: InMemoryProgressStore,
    catalog: ContentCatalog,
    level_id: str,
    generator_id: str,
    streaks: dict,
):
    """Store progress with `level_id` unlocked, given streaks and a task from `generator_id`."""
    progress = await store.create(USER)
    topic = progress.get_or_create_topic("arith", catalog.entry_level("arith"))
    topic.unlock(catalog.find_level("arith", level_id))
    for gen_id, value in streaks.items():
        required = catalog.find_generator("arith", level_id, gen_id).streak
        topic.level(level_id).set_streak(gen_id, value, required)
    generator = catalog.find_generator("arith", level_id, generator_id)
    progress.current_topic_id = "arith"
    progress.current_level_id = level_id
    progress.current_task = TaskState.from_task(generator.produce(random.Random(0)))
    await store.save(progress)


async def streaks_of(store: InMemoryProgressStore, level_id: str) -> dict:
    progress = await store.load(USER)
    return dict(progress.topics["arith"].levels[level_id].streaks)


class TestCatalogViews:
    """Tests for topic and level listings."""

    def test_list_topics(self, service: QuizService):
        result = service.list_topics()
        assert result.is_success
        assert [(t.id, t.name) for t in result.value] == [("arith", "Arithmetic"), ("empty", "Empty topic")]

    def test_list_levels(self, service: QuizService):
        result = service.list_levels("arith")
        assert [level.id for level in result.value] == ["basics", "advanced", "extra", "final"]
        assert result.value[0].description == "First steps"

    def test_list_levels_unknown_topic(self, service: QuizService):
        result = service.list_levels("geometry")
        assert result.failure.kind == FailureKind.NOT_FOUND
        assert result.failure.message == "Topic geometry does not exist"


class TestAvailableLevels:
    """Tests for lazy provisioning and unlocked levels."""

    @pytest.mark.asyncio
    async def test_new_user_sees_entry_level(self, service: QuizService, store: InMemoryProgressStore):
        result = await service.available_levels(USER, "arith")
        assert [level.id for level in result.value] == ["basics"]
        progress = await store.load(USER)
        assert progress is not None
        assert list(progress.topics["arith"].levels) == ["basics"]

    @pytest.mark.asyncio
    async def test_other_topic_provisioned_on_demand(self, service: QuizService, store: InMemoryProgressStore):
        result = await service.available_levels(USER, "empty")
        assert [level.id for level in result.value] == ["void"]
        progress = await store.load(USER)
        assert set(progress.topics) == {"arith", "empty"}

    @pytest.mark.asyncio
    async def test_unknown_topic(self, service: QuizService, store: InMemoryProgressStore):
        result = await service.available_levels(USER, "geometry")
        assert result.failure.kind == FailureKind.NOT_FOUND
        assert await store.load(USER) is None

    @pytest.mark.asyncio
    async def test_repeat_call_does_not_write(self, service: QuizService, store: InMemoryProgressStore):
        await service.available_levels(USER, "arith")
        version = (await store.load(USER)).version
        await service.available_levels(USER, "arith")
        assert (await store.load(USER)).version == version


class TestLevelProgress:
    """Tests for mastered/total summaries."""

    @pytest.mark.asyncio
    async def test_fresh_level(self, service: QuizService):
        result = await service.level_progress(USER, "arith", "basics")
        info = result.value
        assert (info.mastered, info.total) == (0, 1)
        assert (info.streak_earned, info.streak_required) == (0, 2)
        assert not info.is_complete

    @pytest.mark.asyncio
    async def test_locked_level(self, service: QuizService):
        result = await service.level_progress(USER, "arith", "advanced")
        assert result.failure.kind == FailureKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_unknown_level(self, service: QuizService):
        result = await service.level_progress(USER, "arith", "nope")
        assert result.failure.kind == FailureKind.NOT_FOUND
        assert result.failure.message == "Level nope does not exist in topic arith"

    @pytest.mark.asyncio
    async def test_empty_level_counts_as_complete(self, service: QuizService):
        info = (await service.level_progress(USER, "empty", "void")).value
        assert (info.mastered, info.total) == (0, 0)
        assert info.is_complete


class TestNextTask:
    """Tests for task issuing."""

    @pytest.mark.asyncio
    async def test_issues_task_without_answer(self, service: QuizService, store: InMemoryProgressStore):
        result = await service.next_task(USER, "arith", "basics")
        task = result.value
        assert task.question == "Question for g-basic"
        assert task.possible_answers == ["2", "wrong"]
        assert task.has_hints is True
        assert task.text.startswith("g-basic: ")
        assert "$i$" not in task.text
        assert "answer" not in task.model_dump()

        progress = await store.load(USER)
        assert (progress.current_topic_id, progress.current_level_id) == ("arith", "basics")
        assert progress.current_task.generator_id == "g-basic"
        assert progress.current_task.is_solved is False

    @pytest.mark.asyncio
    async def test_unknown_topic_and_level(self, service: QuizService):
        assert (await service.next_task(USER, "geometry", "basics")).failure.kind == FailureKind.NOT_FOUND
        assert (await service.next_task(USER, "arith", "nope")).failure.kind == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_locked_level(self, service: QuizService):
        result = await service.next_task(USER, "arith", "advanced")
        assert result.failure.kind == FailureKind.ACCESS_DENIED
        assert result.failure.message == f"User {USER} doesn't have access to level advanced in topic arith"

    @pytest.mark.asyncio
    async def test_empty_level_has_no_eligible_generator(self, service: QuizService):
        result = await service.next_task(USER, "empty", "void")
        assert result.failure.kind == FailureKind.NO_ELIGIBLE_GENERATOR

    @pytest.mark.asyncio
    async def test_new_task_replaces_previous(self, service: QuizService, store: InMemoryProgressStore):
        await service.next_task(USER, "arith", "basics")
        first = (await store.load(USER)).current_task.task_id
        await service.next_task(USER, "arith", "basics")
        assert (await store.load(USER)).current_task.task_id != first

    @pytest.mark.asyncio
    async def test_same_seed_same_tasks(self, catalog: ContentCatalog):
        texts = []
        for _ in range(2):
            service = QuizService(catalog, InMemoryProgressStore(), rng=random.Random(77))
            texts.append([(await service.next_task(USER, "arith", "basics")).value.text for _ in range(5)])
        assert texts[0] == texts[1]


class TestContinueTask:
    """Tests for resuming at the recorded position."""

    @pytest.mark.asyncio
    async def test_without_position(self, service: QuizService):
        result = await service.continue_task(USER)
        assert result.failure.kind == FailureKind.ACCESS_DENIED
        assert result.failure.message == f"User {USER} hasn't started any task"

    @pytest.mark.asyncio
    async def test_provisioned_user_without_position(self, service: QuizService):
        await service.available_levels(USER, "arith")
        assert (await service.continue_task(USER)).failure.kind == FailureKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_uses_last_position(self, service: QuizService, store: InMemoryProgressStore):
        await service.next_task(USER, "empty", "void")
        await service.next_task(USER, "arith", "basics")
        result = await service.continue_task(USER)
        assert result.value.text.startswith("g-basic: ")


class TestCheckAnswer:
    """Tests for answer checking and streak updates."""

    @pytest.mark.asyncio
    async def test_without_task(self, service: QuizService):
        result = await service.check_answer(USER, "2")
        assert result.failure.kind == FailureKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_streak_two_level(self, service: QuizService, store: InMemoryProgressStore):
        """One generator requiring streak 2: two correct answers complete the level."""
        await solve_next(service, store, "basics")
        assert await streaks_of(store, "basics") == {"g-basic": 1}
        info = (await service.level_progress(USER, "arith", "basics")).value
        assert (info.mastered, info.total, info.streak_earned) == (0, 1, 1)
        levels = (await service.available_levels(USER, "arith")).value
        assert [level.id for level in levels] == ["basics"]

        await solve_next(service, store, "basics")
        assert await streaks_of(store, "basics") == {"g-basic": 2}
        info = (await service.level_progress(USER, "arith", "basics")).value
        assert info.is_complete
        levels = (await service.available_levels(USER, "arith")).value
        assert [level.id for level in levels] == ["basics", "advanced", "extra"]

        result = await service.next_task(USER, "arith", "basics")
        assert result.failure.kind == FailureKind.NO_ELIGIBLE_GENERATOR

    @pytest.mark.asyncio
    async def test_no_eligible_generator_changes_nothing(self, service: QuizService, store: InMemoryProgressStore):
        await master_level(service, store, "basics")
        before = await store.load(USER)
        result = await service.next_task(USER, "arith", "basics")
        assert result.is_failure
        after = await store.load(USER)
        assert after == before

    @pytest.mark.asyncio
    async def test_unlocked_levels_start_at_zero(self, service: QuizService, store: InMemoryProgressStore):
        await master_level(service, store, "basics")
        assert await streaks_of(store, "advanced") == {"g-adv-a": 0, "g-adv-b": 0}
        assert await streaks_of(store, "extra") == {"g-extra": 0}

    @pytest.mark.asyncio
    async def test_answer_on_solved_task(self, service: QuizService, store: InMemoryProgressStore):
        await solve_next(service, store, "basics")
        for answer in ("2", "wrong"):
            result = await service.check_answer(USER, answer)
            assert result.failure.kind == FailureKind.ACCESS_DENIED
            assert result.failure.message == "Current task is solved already"
        assert await streaks_of(store, "basics") == {"g-basic": 1}

    @pytest.mark.asyncio
    async def test_incorrect_answer_allows_retry(self, service: QuizService, store: InMemoryProgressStore):
        await service.next_task(USER, "arith", "basics")
        assert (await service.check_answer(USER, "wrong")).value is False
        assert (await store.load(USER)).current_task.is_solved is False
        assert (await service.check_answer(USER, "2")).value is True
        assert (await store.load(USER)).current_task.is_solved is True

    @pytest.mark.asyncio
    async def test_exact_match_only(self, service: QuizService):
        await service.next_task(USER, "arith", "basics")
        assert (await service.check_answer(USER, " 2")).value is False
        assert (await service.check_answer(USER, "2 ")).value is False

    @pytest.mark.asyncio
    async def test_incorrect_answer_resets_to_zero(
        self, catalog: ContentCatalog, service: QuizService, store: InMemoryProgressStore
    ):
        """Required streak 3 at current streak 2: a wrong answer drops it to 0."""
        await seed_in_flight_task(store, catalog, "advanced", "g-adv-a", {"g-adv-a": 2, "g-adv-b": 1})
        assert (await service.check_answer(USER, "nope")).value is False
        assert await streaks_of(store, "advanced") == {"g-adv-a": 0, "g-adv-b": 1}

    @pytest.mark.asyncio
    async def test_mastered_generator_is_frozen(
        self, catalog: ContentCatalog, service: QuizService, store: InMemoryProgressStore
    ):
        await seed_in_flight_task(store, catalog, "advanced", "g-adv-b", {"g-adv-a": 1, "g-adv-b": 1})
        assert (await service.check_answer(USER, "nope")).value is False
        assert await streaks_of(store, "advanced") == {"g-adv-a": 1, "g-adv-b": 1}
        assert (await service.check_answer(USER, "20")).value is True
        assert await streaks_of(store, "advanced") == {"g-adv-a": 1, "g-adv-b": 1}

    @pytest.mark.asyncio
    async def test_streaks_stay_within_bounds(self, service: QuizService, store: InMemoryProgressStore):
        await master_level(service, store, "basics")
        await master_level(service, store, "advanced")
        assert await streaks_of(store, "advanced") == {"g-adv-a": 3, "g-adv-b": 1}

    @pytest.mark.asyncio
    async def test_completion_unlock_is_idempotent(
        self, catalog: ContentCatalog, service: QuizService, store: InMemoryProgressStore
    ):
        await master_level(service, store, "basics")
        await master_level(service, store, "extra")
        assert await streaks_of(store, "final") == {"g-final": 0}

        await solve_next(service, store, "final")
        assert await streaks_of(store, "final") == {"g-final": 1}

        # advanced also lists final; completing it must not reset final's counters
        await master_level(service, store, "advanced")
        assert await streaks_of(store, "final") == {"g-final": 1}

    @pytest.mark.asyncio
    async def test_concurrent_answers_count_once(self, service: QuizService, store: InMemoryProgressStore):
        await service.next_task(USER, "arith", "basics")
        results = await asyncio.gather(*(service.check_answer(USER, "2") for _ in range(5)))
        assert sum(1 for r in results if r.is_success) == 1
        assert all(r.failure.kind == FailureKind.ACCESS_DENIED for r in results if r.is_failure)
        assert await streaks_of(store, "basics") == {"g-basic": 1}

    @pytest.mark.asyncio
    async def test_users_are_independent(self, service: QuizService, store: InMemoryProgressStore):
        await master_level(service, store, "basics")
        levels = (await service.available_levels("learner-2", "arith")).value
        assert [level.id for level in levels] == ["basics"]

    @pytest.mark.asyncio
    async def test_removed_generator_leaves_streaks(
        self, catalog_document: dict, service: QuizService, store: InMemoryProgressStore, caplog
    ):
        await service.next_task(USER, "arith", "basics")
        catalog_document["topics"][0]["levels"][0]["generators"][0]["id"] = "g-renamed"
        edited = QuizService(ContentCatalog.from_document(catalog_document), store, rng=random.Random(0))

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            result = await edited.check_answer(USER, "2")

        assert result.value is True
        assert await streaks_of(store, "basics") == {"g-basic": 0}
        assert "Task generator is no longer in the catalog; streak unchanged" in caplog.text


class TestLevelCompletion:
    """Tests for unlocking the levels that follow a completed one."""

    def test_unknown_next_level_is_skipped(self, catalog: ContentCatalog, service: QuizService, caplog):
        progress = UserProgress(user_id=USER)
        progress.get_or_create_topic("arith", catalog.entry_level("arith"))
        completed = Level(id="basics", next_levels=["advanced", "ghost"])

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            unlocked = service._unlock_next_levels(progress, "arith", completed)

        assert unlocked == ["advanced"]
        assert set(progress.topics["arith"].levels) == {"basics", "advanced"}
        assert "Completed level unlocks an unknown level" in caplog.text


class TestStoreFailures:
    """Store errors reach the caller unchanged and are not retried."""

    @pytest.mark.asyncio
    async def test_save_failure_propagates(self, catalog: ContentCatalog):
        store = FailingSaveStore()
        store.failing = True
        service = QuizService(catalog, store, rng=random.Random(0))
        with pytest.raises(ProgressStoreError, match="disk gone"):
            await service.next_task(USER, "arith", "basics")
        assert store.failed_saves == 1

    @pytest.mark.asyncio
    async def test_answer_save_failure_propagates(self, catalog: ContentCatalog):
        store = FailingSaveStore()
        service = QuizService(catalog, store, rng=random.Random(0))
        await service.next_task(USER, "arith", "basics")
        store.failing = True
        with pytest.raises(ProgressStoreError):
            await service.check_answer(USER, "2")
        assert store.failed_saves == 1
        assert (await store.load(USER)).current_task.is_solved is False


class TestRequestHint:
    """Tests for ordered hint revelation."""

    @pytest.mark.asyncio
    async def test_hints_in_order_then_out(self, service: QuizService):
        await service.next_task(USER, "arith", "basics")
        first = (await service.request_hint(USER)).value
        assert (first.hint, first.has_more) == ("first", True)
        second = (await service.request_hint(USER)).value
        assert (second.hint, second.has_more) == ("second", False)
        third = await service.request_hint(USER)
        assert third.failure.kind == FailureKind.OUT_OF_HINTS

    @pytest.mark.asyncio
    async def test_without_task(self, service: QuizService):
        result = await service.request_hint(USER)
        assert result.failure.kind == FailureKind.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_task_without_hints(self, service: QuizService, store: InMemoryProgressStore):
        await master_level(service, store, "basics")
        task = (await service.next_task(USER, "arith", "extra")).value
        assert task.has_hints is False
        assert (await service.request_hint(USER)).failure.kind == FailureKind.OUT_OF_HINTS

    @pytest.mark.asyncio
    async def test_new_task_restarts_hints(self, service: QuizService):
        await service.next_task(USER, "arith", "basics")
        await service.request_hint(USER)
        await service.next_task(USER, "arith", "basics")
        assert (await service.request_hint(USER)).value.hint == "first"

    @pytest.mark.asyncio
    async def test_hints_allowed_on_solved_task(self, service: QuizService, store: InMemoryProgressStore):
        await solve_next(service, store, "basics")
        assert (await service.request_hint(USER)).value.hint == "first"
