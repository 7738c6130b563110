"""
Generator Selector - picks the generator the next task is drawn from.

Only unmastered generators (current streak strictly below the required
streak) are eligible. The random source is always supplied by the caller.
"""

import random
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Sequence

from src.engines.quiz.generators import TaskGenerator
from src.engines.quiz.result import FailureKind, QuizResult


def eligible_generators(
    generators: Sequence[TaskGenerator],
    streaks: Mapping[str, int],
) -> List[TaskGenerator]:
    """Return generators whose streak has not reached the required value."""
    return [g for g in generators if streaks.get(g.id, 0) < g.streak]


class GeneratorSelector(ABC):
    """Selection policy over a level's generators."""

    def select(
        self,
        generators: Sequence[TaskGenerator],
        streaks: Mapping[str, int],
        rng: random.Random,
    ) -> QuizResult[TaskGenerator]:
        eligible = eligible_generators(generators, streaks)
        if not eligible:
            return QuizResult.fail(
                FailureKind.NO_ELIGIBLE_GENERATOR,
                "Every generator in this level is already mastered",
            )
        return QuizResult.ok(self._choose(eligible, streaks, rng))

    @abstractmethod
    def _choose(
        self,
        eligible: List[TaskGenerator],
        streaks: Mapping[str, int],
        rng: random.Random,
    ) -> TaskGenerator:
        """Pick one of the (non-empty) eligible generators."""


class UniformGeneratorSelector(GeneratorSelector):
    """Uniform choice among unmastered generators."""

    def _choose(self, eligible, streaks, rng):
        return rng.choice(eligible)


class WeightedGeneratorSelector(GeneratorSelector):
    """
    Weights each generator by its remaining streak, so a generator with a
    lower current streak is never less likely than one closer to mastery.
    """

    def _choose(self, eligible, streaks, rng):
        weights = [g.streak - streaks.get(g.id, 0) for g in eligible]
        return rng.choices(eligible, weights=weights, k=1)[0]


_POLICIES: Dict[str, type] = {
    "uniform": UniformGeneratorSelector,
    "weighted": WeightedGeneratorSelector,
}


def build_selector(policy: str = "uniform") -> GeneratorSelector:
    """Build a selector from its policy name."""
    try:
        return _POLICIES[policy.lower()]()
    except KeyError:
        raise ValueError(f"Unknown selector policy: {policy}. Expected one of {sorted(_POLICIES)}") from None
