"""
Pytest fixtures for quiz engine tests.
"""

import random

import pytest

from src.engines.quiz.catalog import ContentCatalog
from src.engines.quiz.service import QuizService
from src.engines.quiz.store import InMemoryProgressStore


def template(gen_id: str, answer: str, streak: int = 1, hints=None) -> dict:
    """Catalog document for a template generator."""
    return {
        "id": gen_id,
        "kind": "template",
        "streak": streak,
        "question": f"Question for {gen_id}",
        "template": f"{gen_id}: $i$ + $i$",
        "possible_answers": [answer, "wrong"],
        "answer": answer,
        "hints": hints or [],
    }


@pytest.fixture
def catalog_document() -> dict:
    """
    Two topics:
    - arith: basics -> (advanced, extra) -> final
    - empty: a single level without generators
    """
    return {
        "topics": [
            {
                "id": "arith",
                "name": "Arithmetic",
                "description": "Adding things up",
                "levels": [
                    {
                        "id": "basics",
                        "description": "First steps",
                        "next_levels": ["advanced", "extra"],
                        "generators": [template("g-basic", "2", streak=2, hints=["first", "second"])],
                    },
                    {
                        "id": "advanced",
                        "description": "Harder sums",
                        "next_levels": ["final"],
                        "generators": [
                            template("g-adv-a", "10", streak=3),
                            template("g-adv-b", "20", streak=1),
                        ],
                    },
                    {
                        "id": "extra",
                        "description": "Side quest",
                        "next_levels": ["final"],
                        "generators": [template("g-extra", "7")],
                    },
                    {
                        "id": "final",
                        "description": "Last level",
                        "next_levels": [],
                        "generators": [template("g-final", "42")],
                    },
                ],
            },
            {
                "id": "empty",
                "name": "Empty topic",
                "levels": [{"id": "void", "description": "Nothing here", "generators": []}],
            },
        ]
    }


@pytest.fixture
def catalog(catalog_document: dict) -> ContentCatalog:
    return ContentCatalog.from_document(catalog_document)


@pytest.fixture
def rng() -> random.Random:
    """Deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def service(catalog: ContentCatalog, store: InMemoryProgressStore, rng: random.Random) -> QuizService:
    return QuizService(catalog, store, rng=rng)
