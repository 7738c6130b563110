"""
Task generators - produce concrete task instances from a random source.

Variants register under a `kind` name so catalogs can describe generators as
plain JSON documents:

    @register_generator("numeric")
    class NumericTaskGenerator(TaskGenerator):
        ...
"""

import random
import string
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Type

from pydantic import BaseModel, ConfigDict, Field

TEMPLATE_PLACEHOLDER = "$i$"


class Task(BaseModel):
    """One presented question instance. `answer` is for internal checking only."""

    text: str
    question: str = ""
    possible_answers: List[str] = []
    hints: List[str] = []
    answer: str
    generator_id: str
    is_solved: bool = False


class TaskGenerator(BaseModel, ABC):
    """
    Base for task generation strategies.

    `streak` is the number of consecutive correct answers required to
    consider the generator mastered.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    streak: int = Field(default=1, ge=1)

    @abstractmethod
    def produce(self, rng: random.Random) -> Task:
        """Produce a new task using only the supplied random source."""


_GENERATOR_KINDS: Dict[str, Type[TaskGenerator]] = {}


def register_generator(kind: str) -> Callable[[Type[TaskGenerator]], Type[TaskGenerator]]:
    """Class decorator registering a generator variant under `kind`."""

    def decorator(cls: Type[TaskGenerator]) -> Type[TaskGenerator]:
        if kind in _GENERATOR_KINDS and _GENERATOR_KINDS[kind] is not cls:
            raise ValueError(f"Generator kind already registered: {kind}")
        _GENERATOR_KINDS[kind] = cls
        return cls

    return decorator


def generator_kinds() -> List[str]:
    """Return registered generator kinds."""
    return sorted(_GENERATOR_KINDS)


def build_generator(data: Dict[str, Any]) -> TaskGenerator:
    """Build a generator from a catalog document, dispatching on `kind`."""
    kind = data.get("kind", "template")
    generator_cls = _GENERATOR_KINDS.get(kind)
    if generator_cls is None:
        raise ValueError(f"Unknown generator kind: {kind}")
    return generator_cls.model_validate({**data, "kind": kind})


@register_generator("template")
class TemplateTaskGenerator(TaskGenerator):
    """
    Renders a code/text template by substituting a random lowercase letter
    for every `$i$` token. Hints, decoys and answer pass through unchanged.
    """

    kind: str = "template"
    template: str
    question: str = ""
    possible_answers: List[str] = []
    answer: str
    hints: List[str] = []

    def produce(self, rng: random.Random) -> Task:
        letter = rng.choice(string.ascii_lowercase)
        return Task(
            text=self.template.replace(TEMPLATE_PLACEHOLDER, letter),
            question=self.question,
            possible_answers=list(self.possible_answers),
            hints=list(self.hints),
            answer=self.answer,
            generator_id=self.id,
        )
