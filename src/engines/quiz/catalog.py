"""
Content Catalog - read-only topics, levels and task generators.

The catalog is loaded once (from a JSON document) and shared by every request;
the engine never mutates it.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from src.engines.quiz.generators import TaskGenerator, build_generator


class CatalogIntegrityError(ValueError):
    """Raised when catalog content references missing or duplicate entries."""


class Level(BaseModel):
    """A unit of mastery within a topic."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str = ""
    generators: List[TaskGenerator] = []
    next_levels: List[str] = []

    @field_validator("generators", mode="before")
    @classmethod
    def _build_generators(cls, value: Any) -> Any:
        if value is None:
            return []
        return [build_generator(item) if isinstance(item, dict) else item for item in value]


class Topic(BaseModel):
    """Top-level subject area with an ordered sequence of levels."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    levels: List[Level] = []


class ContentCatalog:
    """In-memory catalog indexed by identifier."""

    def __init__(self, topics: List[Topic], default_topic_id: Optional[str] = None):
        self._topics = list(topics)
        self._default_topic_id = default_topic_id
        self._topic_index: Dict[str, Topic] = {}
        self._level_index: Dict[str, Dict[str, Level]] = {}
        for topic in self._topics:
            if topic.id in self._topic_index:
                raise CatalogIntegrityError(f"Duplicate topic id: {topic.id}")
            self._topic_index[topic.id] = topic
            self._level_index[topic.id] = self._index_levels(topic)
        if default_topic_id is not None and default_topic_id not in self._topic_index:
            raise CatalogIntegrityError(f"Default topic {default_topic_id} is not in the catalog")

    @staticmethod
    def _index_levels(topic: Topic) -> Dict[str, Level]:
        levels: Dict[str, Level] = {}
        for level in topic.levels:
            if level.id in levels:
                raise CatalogIntegrityError(f"Duplicate level id {level.id} in topic {topic.id}")
            generator_ids = [g.id for g in level.generators]
            if len(set(generator_ids)) != len(generator_ids):
                raise CatalogIntegrityError(f"Duplicate generator id in level {level.id} of topic {topic.id}")
            levels[level.id] = level
        for level in topic.levels:
            for next_id in level.next_levels:
                if next_id not in levels:
                    raise CatalogIntegrityError(
                        f"Level {level.id} of topic {topic.id} unlocks unknown level {next_id}"
                    )
        return levels

    @classmethod
    def from_document(cls, document: Dict[str, Any], default_topic_id: Optional[str] = None) -> "ContentCatalog":
        """Build a catalog from a `{"topics": [...]}` mapping."""
        try:
            topics = [Topic.model_validate(t) for t in document.get("topics", [])]
        except (ValidationError, ValueError) as exc:
            raise CatalogIntegrityError(str(exc)) from exc
        return cls(topics, default_topic_id=default_topic_id)

    def topic_exists(self, topic_id: str) -> bool:
        return topic_id in self._topic_index

    def level_exists(self, topic_id: str, level_id: str) -> bool:
        return level_id in self._level_index.get(topic_id, {})

    def get_topics(self) -> List[Topic]:
        return list(self._topics)

    def get_levels(self, topic_id: str) -> List[Level]:
        topic = self._topic_index.get(topic_id)
        return list(topic.levels) if topic else []

    def find_topic(self, topic_id: str) -> Optional[Topic]:
        return self._topic_index.get(topic_id)

    def find_level(self, topic_id: str, level_id: str) -> Optional[Level]:
        return self._level_index.get(topic_id, {}).get(level_id)

    def find_generator(self, topic_id: str, level_id: str, generator_id: str) -> Optional[TaskGenerator]:
        level = self.find_level(topic_id, level_id)
        if level is None:
            return None
        for generator in level.generators:
            if generator.id == generator_id:
                return generator
        return None

    def get_generators(self, topic_id: str, level_id: str) -> List[TaskGenerator]:
        level = self.find_level(topic_id, level_id)
        return list(level.generators) if level else []

    def entry_level(self, topic_id: str) -> Optional[Level]:
        """First authored level of a topic."""
        topic = self._topic_index.get(topic_id)
        if not topic or not topic.levels:
            return None
        return topic.levels[0]

    def default_topic(self) -> Optional[Topic]:
        """Topic new users start in: configured default, else the first topic."""
        if self._default_topic_id is not None:
            return self._topic_index[self._default_topic_id]
        return self._topics[0] if self._topics else None


def load_catalog(path: Path, default_topic_id: Optional[str] = None) -> ContentCatalog:
    """Load a catalog from a JSON file."""
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CatalogIntegrityError(f"Catalog {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise CatalogIntegrityError(f"Catalog {path} must be a JSON object with a 'topics' list")
    return ContentCatalog.from_document(document, default_topic_id=default_topic_id)
