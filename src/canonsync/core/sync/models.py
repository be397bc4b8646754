"""
Data models for sync planning.

SyncMetadata is the persisted snapshot of the last successful sync: one
key -> fingerprint map per collection. A SyncPlan is what changed since then.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from canonsync.core.content.hashing import HashEngine
from canonsync.core.content.models import (
    Bundle,
    ContentModel,
    Course,
    Icon,
    Question,
    QuestionOption,
    Source,
    Topic,
)


class Collection(str, Enum):
    """Remote collections, in the order they are planned and reported."""

    COURSES = "courses"
    QUESTIONS = "questions"
    OPTIONS = "options"
    TOPICS = "topics"
    SOURCES = "sources"
    BUNDLES = "bundles"
    ICONS = "icons"


def entity_key(entity: ContentModel) -> str:
    """Key an entity is stored under in its remote collection."""
    if isinstance(entity, (Question, QuestionOption)):
        return str(entity.id)
    if isinstance(entity, (Course, Topic, Source, Bundle, Icon)):
        return entity.key
    raise TypeError(f"{type(entity).__name__} is not stored in a collection")


class SyncMetadata(BaseModel):
    """
    Fingerprints recorded at the last sync, per collection.

    Example:
        >>> metadata = SyncMetadata(courses={"math101": "ab12..."})
        >>> metadata.for_collection(Collection.COURSES)
        {'math101': 'ab12...'}
    """

    courses: dict[str, str] = Field(default_factory=dict)
    questions: dict[str, str] = Field(default_factory=dict)
    options: dict[str, str] = Field(default_factory=dict)
    topics: dict[str, str] = Field(default_factory=dict)
    sources: dict[str, str] = Field(default_factory=dict)
    bundles: dict[str, str] = Field(default_factory=dict)
    icons: dict[str, str] = Field(default_factory=dict)

    recorded_at: datetime | None = Field(
        default=None,
        description="When this snapshot was taken",
    )

    def for_collection(self, collection: Collection) -> dict[str, str]:
        fingerprints: dict[str, str] = getattr(self, collection.value)
        return fingerprints

    def total(self) -> int:
        return sum(len(self.for_collection(collection)) for collection in Collection)


@dataclass
class ContentSet:
    """
    Canonical content grouped the way the remote store groups it.

    Questions and options are flattened out of their courses. Topics and
    sources are derived from the questions and fingerprinted on demand.
    """

    courses: list[Course] = field(default_factory=list)
    bundles: list[Bundle] = field(default_factory=list)
    icons: list[Icon] = field(default_factory=list)
    engine: HashEngine = field(default_factory=HashEngine)

    def refresh(self) -> None:
        """Reassign every fingerprint from the entities' current state."""
        for entity in [*self.courses, *self.bundles, *self.icons]:
            self.engine.assign(entity)

    def questions(self) -> list[Question]:
        return [question for course in self.courses for question in course.questions]

    def options(self) -> list[QuestionOption]:
        return [option for question in self.questions() for option in question.options]

    def topics(self) -> list[Topic]:
        by_key: dict[str, Topic] = {}
        for course in self.courses:
            for topic in course.question_topics():
                by_key.setdefault(topic.key, topic)
        for topic in by_key.values():
            self.engine.assign(topic)
        return list(by_key.values())

    def sources(self) -> list[Source]:
        by_key: dict[str, Source] = {}
        for course in self.courses:
            for source in course.question_sources():
                by_key.setdefault(source.key, source)
        for source in by_key.values():
            self.engine.assign(source)
        return list(by_key.values())

    def entities(self, collection: Collection) -> list[ContentModel]:
        """Entities belonging to one collection."""
        producers = {
            Collection.COURSES: lambda: list(self.courses),
            Collection.QUESTIONS: self.questions,
            Collection.OPTIONS: self.options,
            Collection.TOPICS: self.topics,
            Collection.SOURCES: self.sources,
            Collection.BUNDLES: lambda: list(self.bundles),
            Collection.ICONS: lambda: list(self.icons),
        }
        entities: list[ContentModel] = producers[collection]()
        return entities


@dataclass
class CollectionDiff:
    """Changes in one collection: entities to upsert and keys to delete."""

    collection: str
    for_sync: dict[str, ContentModel] = field(default_factory=dict)
    for_deletion: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.for_sync and not self.for_deletion


@dataclass
class SyncPlan:
    """Per-collection diffs plus the snapshot to record once they are applied."""

    diffs: dict[Collection, CollectionDiff]
    metadata: SyncMetadata

    def __getitem__(self, collection: Collection) -> CollectionDiff:
        return self.diffs[collection]

    @property
    def is_empty(self) -> bool:
        return all(diff.is_empty for diff in self.diffs.values())

    def summary(self) -> dict[str, dict[str, int]]:
        """Counts per collection, e.g. {"courses": {"sync": 1, "delete": 0}}."""
        return {
            collection.value: {
                "sync": len(diff.for_sync),
                "delete": len(diff.for_deletion),
            }
            for collection, diff in self.diffs.items()
        }
