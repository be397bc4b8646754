"""
Pydantic models for course content entities.

Collections:
- Course: owns an ordered list of Question, references topics by name
- Question: owns an ordered list of QuestionOption, embeds a Source and an
  optional Explanation
- Topic, Source: keyed by composite strings derived from the course key
- Bundle, Icon: top-level records with no children

Back-references (Question.course_key, QuestionOption.question_id,
Source.course_key) are plain values bound by the canonicalizer. Reading them
through the bound_* accessors before binding raises UnboundReferenceError.

The fingerprint field is a memoized digest written by the hash engine.
Assigning any other field clears it. In-place edits of list fields and changes
to children do not reach the parent, so a stored fingerprint is only current
right after HashEngine.assign; sync planning reassigns before diffing.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from canonsync.core.content.errors import UnboundReferenceError

KEY_SEPARATOR = "::"
EMPTY_KEY_FIELD = "!"
DEFAULT_TOPIC_NAME = "_"


class ContentModel(BaseModel):
    """Base for entities that carry a content fingerprint."""

    model_config = ConfigDict(validate_assignment=True)

    fingerprint: str = Field(
        default="",
        description="Hex digest of the canonical byte encoding; empty until assigned",
    )

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name != "fingerprint" and name in type(self).model_fields:
            super().__setattr__("fingerprint", "")

    @property
    def kind(self) -> str:
        """Entity kind used in error messages and logs."""
        return type(self).__name__.lower()


class SourceType(str, Enum):
    """Where a question was taken from."""

    EXAM = "exam"
    PARTIAL = "partial"
    SELF_ASSESSMENT = "self_assessment"
    OTHER = "other"

    @property
    def rank(self) -> int:
        """Position in the canonical question order."""
        return list(SourceType).index(self)

    @property
    def requires_date(self) -> bool:
        return self in (SourceType.EXAM, SourceType.PARTIAL)

    @property
    def requires_name(self) -> bool:
        return self is SourceType.PARTIAL


class Source(ContentModel):
    """
    Origin of a question (an exam sitting, a partial, a self assessment).

    Sources are not authored as a collection. They are collected from the
    questions of a course and keyed by course + type + name + date + variant.

    Example:
        >>> source = Source(course_key="math101", type=SourceType.EXAM, date=dt.date(2024, 7, 1))
        >>> source.key
        'math101::exam::!::2024-07-01::!'
    """

    course_key: str | None = Field(default=None, description="Owning course key (weak reference)")
    type: SourceType = Field(default=SourceType.OTHER, description="Kind of source")
    name: str | None = Field(default=None, description="Source name, required for partials")
    date: dt.date | None = Field(default=None, description="When the source was taken")
    variant: str | None = Field(default=None, description="Variant label (e.g. exam version)")

    def bound_course_key(self) -> str:
        if self.course_key is None:
            raise UnboundReferenceError("course key not set in source")
        return self.course_key

    @property
    def key(self) -> str:
        parts = [
            self.bound_course_key(),
            self.type.value,
            self.name if self.name is not None else EMPTY_KEY_FIELD,
            self.date.isoformat() if self.date is not None else EMPTY_KEY_FIELD,
            self.variant if self.variant is not None else EMPTY_KEY_FIELD,
        ]
        return KEY_SEPARATOR.join(parts)

    @property
    def local_key(self) -> str:
        """Key without the course part, stable before the course is bound."""
        parts = [
            self.type.value,
            self.name if self.name is not None else EMPTY_KEY_FIELD,
            self.date.isoformat() if self.date is not None else EMPTY_KEY_FIELD,
            self.variant if self.variant is not None else EMPTY_KEY_FIELD,
        ]
        return KEY_SEPARATOR.join(parts)


class Topic(ContentModel):
    """Topic a question belongs to, keyed by course + name."""

    course_key: str = Field(..., description="Owning course key")
    name: str = Field(default=DEFAULT_TOPIC_NAME, description="Topic name")

    @property
    def key(self) -> str:
        return f"{self.course_key}{KEY_SEPARATOR}{self.name}"

    def is_default(self) -> bool:
        return self.name == DEFAULT_TOPIC_NAME


class Explanation(ContentModel):
    """Explanation attached to a question, with its author and date."""

    text: str = Field(..., description="Explanation body")
    by: str = Field(..., description="Author of the explanation")
    date: dt.datetime = Field(..., description="When the explanation was written")


class QuestionOption(ContentModel):
    """One answer option of a question."""

    id: UUID = Field(default_factory=uuid4, description="Generated option id")
    question_id: UUID | None = Field(
        default=None, description="Owning question id (weak reference)"
    )
    text: str = Field(default="", description="Option text")
    correct: bool = Field(default=False, description="Whether this is the right answer")
    reference: int = Field(
        default=0,
        ge=0,
        description="Display reference index; not part of the fingerprint",
    )
    preserve_case: bool = Field(
        default=False,
        description="Keep authored capitalization; not part of the fingerprint",
    )

    def bound_question_id(self) -> UUID:
        if self.question_id is None:
            raise UnboundReferenceError("question id not set in question option")
        return self.question_id

    def is_blank(self) -> bool:
        return not self.text.strip()

    def semantic_equals(self, other: QuestionOption) -> bool:
        """Content equality, ignoring ids and display settings."""
        return self.text == other.text and self.correct == other.correct

    def __str__(self) -> str:
        return self.text


class Question(ContentModel):
    """A multiple choice question owned by a course."""

    id: UUID = Field(default_factory=uuid4, description="Generated question id")
    course_key: str | None = Field(default=None, description="Owning course key (weak reference)")
    source: Source = Field(default_factory=Source, description="Where the question comes from")
    text: str = Field(default="", description="Question text")
    explanation: Explanation | None = Field(default=None, description="Optional explanation")
    topic: str | None = Field(default=None, description="Topic name (reference)")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    image: str | None = Field(default=None, description="Image file name")
    options: list[QuestionOption] = Field(default_factory=list, description="Answer options")

    def bound_course_key(self) -> str:
        if self.course_key is None:
            raise UnboundReferenceError("course key not set in question")
        return self.course_key

    def is_blank(self) -> bool:
        """Blank questions are tombstones: no text and no options."""
        return not self.text.strip() and not self.options

    def semantic_equals(self, other: Question) -> bool:
        """
        Content equality used for deduplication.

        Compares text, source and the option sets pairwise, regardless of
        option order or generated ids.
        """
        if self.text != other.text or self.source.local_key != other.source.local_key:
            return False
        if len(self.options) != len(other.options):
            return False
        return all(
            any(mine.semantic_equals(theirs) for theirs in other.options) for mine in self.options
        ) and all(
            any(theirs.semantic_equals(mine) for mine in self.options) for theirs in other.options
        )

    def option_by_id(self, option_id: UUID) -> QuestionOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Course(ContentModel):
    """A course and the questions it owns."""

    key: str = Field(..., description="Human-assigned course key")
    name: str = Field(..., description="Display name")
    short_name: str = Field(..., description="Short display name")
    description: str | None = Field(default=None, description="Course description")
    price: Decimal | None = Field(default=None, description="Price, when sold separately")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    image: str | None = Field(default=None, description="Image file name")
    year: int | None = Field(default=None, description="Curriculum year")
    order: int | None = Field(default=None, description="Display order")
    questions_per_test: int | None = Field(
        default=None, description="Questions drawn per generated test"
    )
    questions: list[Question] = Field(default_factory=list, description="Owned questions")
    topics: list[str] = Field(default_factory=list, description="Topic names (references)")

    def question_by_id(self, question_id: UUID) -> Question | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def question_topics(self) -> list[Topic]:
        """Distinct topics referenced by this course, in name order."""
        names = set(self.topics)
        names.update(question.topic or DEFAULT_TOPIC_NAME for question in self.questions)
        return [Topic(course_key=self.key, name=name) for name in sorted(names)]

    def question_sources(self) -> list[Source]:
        """Distinct sources referenced by this course's questions, in key order."""
        by_key: dict[str, Source] = {}
        for question in self.questions:
            source = question.source.model_copy()
            source.course_key = self.key
            by_key.setdefault(source.key, source)
        return [by_key[key] for key in sorted(by_key)]


class Bundle(ContentModel):
    """A discounted group of courses sold together."""

    key: str = Field(..., description="Bundle key")
    name: str = Field(..., description="Display name")
    course_keys: list[str] = Field(default_factory=list, description="Courses in the bundle")
    discount: Decimal = Field(..., description="Discount applied to the bundle")
    image: str | None = Field(default=None, description="Image file name")


class Icon(ContentModel):
    """A purchasable or initial profile icon."""

    key: str = Field(..., description="Icon key")
    is_initial: bool = Field(default=False, description="Granted to every new user")
    description: str | None = Field(default=None, description="Icon description")
    price: Decimal | None = Field(default=None, description="Price, when purchasable")
    image: str = Field(..., description="Image file name")
