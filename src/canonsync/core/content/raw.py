"""
Authored (raw) content shapes.

Raw models mirror the JSON files authors edit. Unknown fields are rejected so
typos surface as MalformedInputError instead of silently dropped data. Keys are
not part of the raw shape: the loader takes them from the file name.

Usage:
    course = parse_course("math101", json.loads(path.read_text()), source=str(path))
    data = course_to_raw(course)   # back to the authored shape, ids included
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from canonsync.core.content.errors import MalformedInputError, ValidationIssue
from canonsync.core.content.models import (
    Bundle,
    Course,
    Explanation,
    Icon,
    Question,
    QuestionOption,
    Source,
    SourceType,
)


class RawModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RawOption(RawModel):
    id: UUID | None = None
    text: str
    correct: bool | None = None
    reference: int | None = Field(default=None, ge=0)
    preserve_case: bool | None = None


class RawExplanation(RawModel):
    text: str
    by: str
    date: dt.datetime


class RawSource(RawModel):
    type: SourceType = SourceType.OTHER
    name: str | None = None
    date: dt.date | None = None
    variant: str | None = None


class RawQuestion(RawModel):
    id: UUID | None = None
    text: str = ""
    source: RawSource = Field(default_factory=RawSource)
    explanation: RawExplanation | None = None
    topic: str | None = None
    tags: list[str] = Field(default_factory=list)
    image: str | None = None
    options: list[RawOption] = Field(default_factory=list)


class RawCourse(RawModel):
    name: str
    short_name: str
    description: str | None = None
    price: Decimal | None = None
    tags: list[str] = Field(default_factory=list)
    image: str | None = None
    year: int | None = None
    order: int | None = None
    questions_per_test: int | None = None
    topics: list[str] = Field(default_factory=list)
    questions: list[RawQuestion] = Field(default_factory=list)


class RawBundle(RawModel):
    name: str
    course_keys: list[str] = Field(default_factory=list)
    discount: Decimal
    image: str | None = None


class RawIcon(RawModel):
    is_initial: bool = False
    description: str | None = None
    price: Decimal | None = None
    image: str


def _issues(error: PydanticValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            code=detail["type"],
            path=".".join(str(part) for part in detail["loc"]),
            message=detail["msg"],
        )
        for detail in error.errors()
    ]


def _validate(model: type[RawModel], data: Any, source: str) -> Any:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedInputError(source, _issues(e)) from e


def _option(raw: RawOption, position: int) -> QuestionOption:
    option = QuestionOption(
        text=raw.text,
        correct=bool(raw.correct),
        reference=raw.reference if raw.reference is not None else position,
        preserve_case=bool(raw.preserve_case),
    )
    if raw.id is not None:
        option.id = raw.id
    return option


def _question(raw: RawQuestion) -> Question:
    explanation = None
    if raw.explanation is not None:
        explanation = Explanation(**raw.explanation.model_dump())
    question = Question(
        source=Source(**raw.source.model_dump()),
        text=raw.text,
        explanation=explanation,
        topic=raw.topic,
        tags=list(raw.tags),
        image=raw.image,
        options=[_option(option, index) for index, option in enumerate(raw.options, start=1)],
    )
    if raw.id is not None:
        question.id = raw.id
    return question


def parse_course(key: str, data: Any, source: str | None = None) -> Course:
    """
    Build a Course from authored data.

    Question and option ids are generated when absent. An option without a
    reference gets its 1-based authored position.

    Raises:
        MalformedInputError: If the data does not match the course shape
    """
    raw: RawCourse = _validate(RawCourse, data, source or key)
    return Course(
        key=key,
        name=raw.name,
        short_name=raw.short_name,
        description=raw.description,
        price=raw.price,
        tags=list(raw.tags),
        image=raw.image,
        year=raw.year,
        order=raw.order,
        questions_per_test=raw.questions_per_test,
        topics=list(raw.topics),
        questions=[_question(question) for question in raw.questions],
    )


def parse_bundle(key: str, data: Any, source: str | None = None) -> Bundle:
    raw: RawBundle = _validate(RawBundle, data, source or key)
    return Bundle(key=key, **raw.model_dump())


def parse_icon(key: str, data: Any, source: str | None = None) -> Icon:
    raw: RawIcon = _validate(RawIcon, data, source or key)
    return Icon(key=key, **raw.model_dump())


def _dump(raw: RawModel) -> dict[str, Any]:
    return raw.model_dump(mode="json", exclude_none=True)


def _option_to_raw(option: QuestionOption) -> RawOption:
    return RawOption(
        id=option.id,
        text=option.text,
        correct=True if option.correct else None,
        reference=option.reference,
        preserve_case=True if option.preserve_case else None,
    )


def _question_to_raw(question: Question) -> RawQuestion:
    explanation = None
    if question.explanation is not None:
        explanation = RawExplanation(
            text=question.explanation.text,
            by=question.explanation.by,
            date=question.explanation.date,
        )
    return RawQuestion(
        id=question.id,
        text=question.text,
        source=RawSource(
            type=question.source.type,
            name=question.source.name,
            date=question.source.date,
            variant=question.source.variant,
        ),
        explanation=explanation,
        topic=question.topic,
        tags=list(question.tags),
        image=question.image,
        options=[_option_to_raw(option) for option in question.options],
    )


def course_to_raw(course: Course) -> dict[str, Any]:
    """Serialize a course to its authored JSON shape."""
    return _dump(
        RawCourse(
            name=course.name,
            short_name=course.short_name,
            description=course.description,
            price=course.price,
            tags=list(course.tags),
            image=course.image,
            year=course.year,
            order=course.order,
            questions_per_test=course.questions_per_test,
            topics=list(course.topics),
            questions=[_question_to_raw(question) for question in course.questions],
        )
    )


def bundle_to_raw(bundle: Bundle) -> dict[str, Any]:
    return _dump(
        RawBundle(
            name=bundle.name,
            course_keys=list(bundle.course_keys),
            discount=bundle.discount,
            image=bundle.image,
        )
    )


def icon_to_raw(icon: Icon) -> dict[str, Any]:
    return _dump(
        RawIcon(
            is_initial=icon.is_initial,
            description=icon.description,
            price=icon.price,
            image=icon.image,
        )
    )
