"""
Canonicalization pipeline.

Turns authored entities into their canonical form, depth first:

    remove blanks -> format -> sort -> dedup -> validate -> bind -> fingerprint

Entities are modified in place and returned. The pipeline is idempotent:
running it again over its own output changes nothing, fingerprints included.

Usage:
    canonicalizer = Canonicalizer(formatting, HashEngine("sha256"))
    course = canonicalizer.course(course)

    # Or with the module-level helpers and default settings
    course = canonicalize_course(course)
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable, Sequence
from typing import TypeVar
from uuid import UUID

from canonsync.core.config.models import FormattingConfig
from canonsync.core.content.assets import AssetRenameCoordinator, RenameRecord
from canonsync.core.content.formatting import (
    format_name,
    format_option_text,
    format_optional,
    format_tags,
    format_text,
)
from canonsync.core.content.hashing import HashEngine
from canonsync.core.content.models import (
    Bundle,
    Course,
    Explanation,
    Icon,
    Question,
    QuestionOption,
    Source,
    Topic,
)
from canonsync.core.content.validation import (
    validate_bundle,
    validate_course,
    validate_explanation,
    validate_icon,
    validate_option,
    validate_question,
    validate_source,
    validate_topic,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def option_sort_key(option: QuestionOption) -> tuple[bool, str, str]:
    """Correct option first, then by text, then by id."""
    return (not option.correct, option.text, str(option.id))


def question_sort_key(question: Question) -> tuple[int, bool, dt.date, str, str, str]:
    """Source type, source date (undated first), text, then id."""
    source = question.source
    return (
        source.type.rank,
        source.date is not None,
        source.date or dt.date.min,
        question.text,
        source.local_key,
        str(question.id),
    )


def dedup_adjacent(items: Sequence[T], same: Callable[[T, T], bool]) -> list[T]:
    """Collapse runs of equal neighbours, keeping the first of each run."""
    kept: list[T] = []
    for item in items:
        if kept and same(kept[-1], item):
            continue
        kept.append(item)
    return kept


def dedup_grouped(
    items: Sequence[T], same: Callable[[T, T], bool], group: Callable[[T], object]
) -> list[T]:
    """
    Collapse equal items within each run of neighbours sharing a group key.

    A duplicate is dropped even when a different item of its group sorts
    between it and the one that is kept.

    Example:
        >>> dedup_grouped(["a1", "a2", "a1", "b1"], str.__eq__, lambda s: s[0])
        ['a1', 'a2', 'b1']
    """
    kept: list[T] = []
    run: list[T] = []
    run_key: object = None
    for item in items:
        key = group(item)
        if not run or key != run_key:
            run, run_key = [], key
        if any(same(other, item) for other in run):
            continue
        run.append(item)
        kept.append(item)
    return kept


def _question_group(question: Question) -> tuple[str, str]:
    return (question.text, question.source.local_key)


class Canonicalizer:
    """
    Runs the canonical pipeline for every entity type.

    Example:
        >>> canonicalizer = Canonicalizer()
        >>> course = canonicalizer.course(course)
        >>> course.fingerprint != ""
        True
    """

    def __init__(
        self,
        formatting: FormattingConfig | None = None,
        engine: HashEngine | None = None,
    ) -> None:
        self.formatting = formatting or FormattingConfig()
        self.engine = engine or HashEngine()

    @property
    def units(self) -> tuple[str, ...]:
        return tuple(self.formatting.units_to_separate)

    # Leaf entities

    def option(self, option: QuestionOption, question_id: UUID | None = None) -> QuestionOption:
        """Format and validate an option; fingerprint it once its question is known."""
        option.text = format_option_text(
            option.text,
            preserve_case=option.preserve_case,
            capitalize=self.formatting.capitalize_options,
            units=self.units,
        )
        validate_option(option)
        if question_id is not None:
            option.question_id = question_id
        if option.question_id is not None:
            self.engine.assign(option)
        return option

    def explanation(self, explanation: Explanation, owner: str = "") -> Explanation:
        explanation.text = format_text(explanation.text, self.units)
        explanation.by = format_text(explanation.by, self.units)
        validate_explanation(explanation, owner)
        self.engine.assign(explanation)
        return explanation

    def source(self, source: Source, owner: str = "") -> Source:
        self._format_source(source)
        validate_source(source, owner)
        if source.course_key is not None:
            self.engine.assign(source)
        return source

    def topic(self, topic: Topic) -> Topic:
        topic.course_key = topic.course_key.strip()
        topic.name = format_name(topic.name, self.units)
        validate_topic(topic)
        self.engine.assign(topic)
        return topic

    def bundle(self, bundle: Bundle) -> Bundle:
        bundle.key = bundle.key.strip()
        bundle.name = format_text(bundle.name, self.units)
        bundle.course_keys = sorted({key.strip() for key in bundle.course_keys if key.strip()})
        bundle.image = format_optional(bundle.image)
        validate_bundle(bundle)
        self.engine.assign(bundle)
        return bundle

    def icon(self, icon: Icon) -> Icon:
        icon.key = icon.key.strip()
        icon.description = format_optional(format_text(icon.description or "", self.units))
        icon.image = icon.image.strip()
        validate_icon(icon)
        self.engine.assign(icon)
        return icon

    # Composite entities

    def question(self, question: Question, course_key: str | None = None) -> Question:
        """
        Canonicalize a single question.

        The fingerprint covers the owning course key, so a question that was
        never bound to a course is formatted and validated but left
        without a fingerprint.
        """
        self._prepare_question(question)
        validate_question(question)
        self._bind_question(question, course_key or question.course_key)
        if question.course_key is not None:
            self.engine.assign(question)
        return question

    def course(self, course: Course) -> Course:
        """Canonicalize a course and every question it owns."""
        authored = len(course.questions)
        for question in course.questions:
            self._prepare_question(question)

        questions = [question for question in course.questions if not question.is_blank()]
        if len(questions) != authored:
            logger.debug(
                "Dropped %d blank questions from course %s", authored - len(questions), course.key
            )

        ordered = sorted(questions, key=question_sort_key)
        deduped = dedup_grouped(ordered, Question.semantic_equals, _question_group)
        if len(deduped) != len(ordered):
            logger.debug(
                "Collapsed %d duplicate questions in course %s",
                len(ordered) - len(deduped),
                course.key,
            )

        for question in deduped:
            validate_question(question)

        course.key = course.key.strip()
        course.name = format_text(course.name, self.units)
        course.short_name = format_text(course.short_name, self.units)
        course.description = format_optional(format_text(course.description or "", self.units))
        course.tags = format_tags(course.tags)
        course.image = format_optional(course.image)
        course.questions = deduped

        topic_names = {format_name(name, self.units) for name in course.topics}
        topic_names.update(question.topic for question in deduped if question.topic)
        course.topics = sorted(name for name in topic_names if name)

        validate_course(course)

        for question in course.questions:
            self._bind_question(question, course.key)

        self.engine.assign(course)
        return course

    def replace_question(self, course: Course, question: Question) -> Course:
        """
        Replace the question with the same id and reprocess the whole course.

        The course is only updated once the reprocessed copy is valid; on
        error it is left exactly as it was.

        Raises:
            KeyError: If the course has no question with that id
            ValidationError: If the course is invalid with the replacement
        """
        for index, existing in enumerate(course.questions):
            if existing.id == question.id:
                candidate = course.model_copy(deep=True)
                candidate.questions[index] = question.model_copy(deep=True)
                self.course(candidate)
                for name in type(course).model_fields:
                    if name != "fingerprint":
                        setattr(course, name, getattr(candidate, name))
                course.fingerprint = candidate.fingerprint
                return course
        raise KeyError(f"question {question.id} not found in course {course.key}")

    # Pipeline steps

    def _format_source(self, source: Source) -> None:
        if source.course_key is not None:
            source.course_key = source.course_key.strip()
        source.name = format_optional(source.name)
        source.variant = format_optional(source.variant)

    def _prepare_question(self, question: Question) -> None:
        """Remove blanks, format, sort and dedup. No validation, no binding."""
        question.options = [option for option in question.options if not option.is_blank()]

        question.text = format_text(question.text, self.units)
        question.tags = format_tags(question.tags)
        question.image = format_optional(question.image)
        question.topic = format_name(question.topic, self.units) or None if question.topic else None
        self._format_source(question.source)

        if question.explanation is not None:
            explanation = question.explanation
            explanation.text = format_text(explanation.text, self.units)
            explanation.by = format_text(explanation.by, self.units)
            if not explanation.text and not explanation.by:
                question.explanation = None

        for option in question.options:
            option.text = format_option_text(
                option.text,
                preserve_case=option.preserve_case,
                capitalize=self.formatting.capitalize_options,
                units=self.units,
            )

        ordered = sorted(question.options, key=option_sort_key)
        question.options = dedup_adjacent(ordered, QuestionOption.semantic_equals)

    def _bind_question(self, question: Question, course_key: str | None) -> None:
        for option in question.options:
            option.question_id = question.id
        if course_key is not None:
            question.course_key = course_key
            question.source.course_key = course_key


def prepare_course(
    course: Course,
    coordinator: AssetRenameCoordinator,
    engine: HashEngine,
) -> list[RenameRecord]:
    """
    Align the images of a canonical course and refresh its fingerprints.

    Renaming changes image references, so every fingerprint in the course is
    recomputed afterwards.
    """
    records = coordinator.align_course(course)
    if records:
        engine.assign(course)
    return records


def canonicalize_course(
    course: Course,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> Course:
    return Canonicalizer(formatting, engine).course(course)


def canonicalize_question(
    question: Question,
    course_key: str | None = None,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> Question:
    return Canonicalizer(formatting, engine).question(question, course_key)


def canonicalize_option(
    option: QuestionOption,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> QuestionOption:
    return Canonicalizer(formatting, engine).option(option)


def canonicalize_explanation(
    explanation: Explanation,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> Explanation:
    return Canonicalizer(formatting, engine).explanation(explanation)


def canonicalize_bundle(
    bundle: Bundle,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> Bundle:
    return Canonicalizer(formatting, engine).bundle(bundle)


def canonicalize_icon(
    icon: Icon,
    formatting: FormattingConfig | None = None,
    engine: HashEngine | None = None,
) -> Icon:
    return Canonicalizer(formatting, engine).icon(icon)
