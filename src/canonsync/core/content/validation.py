"""
Structural invariant checks per entity type.

Checks run after formatting and never modify the entity. Each raises
ValidationError carrying the entity kind, its key or id, and the reason.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal

from canonsync.core.content.errors import ValidationError
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

MIN_OPTIONS = 2
MAX_OPTIONS = 5


def validate_option(option: QuestionOption) -> None:
    if not option.text:
        raise ValidationError("question option", str(option.id), "text is empty")


def validate_explanation(explanation: Explanation, owner: str) -> None:
    if not explanation.text:
        raise ValidationError("explanation", owner, "text is empty")
    if not explanation.by:
        raise ValidationError("explanation", owner, "author is empty")


def validate_source(source: Source, owner: str) -> None:
    """Exams and partials need a date; partials also need a name."""
    if source.type.requires_date and source.date is None:
        raise ValidationError("source", owner, f"{source.type.value} source requires a date")
    if source.type.requires_name and not source.name:
        raise ValidationError("source", owner, f"{source.type.value} source requires a name")


def validate_question(question: Question) -> None:
    """
    Validate a question and its options.

    A blank question (no text, no options) is a tombstone and passes. Any
    other question needs 2-5 options with distinct texts, exactly one of
    them correct.
    """
    question_id = str(question.id)

    if question.is_blank():
        return

    if not question.text:
        raise ValidationError("question", question_id, "text is empty")

    count = len(question.options)
    if count < MIN_OPTIONS or count > MAX_OPTIONS:
        raise ValidationError(
            "question",
            question_id,
            f"has {count} option(s), expected {MIN_OPTIONS}-{MAX_OPTIONS}",
        )

    for option in question.options:
        validate_option(option)

    texts = Counter(option.text for option in question.options)
    duplicates = [text for text, seen in texts.items() if seen > 1]
    if duplicates:
        raise ValidationError("question", question_id, f'duplicate option text "{duplicates[0]}"')

    correct_count = sum(1 for option in question.options if option.correct)
    if correct_count != 1:
        raise ValidationError("question", question_id, f"has {correct_count} correct options")

    validate_source(question.source, question_id)
    if question.explanation is not None:
        validate_explanation(question.explanation, question_id)


def validate_course(course: Course) -> None:
    """Validate course fields. Questions are validated on their own beforehand."""
    if not course.key:
        raise ValidationError("course", course.key, "key is empty")
    if not course.name:
        raise ValidationError("course", course.key, "name is empty")
    if not course.short_name:
        raise ValidationError("course", course.key, "short name is empty")
    if course.price is not None and course.price < Decimal(0):
        raise ValidationError("course", course.key, "price is negative")
    if course.questions_per_test is not None and course.questions_per_test < 1:
        raise ValidationError("course", course.key, "questions per test must be positive")

    ids = Counter(question.id for question in course.questions)
    repeated = [str(question_id) for question_id, seen in ids.items() if seen > 1]
    if repeated:
        raise ValidationError("course", course.key, f"question id {repeated[0]} appears twice")


def validate_topic(topic: Topic) -> None:
    if not topic.course_key:
        raise ValidationError("topic", topic.key, "course key is empty")
    if not topic.name:
        raise ValidationError("topic", topic.key, "name is empty")


def validate_bundle(bundle: Bundle) -> None:
    if not bundle.key:
        raise ValidationError("bundle", bundle.key, "key is empty")
    if not bundle.name:
        raise ValidationError("bundle", bundle.key, "name is empty")
    if bundle.discount <= Decimal(0):
        raise ValidationError("bundle", bundle.key, "discount must be positive")


def validate_icon(icon: Icon) -> None:
    if not icon.key:
        raise ValidationError("icon", icon.key, "key is empty")
    if not icon.image:
        raise ValidationError("icon", icon.key, "image is required")
    if icon.price is not None and icon.price <= Decimal(0):
        raise ValidationError("icon", icon.key, "price must be positive")
