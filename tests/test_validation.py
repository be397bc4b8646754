"""
Tests for structural invariant checks.
"""

import datetime as dt
from decimal import Decimal

import pytest

from canonsync.core.content.errors import ValidationError
from canonsync.core.content.models import (
    Bundle,
    Course,
    Explanation,
    Icon,
    Question,
    QuestionOption,
    Source,
    SourceType,
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


def make_question(option_texts, correct_index=0, **kwargs):
    options = [
        QuestionOption(text=text, correct=index == correct_index)
        for index, text in enumerate(option_texts)
    ]
    return Question(text=kwargs.pop("text", "Question?"), options=options, **kwargs)


class TestValidateQuestion:
    """Test the option count, uniqueness and correctness rules."""

    def test_valid_question(self):
        validate_question(make_question(["A.", "B.", "C."]))

    def test_blank_question_passes(self):
        validate_question(Question(text="", options=[]))

    @pytest.mark.parametrize("count", [2, 5])
    def test_option_count_boundaries_accepted(self, count):
        validate_question(make_question([f"Option {i}." for i in range(count)]))

    @pytest.mark.parametrize("count", [1, 6])
    def test_option_count_out_of_range_rejected(self, count):
        with pytest.raises(ValidationError) as exc_info:
            validate_question(make_question([f"Option {i}." for i in range(count)]))
        assert exc_info.value.kind == "question"

    def test_no_correct_option(self):
        with pytest.raises(ValidationError, match="correct"):
            validate_question(make_question(["A.", "B."], correct_index=-1))

    def test_two_correct_options(self):
        question = make_question(["A.", "B.", "C."])
        question.options[1].correct = True
        with pytest.raises(ValidationError, match="correct"):
            validate_question(question)

    def test_duplicate_option_texts(self):
        with pytest.raises(ValidationError):
            validate_question(make_question(["A.", "A.", "B."], correct_index=2))

    def test_text_without_options_rejected(self):
        with pytest.raises(ValidationError):
            validate_question(Question(text="Orphan?", options=[]))

    def test_error_carries_question_id(self):
        question = make_question(["A."])
        with pytest.raises(ValidationError) as exc_info:
            validate_question(question)
        assert exc_info.value.key == str(question.id)

    def test_exam_source_without_date(self):
        question = make_question(["A.", "B."], source=Source(type=SourceType.EXAM))
        with pytest.raises(ValidationError, match="date"):
            validate_question(question)


class TestValidateParts:
    """Test options, explanations and sources."""

    def test_empty_option_text(self):
        with pytest.raises(ValidationError):
            validate_option(QuestionOption(text=""))

    def test_explanation_requires_author(self):
        explanation = Explanation(text="Because.", by="", date=dt.datetime(2024, 1, 1))
        with pytest.raises(ValidationError, match="author"):
            validate_explanation(explanation, "q1")

    def test_partial_requires_name_and_date(self):
        with pytest.raises(ValidationError, match="name"):
            validate_source(Source(type=SourceType.PARTIAL, date=dt.date(2024, 5, 2)), "q1")
        with pytest.raises(ValidationError, match="date"):
            validate_source(Source(type=SourceType.PARTIAL, name="First"), "q1")

    def test_other_source_needs_nothing(self):
        validate_source(Source(type=SourceType.OTHER), "q1")


class TestValidateCourse:
    """Test course-level rules."""

    def test_valid_course(self):
        validate_course(Course(key="math101", name="Math", short_name="M"))

    def test_negative_price(self):
        course = Course(key="math101", name="Math", short_name="M", price=Decimal("-1"))
        with pytest.raises(ValidationError, match="price"):
            validate_course(course)

    def test_zero_price_allowed(self):
        validate_course(Course(key="math101", name="Math", short_name="M", price=Decimal("0")))

    def test_questions_per_test_must_be_positive(self):
        course = Course(key="math101", name="Math", short_name="M", questions_per_test=0)
        with pytest.raises(ValidationError):
            validate_course(course)

    def test_empty_short_name(self):
        with pytest.raises(ValidationError, match="short name"):
            validate_course(Course(key="math101", name="Math", short_name=""))

    def test_duplicate_question_ids(self):
        question = make_question(["A.", "B."])
        course = Course(key="math101", name="Math", short_name="M", questions=[question, question])
        with pytest.raises(ValidationError, match="twice"):
            validate_course(course)


class TestValidateTopLevel:
    """Test bundles, icons and topics."""

    def test_bundle_discount_must_be_positive(self):
        with pytest.raises(ValidationError, match="discount"):
            validate_bundle(Bundle(key="b", name="Bundle", discount=Decimal("0")))

    def test_bundle_valid(self):
        validate_bundle(Bundle(key="b", name="Bundle", discount=Decimal("0.1")))

    def test_icon_price_must_be_positive(self):
        with pytest.raises(ValidationError, match="price"):
            validate_icon(Icon(key="star", image="star.png", price=Decimal("0")))

    def test_icon_without_price(self):
        validate_icon(Icon(key="star", image="star.png"))

    def test_topic_requires_course_key(self):
        with pytest.raises(ValidationError):
            validate_topic(Topic(course_key="", name="Algebra"))
