"""
Content fingerprints for canonical entities.

Each entity type has a hand-written canonical byte encoding with a fixed field
order. The field order lives here, not in the model declarations, so
reordering model fields never changes a fingerprint.

Encoding rules:
- text fields contribute a 4-byte big-endian length, then their UTF-8 bytes
- optional fields contribute a presence byte, then "<label> <value>" when
  present, so absent and empty never encode the same way
- sequences (tags, topics, course keys) contribute an item count, then each
  item as a text field
- owned child collections contribute their children's fingerprints as a
  sequence, in the canonical (already sorted) order
- embedded composites (source, explanation) contribute their own canonical
  bytes as one length-prefixed field

Since every field is self-delimiting and the field order is fixed, two
entities of one type share an encoding only if every field is equal.

Field order per type:
    QuestionOption: id, question_id, text, correct
    Explanation:    text, by, date
    Source:         key
    Topic:          key
    Question:       id, course_key, text, explanation?, topic?, tags, image?,
                    option fingerprints, source
    Course:         key, name, short_name, description?, price?, tags, image?,
                    year?, order?, questions_per_test?, question fingerprints,
                    topics
    Bundle:         name, course_keys, discount, image?
    Icon:           key, is_initial, description?, price?, image

Usage:
    engine = HashEngine()
    engine.assign(course)          # stores fingerprints bottom-up
    engine.fingerprint(course)     # recomputes without touching the entity
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterable
from decimal import Decimal
from functools import singledispatch

from canonsync.core.content.models import (
    Bundle,
    ContentModel,
    Course,
    Explanation,
    Icon,
    Question,
    QuestionOption,
    Source,
    Topic,
)

logger = logging.getLogger(__name__)

LENGTH_BYTES = 4

SUPPORTED_ALGORITHMS = ("sha256", "sha3_256", "blake2b")

FingerprintOf = Callable[[ContentModel], str]


class _Encoder:
    """
    Accumulates the canonical bytes of one entity.

    Every field is self-delimiting: a length prefix for byte strings, a
    count prefix for sequences and a presence byte for optional values.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _length(self, size: int) -> None:
        self._buffer += size.to_bytes(LENGTH_BYTES, "big")

    def raw(self, value: bytes) -> _Encoder:
        self._length(len(value))
        self._buffer += value
        return self

    def text(self, value: str) -> _Encoder:
        return self.raw(value.encode("utf-8"))

    def flag(self, value: bool) -> _Encoder:
        self._buffer.append(1 if value else 0)
        return self

    def optional(self, label: str, value: object | None) -> _Encoder:
        if value is None:
            return self.flag(False)
        if isinstance(value, Decimal):
            value = _decimal_text(value)
        return self.flag(True).text(f"{label} {value}")

    def optional_bytes(self, label: str, value: bytes | None) -> _Encoder:
        if value is None:
            return self.flag(False)
        return self.flag(True).text(label).raw(value)

    def sequence(self, values: Iterable[str]) -> _Encoder:
        items = list(values)
        self._length(len(items))
        for item in items:
            self.text(item)
        return self

    def fingerprints(
        self, children: Iterable[ContentModel], fingerprint_of: FingerprintOf
    ) -> _Encoder:
        return self.sequence(fingerprint_of(child) for child in children)

    def decimal(self, value: Decimal) -> _Encoder:
        return self.text(_decimal_text(value))

    def build(self) -> bytes:
        return bytes(self._buffer)


def _decimal_text(value: Decimal) -> str:
    # 10, 10.0 and 1E+1 must encode identically.
    return format(value.normalize(), "f")


@singledispatch
def canonical_bytes(entity: ContentModel, fingerprint_of: FingerprintOf) -> bytes:
    """
    Return the canonical byte encoding of an entity.

    Args:
        entity: Entity to encode
        fingerprint_of: Callable returning a child's fingerprint

    Raises:
        TypeError: If the entity type has no registered encoding
    """
    raise TypeError(f"no canonical encoding for {type(entity).__name__}")


@canonical_bytes.register
def _(entity: QuestionOption, fingerprint_of: FingerprintOf) -> bytes:
    return (
        _Encoder()
        .raw(entity.id.bytes)
        .raw(entity.bound_question_id().bytes)
        .text(entity.text)
        .flag(entity.correct)
        .build()
    )


@canonical_bytes.register
def _(entity: Explanation, fingerprint_of: FingerprintOf) -> bytes:
    return _Encoder().text(entity.text).text(entity.by).text(entity.date.isoformat()).build()


@canonical_bytes.register
def _(entity: Source, fingerprint_of: FingerprintOf) -> bytes:
    return _Encoder().text(entity.key).build()


@canonical_bytes.register
def _(entity: Topic, fingerprint_of: FingerprintOf) -> bytes:
    return _Encoder().text(entity.key).build()


@canonical_bytes.register
def _(entity: Question, fingerprint_of: FingerprintOf) -> bytes:
    explanation = None
    if entity.explanation is not None:
        explanation = canonical_bytes(entity.explanation, fingerprint_of)

    return (
        _Encoder()
        .raw(entity.id.bytes)
        .text(entity.bound_course_key())
        .text(entity.text)
        .optional_bytes("explanation", explanation)
        .optional("topic", entity.topic)
        .sequence(entity.tags)
        .optional("image", entity.image)
        .fingerprints(entity.options, fingerprint_of)
        .raw(canonical_bytes(entity.source, fingerprint_of))
        .build()
    )


@canonical_bytes.register
def _(entity: Course, fingerprint_of: FingerprintOf) -> bytes:
    return (
        _Encoder()
        .text(entity.key)
        .text(entity.name)
        .text(entity.short_name)
        .optional("description", entity.description)
        .optional("price", entity.price)
        .sequence(entity.tags)
        .optional("image", entity.image)
        .optional("year", entity.year)
        .optional("order", entity.order)
        .optional("questions_per_test", entity.questions_per_test)
        .fingerprints(entity.questions, fingerprint_of)
        .sequence(entity.topics)
        .build()
    )


@canonical_bytes.register
def _(entity: Bundle, fingerprint_of: FingerprintOf) -> bytes:
    return (
        _Encoder()
        .text(entity.name)
        .sequence(entity.course_keys)
        .decimal(entity.discount)
        .optional("image", entity.image)
        .build()
    )


@canonical_bytes.register
def _(entity: Icon, fingerprint_of: FingerprintOf) -> bytes:
    return (
        _Encoder()
        .text(entity.key)
        .flag(entity.is_initial)
        .optional("description", entity.description)
        .optional("price", entity.price)
        .text(entity.image)
        .build()
    )


def hash_children(entity: ContentModel) -> list[ContentModel]:
    """Return the sub-entities whose fingerprints must be final before the entity's."""
    if isinstance(entity, Course):
        return list(entity.questions)
    if isinstance(entity, Question):
        children: list[ContentModel] = list(entity.options)
        if entity.explanation is not None:
            children.append(entity.explanation)
        return children
    return []


class HashEngine:
    """
    Computes and assigns content fingerprints.

    fingerprint() is a pure function of the entity's current state: it
    recomputes every child instead of trusting cached values. assign() walks
    the tree depth first and stores each fingerprint, children before parents.

    Example:
        >>> engine = HashEngine()
        >>> engine.assign(course)
        >>> course.fingerprint == engine.fingerprint(course)
        True
    """

    def __init__(self, algorithm: str = "sha256") -> None:
        """
        Initialize the engine.

        Args:
            algorithm: One of SUPPORTED_ALGORITHMS; every choice yields a
                256-bit digest (64 hex characters)

        Raises:
            ValueError: If the algorithm is not supported
        """
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(
                f"unsupported digest algorithm {algorithm!r}, "
                f"expected one of {', '.join(SUPPORTED_ALGORITHMS)}"
            )
        self.algorithm = algorithm

    def digest(self, data: bytes) -> str:
        """Hex digest of raw bytes."""
        if self.algorithm == "blake2b":
            return hashlib.blake2b(data, digest_size=32).hexdigest()
        return hashlib.new(self.algorithm, data).hexdigest()

    def fingerprint(self, entity: ContentModel) -> str:
        """Compute an entity's fingerprint without mutating it."""
        return self.digest(canonical_bytes(entity, self.fingerprint))

    def assign(self, entity: ContentModel) -> str:
        """Assign fingerprints to the entity and its subtree, children first."""
        for child in hash_children(entity):
            self.assign(child)

        fingerprint = self.digest(canonical_bytes(entity, _stored_fingerprint))
        entity.fingerprint = fingerprint
        logger.debug("Fingerprinted %s: %s", entity.kind, fingerprint[:12])
        return fingerprint


def _stored_fingerprint(child: ContentModel) -> str:
    if not child.fingerprint:
        raise RuntimeError(f"{child.kind} fingerprint read before it was assigned")
    return child.fingerprint
