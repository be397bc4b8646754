"""
Course content: models, formatting, validation, canonicalization, fingerprints
and image asset naming.

Example:
    >>> from canonsync.core.content import Canonicalizer, HashEngine
    >>> course = Canonicalizer(engine=HashEngine("sha256")).course(course)
    >>> course.fingerprint
    '3f0c...'
"""

from canonsync.core.content.assets import (
    AssetRenameCoordinator,
    AssetStore,
    LocalAssetStore,
    RenameRecord,
)
from canonsync.core.content.canonicalize import (
    Canonicalizer,
    canonicalize_bundle,
    canonicalize_course,
    canonicalize_explanation,
    canonicalize_icon,
    canonicalize_option,
    canonicalize_question,
    prepare_course,
)
from canonsync.core.content.errors import (
    AssetRenameError,
    ContentError,
    DuplicateKeyError,
    IncompleteLoadError,
    MalformedInputError,
    UnboundReferenceError,
    ValidationError,
    ValidationIssue,
)
from canonsync.core.content.hashing import HashEngine, canonical_bytes
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

__all__ = [
    # Models
    "Bundle",
    "Course",
    "Explanation",
    "Icon",
    "Question",
    "QuestionOption",
    "Source",
    "SourceType",
    "Topic",
    # Pipeline
    "Canonicalizer",
    "HashEngine",
    "canonical_bytes",
    "canonicalize_bundle",
    "canonicalize_course",
    "canonicalize_explanation",
    "canonicalize_icon",
    "canonicalize_option",
    "canonicalize_question",
    "prepare_course",
    # Assets
    "AssetRenameCoordinator",
    "AssetStore",
    "LocalAssetStore",
    "RenameRecord",
    # Errors
    "AssetRenameError",
    "ContentError",
    "DuplicateKeyError",
    "IncompleteLoadError",
    "MalformedInputError",
    "UnboundReferenceError",
    "ValidationError",
    "ValidationIssue",
]
