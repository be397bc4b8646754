"""
Exceptions raised by the content pipeline.

Error kinds:
- ValidationError: a structural invariant failed after formatting
- DuplicateKeyError: two entities of one collection share a key
- AssetRenameError: the asset store failed to rename an image
- MalformedInputError: raw input does not match the expected shape
- IncompleteLoadError: a sync was planned from a load with failed files

None of these are retried here. Retry and batching policy belong to the caller
(see ContentLoader and BatchPolicy).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found while parsing raw input."""

    code: str
    path: str
    message: str


class ContentError(Exception):
    """Base exception for content pipeline errors."""

    pass


class ValidationError(ContentError):
    """Raised when an entity violates a structural invariant."""

    def __init__(self, kind: str, key: str, reason: str) -> None:
        super().__init__(f"invalid {kind} {key!r}: {reason}")
        self.kind = kind
        self.key = key
        self.reason = reason


class DuplicateKeyError(ContentError):
    """Raised when a collection contains the same key twice after canonicalization."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"duplicate key {key!r} in {collection}")
        self.collection = collection
        self.key = key


class AssetRenameError(ContentError):
    """Raised when the asset store cannot rename an entity's image."""

    def __init__(self, kind: str, key: str, old_reference: str, new_reference: str) -> None:
        super().__init__(
            f"failed to rename {kind} {key!r} image from {old_reference!r} to {new_reference!r}"
        )
        self.kind = kind
        self.key = key
        self.old_reference = old_reference
        self.new_reference = new_reference


class MalformedInputError(ContentError):
    """Raised when raw input cannot be parsed into the expected shape."""

    def __init__(self, source: str, issues: list[ValidationIssue]) -> None:
        details = "; ".join(f"{issue.path or '<root>'}: {issue.message}" for issue in issues)
        super().__init__(f"malformed input in {source}: {details}")
        self.source = source
        self.issues = issues


class IncompleteLoadError(ContentError):
    """Raised when a sync is planned while some content files failed to load."""

    def __init__(self, failed: list[str]) -> None:
        super().__init__(
            f"cannot plan a sync: {len(failed)} content files failed to load ({', '.join(failed)})"
        )
        self.failed = failed


class UnboundReferenceError(RuntimeError):
    """Raised when a weak back-reference is read before it was bound."""

    pass
