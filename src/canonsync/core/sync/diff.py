"""
Incremental sync planning.

Each collection is diffed on its own against the recorded metadata:

    for_sync      entities whose key is new or whose fingerprint changed
    for_deletion  recorded keys that no longer exist locally

diff_collection trusts the fingerprints already stored on the entities.
build_sync_plan and snapshot_metadata reassign them first, so in-place edits
made after canonicalization are never hidden behind a stale value. Nothing
here formats or talks to the remote store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone

from canonsync.core.content.errors import DuplicateKeyError
from canonsync.core.content.models import ContentModel
from canonsync.core.sync.models import (
    Collection,
    CollectionDiff,
    ContentSet,
    SyncMetadata,
    SyncPlan,
    entity_key,
)

logger = logging.getLogger(__name__)

KeyFn = Callable[[ContentModel], str]


def _current(
    entities: Iterable[ContentModel],
    key_fn: KeyFn,
    collection: str,
) -> dict[str, ContentModel]:
    current: dict[str, ContentModel] = {}
    for entity in entities:
        key = key_fn(entity)
        if key in current:
            raise DuplicateKeyError(collection, key)
        if not entity.fingerprint:
            raise RuntimeError(f"{entity.kind} {key!r} has no fingerprint; canonicalize it first")
        current[key] = entity
    return current


def diff_collection(
    entities: Iterable[ContentModel],
    previous: Mapping[str, str],
    key_fn: KeyFn = entity_key,
    collection: str = "entities",
) -> CollectionDiff:
    """
    Diff one collection against its previously recorded fingerprints.

    Example:
        >>> diff = diff_collection(courses, {"a": "h1", "c": "h3"})
        >>> list(diff.for_sync), diff.for_deletion
        (['b'], ['c'])

    Raises:
        DuplicateKeyError: If two entities share a key
    """
    current = _current(entities, key_fn, collection)
    return CollectionDiff(
        collection=collection,
        for_sync={
            key: entity
            for key, entity in current.items()
            if previous.get(key) != entity.fingerprint
        },
        for_deletion=sorted(key for key in previous if key not in current),
    )


def snapshot_metadata(content: ContentSet) -> SyncMetadata:
    """
    Record the current fingerprint of every entity, per collection.

    Raises:
        DuplicateKeyError: If a collection contains the same key twice
    """
    content.refresh()
    snapshot: dict[str, dict[str, str]] = {}
    for collection in Collection:
        current = _current(content.entities(collection), entity_key, collection.value)
        snapshot[collection.value] = {key: entity.fingerprint for key, entity in current.items()}
    return SyncMetadata(**snapshot, recorded_at=datetime.now(timezone.utc))


def build_sync_plan(content: ContentSet, previous: SyncMetadata) -> SyncPlan:
    """
    Plan what to upsert and delete in every collection.

    Collections are independent: a change to one question puts that question
    (and its course, whose fingerprint covers it) in the plan and nothing else.

    Raises:
        DuplicateKeyError: If a collection contains the same key twice
    """
    content.refresh()
    diffs: dict[Collection, CollectionDiff] = {}
    for collection in Collection:
        diff = diff_collection(
            content.entities(collection),
            previous.for_collection(collection),
            entity_key,
            collection.value,
        )
        diffs[collection] = diff
        logger.debug(
            "Planned %s: %d to sync, %d to delete",
            collection.value,
            len(diff.for_sync),
            len(diff.for_deletion),
        )

    plan = SyncPlan(diffs=diffs, metadata=snapshot_metadata(content))
    logger.info(
        "Sync plan: %d to sync, %d to delete",
        sum(len(diff.for_sync) for diff in diffs.values()),
        sum(len(diff.for_deletion) for diff in diffs.values()),
    )
    return plan
