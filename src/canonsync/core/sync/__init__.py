"""
Content-addressed sync planning.

Compares canonical content against the fingerprints recorded at the last sync
and plans, per collection, which entities to upsert and which keys to delete.

Example:
    >>> from canonsync.core.sync import ContentSet, MetadataStore, build_sync_plan
    >>> store = MetadataStore(Path(".canonsync/metadata.json"))
    >>> plan = build_sync_plan(ContentSet(courses=courses), store.load())
    >>> if not plan.is_empty:
    ...     apply(plan)
    ...     store.save(plan.metadata)
"""

from canonsync.core.sync.diff import build_sync_plan, diff_collection, snapshot_metadata
from canonsync.core.sync.models import (
    Collection,
    CollectionDiff,
    ContentSet,
    SyncMetadata,
    SyncPlan,
    entity_key,
)
from canonsync.core.sync.store import MetadataStore

__all__ = [
    "Collection",
    "CollectionDiff",
    "ContentSet",
    "MetadataStore",
    "SyncMetadata",
    "SyncPlan",
    "build_sync_plan",
    "diff_collection",
    "entity_key",
    "snapshot_metadata",
]
