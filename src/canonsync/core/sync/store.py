"""
Persistence for the last synced metadata snapshot.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from canonsync.core.sync.models import SyncMetadata

logger = logging.getLogger(__name__)


class MetadataStore:
    """
    JSON file holding a SyncMetadata snapshot.

    Example:
        >>> store = MetadataStore(Path(".canonsync/metadata.json"))
        >>> previous = store.load()
        >>> store.save(plan.metadata)
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> SyncMetadata:
        """
        Load the recorded snapshot.

        A missing or unreadable file yields empty metadata, so the next plan
        syncs everything and deletes nothing.
        """
        if not self.path.exists():
            return SyncMetadata()

        try:
            return SyncMetadata.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to load sync metadata from %s: %s", self.path, e)
            return SyncMetadata()

    def save(self, metadata: SyncMetadata) -> None:
        """Write the snapshot atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(metadata.model_dump_json(indent=2), encoding="utf-8")
            temp_path.replace(self.path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise
        logger.info("Recorded %d fingerprints in %s", metadata.total(), self.path)
