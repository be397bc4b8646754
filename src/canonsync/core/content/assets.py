"""
Canonical image naming for image-bearing entities.

Every image is named after the entity that owns it and stored under a
directory chosen by entity type:

    Course     <course_key>/<course_key>.<ext>
    Question   <course_key>/<question_id>.<ext>
    Bundle     bundles/<bundle_key>.<ext>
    Icon       icons/<icon_key>.<ext>

The coordinator compares an entity's image reference with its canonical name
and asks the asset store to rename the file when they drift apart. The
original extension is kept. Canonical names come from unique keys, so renames
for different entities never target the same file and can run concurrently.

Usage:
    store = LocalAssetStore(Path("assets"))
    coordinator = AssetRenameCoordinator(store)
    record = coordinator.align(course)   # None when already canonical
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from canonsync.core.config.models import AssetsConfig
from canonsync.core.content.errors import AssetRenameError
from canonsync.core.content.models import Bundle, Course, Icon, Question

logger = logging.getLogger(__name__)

ImageBearing = Course | Question | Bundle | Icon


class AssetStore(Protocol):
    """External store holding image files, addressed by relative reference."""

    def rename(self, old_reference: str, new_reference: str) -> None: ...


class LocalAssetStore:
    """
    Asset store backed by a local directory.

    Example:
        >>> store = LocalAssetStore(Path("assets"))
        >>> store.rename("math101/cover.png", "math101/math101.png")
    """

    def __init__(self, root: Path) -> None:
        """
        Initialize store with an asset root directory.

        Args:
            root: Directory that references are resolved against
        """
        self.root = Path(root)

    def rename(self, old_reference: str, new_reference: str) -> None:
        """
        Rename an asset file.

        Raises:
            FileNotFoundError: If the source file doesn't exist
            FileExistsError: If the target file already exists
        """
        source = self.root / old_reference
        target = self.root / new_reference
        if not source.exists():
            raise FileNotFoundError(f"Asset not found: {source}")
        if target.exists():
            raise FileExistsError(f"Asset already exists: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)


@dataclass(frozen=True)
class RenameRecord:
    """One rename performed by the coordinator."""

    kind: str
    key: str
    old_reference: str
    new_reference: str


class AssetRenameCoordinator:
    """
    Keeps image file names aligned with their owning entity's key.

    align() is idempotent: an entity whose image stem already equals its
    canonical name is left untouched and the store is not called.
    """

    def __init__(self, store: AssetStore, config: AssetsConfig | None = None) -> None:
        self.store = store
        self.config = config or AssetsConfig()

    def canonical_name(self, entity: ImageBearing) -> str:
        """File stem the entity's image should have."""
        if isinstance(entity, Question):
            return str(entity.id)
        return entity.key

    def directory(self, entity: ImageBearing) -> str:
        if isinstance(entity, Course):
            return entity.key
        if isinstance(entity, Question):
            return entity.bound_course_key()
        if isinstance(entity, Bundle):
            return self.config.bundles_dir
        return self.config.icons_dir

    def full_reference(self, entity: ImageBearing, file_name: str) -> str:
        """Store reference for a file name owned by the entity."""
        return f"{self.directory(entity)}/{file_name}"

    def canonical_reference(self, entity: ImageBearing) -> str | None:
        """Store reference the entity's image should have, or None without an image."""
        if not entity.image:
            return None
        suffix = PurePosixPath(entity.image).suffix
        return self.full_reference(entity, f"{self.canonical_name(entity)}{suffix}")

    def align(self, entity: ImageBearing) -> RenameRecord | None:
        """
        Rename the entity's image to its canonical name when they differ.

        Returns:
            The rename performed, or None when nothing had to change

        Raises:
            AssetRenameError: If the store fails; the entity keeps its old reference
        """
        if not entity.image:
            return None

        canonical = self.canonical_name(entity)
        current = PurePosixPath(entity.image)
        if current.stem == canonical and current.name == entity.image:
            return None

        new_name = f"{canonical}{current.suffix}"
        old_reference = self.full_reference(entity, entity.image)
        new_reference = self.full_reference(entity, new_name)

        try:
            self.store.rename(old_reference, new_reference)
        except Exception as e:
            raise AssetRenameError(entity.kind, canonical, old_reference, new_reference) from e

        entity.image = new_name
        logger.info("Renamed %s image %s -> %s", entity.kind, old_reference, new_reference)
        return RenameRecord(
            kind=entity.kind,
            key=canonical,
            old_reference=old_reference,
            new_reference=new_reference,
        )

    def align_course(self, course: Course) -> list[RenameRecord]:
        """Align a course image and the images of all its questions."""
        records: list[RenameRecord] = []
        for entity in [course, *course.questions]:
            record = self.align(entity)
            if record is not None:
                records.append(record)
        return records

    def align_many(
        self,
        entities: Iterable[ImageBearing],
        max_workers: int = 4,
    ) -> list[RenameRecord]:
        """
        Align many independent entities concurrently.

        Every rename is attempted. If any failed, the first failure is raised
        after the others complete.

        Raises:
            AssetRenameError: If at least one rename failed
        """
        pending = list(entities)
        if not pending:
            return []

        records: list[RenameRecord] = []
        failures: list[AssetRenameError] = []
        with ThreadPoolExecutor(max_workers=min(max_workers, len(pending))) as executor:
            futures: dict[Future[RenameRecord | None], ImageBearing] = {
                executor.submit(self.align, entity): entity for entity in pending
            }
            for future in as_completed(futures):
                try:
                    record = future.result()
                except AssetRenameError as e:
                    logger.warning("%s", e)
                    failures.append(e)
                    continue
                if record is not None:
                    records.append(record)

        if failures:
            raise failures[0]
        return records
