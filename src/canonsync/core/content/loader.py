"""
Batch loading of an authored content tree.

Layout (the file stem is the entity key):

    <root>/courses/<course_key>.json
    <root>/bundles/<bundle_key>.json
    <root>/icons/<icon_key>.json

Each file is parsed, canonicalized, aligned with its image assets and
fingerprinted. The three collections load in parallel; files within one
collection load in name order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from canonsync.core.config.models import BatchPolicy, CanonsyncConfig, FormattingConfig
from canonsync.core.content.assets import (
    AssetRenameCoordinator,
    LocalAssetStore,
    RenameRecord,
)
from canonsync.core.content.canonicalize import Canonicalizer, prepare_course
from canonsync.core.content.errors import (
    ContentError,
    IncompleteLoadError,
    MalformedInputError,
    ValidationIssue,
)
from canonsync.core.content.hashing import HashEngine
from canonsync.core.content.models import Bundle, ContentModel, Course, Icon
from canonsync.core.content.raw import (
    bundle_to_raw,
    course_to_raw,
    icon_to_raw,
    parse_bundle,
    parse_course,
    parse_icon,
)
from canonsync.core.sync.diff import build_sync_plan
from canonsync.core.sync.models import Collection, ContentSet, SyncMetadata, SyncPlan

logger = logging.getLogger(__name__)

LOADED_COLLECTIONS = (Collection.COURSES, Collection.BUNDLES, Collection.ICONS)


@dataclass(frozen=True)
class LoadFailure:
    """One content file that could not be loaded."""

    collection: str
    key: str
    path: Path
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class LoadReport:
    """Outcome of loading a content tree."""

    content: ContentSet
    failures: list[LoadFailure] = field(default_factory=list)
    renames: list[RenameRecord] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def sync_plan(self, previous: SyncMetadata) -> SyncPlan:
        """
        Plan a sync of the loaded content against recorded metadata.

        Entities of a failed file are absent from the content and would be
        planned for deletion, so planning refuses to run while any file failed.

        Raises:
            IncompleteLoadError: If any content file failed to load
        """
        if self.failures:
            raise IncompleteLoadError(
                [f"{failure.collection}/{failure.key}" for failure in self.failures]
            )
        return build_sync_plan(self.content, previous)


@dataclass
class _CollectionResult:
    entities: list[Any] = field(default_factory=list)
    failures: list[LoadFailure] = field(default_factory=list)
    renames: list[RenameRecord] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)


class ContentLoader:
    """
    Loads and canonicalizes every entity under a content root.

    With BatchPolicy.ALL_OR_NOTHING, load() raises the first failure once every
    collection has finished. With BatchPolicy.BEST_EFFORT failed files are
    skipped and listed in the report.

    Example:
        >>> loader = ContentLoader(Path("content"), policy=BatchPolicy.BEST_EFFORT)
        >>> report = loader.load()
        >>> for failure in report.failures:
        ...     print(failure.path, failure.message)
    """

    def __init__(
        self,
        root: Path,
        policy: BatchPolicy = BatchPolicy.ALL_OR_NOTHING,
        engine: HashEngine | None = None,
        formatting: FormattingConfig | None = None,
        coordinator: AssetRenameCoordinator | None = None,
        max_workers: int = 4,
        write_back: bool = False,
    ) -> None:
        self.root = Path(root)
        self.policy = policy
        self.engine = engine or HashEngine()
        self.canonicalizer = Canonicalizer(formatting, self.engine)
        self.coordinator = coordinator
        self.max_workers = max_workers
        self.write_back = write_back

    @classmethod
    def from_config(
        cls,
        config: CanonsyncConfig,
        root: Path | None = None,
        write_back: bool = False,
    ) -> ContentLoader:
        """Build a loader from configuration; asset renames need assets.root."""
        coordinator = None
        if config.assets.root:
            coordinator = AssetRenameCoordinator(
                LocalAssetStore(Path(config.assets.root)), config.assets
            )
        return cls(
            root if root is not None else Path(config.sync.content_dir),
            policy=config.sync.batch_policy,
            engine=HashEngine(config.sync.digest),
            formatting=config.formatting,
            coordinator=coordinator,
            max_workers=config.sync.max_workers,
            write_back=write_back,
        )

    def paths(self, collection: Collection) -> list[Path]:
        directory = self.root / collection.value
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.json"))

    def load(self) -> LoadReport:
        """
        Load every collection.

        Raises:
            ContentError: Under ALL_OR_NOTHING, the first failure encountered
        """
        workers = min(self.max_workers, len(LOADED_COLLECTIONS))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                collection: executor.submit(self._load_collection, collection)
                for collection in LOADED_COLLECTIONS
            }
            results = {collection: future.result() for collection, future in futures.items()}

        report = LoadReport(
            content=ContentSet(
                courses=results[Collection.COURSES].entities,
                bundles=results[Collection.BUNDLES].entities,
                icons=results[Collection.ICONS].entities,
                engine=self.engine,
            )
        )
        for result in results.values():
            report.failures.extend(result.failures)
            report.renames.extend(result.renames)
            report.written.extend(result.written)

        logger.info(
            "Loaded %d courses, %d bundles, %d icons from %s (%d failed)",
            len(report.content.courses),
            len(report.content.bundles),
            len(report.content.icons),
            self.root,
            len(report.failures),
        )

        if report.failures and self.policy is BatchPolicy.ALL_OR_NOTHING:
            raise report.failures[0].error
        return report

    def _load_collection(self, collection: Collection) -> _CollectionResult:
        result = _CollectionResult()
        for path in self.paths(collection):
            try:
                entity, renames = self._load_file(collection, path)
            except (ContentError, OSError) as e:
                if self.policy is BatchPolicy.BEST_EFFORT:
                    logger.warning("Skipping %s: %s", path, e)
                result.failures.append(LoadFailure(collection.value, path.stem, path, e))
                continue
            result.entities.append(entity)
            result.renames.extend(renames)
            if self.write_back and self._write_back(path, entity):
                result.written.append(path)
        return result

    def _load_file(
        self, collection: Collection, path: Path
    ) -> tuple[ContentModel, list[RenameRecord]]:
        data = read_json(path)
        key = path.stem
        source = str(path)

        if collection is Collection.COURSES:
            course = self.canonicalizer.course(parse_course(key, data, source))
            if self.coordinator is None:
                return course, []
            return course, prepare_course(course, self.coordinator, self.engine)

        if collection is Collection.BUNDLES:
            entity: Bundle | Icon = self.canonicalizer.bundle(parse_bundle(key, data, source))
        else:
            entity = self.canonicalizer.icon(parse_icon(key, data, source))

        renames: list[RenameRecord] = []
        if self.coordinator is not None:
            record = self.coordinator.align(entity)
            if record is not None:
                self.engine.assign(entity)
                renames.append(record)
        return entity, renames

    def _write_back(self, path: Path, entity: ContentModel) -> bool:
        """Rewrite the file in canonical form. Returns True if it changed."""
        serializers: dict[type, Callable[[Any], dict[str, Any]]] = {
            Course: course_to_raw,
            Bundle: bundle_to_raw,
            Icon: icon_to_raw,
        }
        text = dump_json(serializers[type(entity)](entity))
        if path.read_text(encoding="utf-8") == text:
            return False
        path.write_text(text, encoding="utf-8")
        logger.info("Formatted %s", path)
        return True


def read_json(path: Path) -> Any:
    """
    Read a JSON content file.

    Raises:
        MalformedInputError: If the file is not UTF-8 encoded JSON
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        issue = ValidationIssue(code="utf8_invalid", path=f"byte {e.start}", message=e.reason)
        raise MalformedInputError(str(path), [issue]) from e
    except json.JSONDecodeError as e:
        issue = ValidationIssue(code="json_invalid", path=f"{e.lineno}:{e.colno}", message=e.msg)
        raise MalformedInputError(str(path), [issue]) from e


def dump_json(data: Any) -> str:
    """Serialize content the way it is stored on disk."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
