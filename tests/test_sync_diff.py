"""
Tests for per-collection sync planning.
"""

import json
from decimal import Decimal

import pytest

from canonsync.core.content.errors import DuplicateKeyError
from canonsync.core.content.models import Bundle, Icon
from canonsync.core.sync import (
    Collection,
    ContentSet,
    MetadataStore,
    SyncMetadata,
    build_sync_plan,
    diff_collection,
    snapshot_metadata,
)


def fingerprinted_icon(key, fingerprint):
    icon = Icon(key=key, image=f"{key}.png")
    icon.fingerprint = fingerprint
    return icon


@pytest.fixture
def content(canonical_course, canonicalizer):
    bundle = canonicalizer.bundle(
        Bundle(key="year1", name="Year one", course_keys=["math101"], discount=Decimal("0.1"))
    )
    icon = canonicalizer.icon(Icon(key="star", image="star.png"))
    return ContentSet(courses=[canonical_course], bundles=[bundle], icons=[icon])


class TestDiffCollection:
    """Test the set difference against recorded fingerprints."""

    def test_new_changed_and_deleted(self):
        entities = [fingerprinted_icon("a", "h1"), fingerprinted_icon("b", "h2")]
        diff = diff_collection(entities, {"a": "h1", "c": "h3"})
        assert list(diff.for_sync) == ["b"]
        assert diff.for_deletion == ["c"]

    def test_changed_fingerprint_synced(self):
        diff = diff_collection([fingerprinted_icon("a", "h2")], {"a": "h1"})
        assert list(diff.for_sync) == ["a"]
        assert diff.for_deletion == []

    def test_unchanged_is_empty(self):
        diff = diff_collection([fingerprinted_icon("a", "h1")], {"a": "h1"})
        assert diff.is_empty

    def test_duplicate_key(self):
        entities = [fingerprinted_icon("a", "h1"), fingerprinted_icon("a", "h2")]
        with pytest.raises(DuplicateKeyError) as exc_info:
            diff_collection(entities, {}, collection="icons")
        assert exc_info.value.collection == "icons"
        assert exc_info.value.key == "a"

    def test_missing_fingerprint(self):
        with pytest.raises(RuntimeError, match="fingerprint"):
            diff_collection([Icon(key="a", image="a.png")], {})


class TestBuildSyncPlan:
    """Test planning over every collection."""

    def test_first_sync_uploads_everything(self, content):
        plan = build_sync_plan(content, SyncMetadata())
        summary = plan.summary()
        assert summary["courses"] == {"sync": 1, "delete": 0}
        assert summary["questions"]["sync"] == 2
        assert summary["options"]["sync"] == 5
        assert summary["topics"]["sync"] == 2
        assert summary["sources"]["sync"] == 2
        assert summary["bundles"]["sync"] == 1
        assert summary["icons"]["sync"] == 1

    def test_second_sync_is_empty(self, content):
        first = build_sync_plan(content, SyncMetadata())
        second = build_sync_plan(content, first.metadata)
        assert second.is_empty

    def test_option_change_is_localized(self, content, canonicalizer, canonical_course):
        recorded = snapshot_metadata(content)
        question = canonical_course.questions[0]
        question.options[2].text = "Twenty three."
        canonicalizer.course(canonical_course)

        plan = build_sync_plan(content, recorded)

        assert list(plan[Collection.COURSES].for_sync) == ["math101"]
        assert list(plan[Collection.QUESTIONS].for_sync) == [str(question.id)]
        assert len(plan[Collection.OPTIONS].for_sync) == 1
        assert plan[Collection.TOPICS].is_empty
        assert plan[Collection.BUNDLES].is_empty

    def test_in_place_list_edit_is_synced(self, content, canonical_course):
        recorded = snapshot_metadata(content)
        canonical_course.tags.append("new")

        plan = build_sync_plan(content, recorded)

        assert list(plan[Collection.COURSES].for_sync) == ["math101"]
        assert plan[Collection.QUESTIONS].is_empty

    def test_child_edit_reaches_parent(self, content, canonical_course):
        recorded = snapshot_metadata(content)
        question = canonical_course.questions[0]
        question.options[1].text = "Six."

        plan = build_sync_plan(content, recorded)

        assert list(plan[Collection.COURSES].for_sync) == ["math101"]
        assert list(plan[Collection.QUESTIONS].for_sync) == [str(question.id)]
        assert list(plan[Collection.OPTIONS].for_sync) == [str(question.options[1].id)]
        assert canonical_course.fingerprint == plan.metadata.courses["math101"]

    def test_removed_course_deletes_children(self, content):
        recorded = snapshot_metadata(content)
        content.courses = []
        plan = build_sync_plan(content, recorded)
        assert plan[Collection.COURSES].for_deletion == ["math101"]
        assert len(plan[Collection.QUESTIONS].for_deletion) == 2
        assert len(plan[Collection.OPTIONS].for_deletion) == 5
        assert len(plan[Collection.SOURCES].for_deletion) == 2

    def test_snapshot_covers_every_collection(self, content):
        snapshot = snapshot_metadata(content)
        assert snapshot.total() == 1 + 2 + 5 + 2 + 2 + 1 + 1
        assert snapshot.recorded_at is not None


class TestMetadataStore:
    """Test persistence of the recorded snapshot."""

    def test_missing_file_is_empty(self, tmp_path):
        assert MetadataStore(tmp_path / "none.json").load() == SyncMetadata()

    def test_save_and_load(self, tmp_path, content):
        store = MetadataStore(tmp_path / "state" / "metadata.json")
        snapshot = snapshot_metadata(content)
        store.save(snapshot)

        assert store.load() == snapshot
        assert not (tmp_path / "state" / "metadata.tmp").exists()

    def test_saved_as_json(self, tmp_path):
        store = MetadataStore(tmp_path / "metadata.json")
        store.save(SyncMetadata(icons={"star": "abc"}))
        data = json.loads((tmp_path / "metadata.json").read_text())
        assert data["icons"] == {"star": "abc"}

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "metadata.json"
        path.write_text("{not json")
        assert MetadataStore(path).load() == SyncMetadata()
