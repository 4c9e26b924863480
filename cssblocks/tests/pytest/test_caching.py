"""
Tests for snapshot diffing between build cycles.
"""

from __future__ import annotations

import pytest

from cssblocks.build.caching import CHANGE, CREATE, UNLINK, Snapshot, SnapshotDiffer
from cssblocks.core.tree import FileEntry, MemoryTree
from cssblocks.core.utils import INPUT_GLOBS


def _entry(path: str, checksum: str = "0" * 16, size: int = 1, mtime: float = 0.0) -> FileEntry:
    return FileEntry(relative_path=path, size=size, checksum=checksum, mtime=mtime)


# =============================================================================
# Snapshot
# =============================================================================


@pytest.mark.evergreen
class TestSnapshot:
    """Snapshots compare structurally and produce sorted patches."""

    def test_enumeration_order_does_not_matter(self) -> None:
        a = Snapshot([_entry("b.css"), _entry("a.css")])
        b = Snapshot([_entry("a.css"), _entry("b.css")])
        assert a == b
        assert a.calculate_patch(b) == []

    def test_mtime_alone_is_not_a_change(self) -> None:
        before = Snapshot([_entry("a.css", mtime=1.0)])
        after = Snapshot([_entry("a.css", mtime=99.0)])
        assert before.calculate_patch(after) == []

    def test_patch_operations(self) -> None:
        before = Snapshot([_entry("keep.css"), _entry("edit.css"), _entry("gone.css")])
        after = Snapshot([_entry("keep.css"), _entry("edit.css", checksum="f" * 16), _entry("new.css")])
        assert before.calculate_patch(after) == [
            (CHANGE, "edit.css"),
            (UNLINK, "gone.css"),
            (CREATE, "new.css"),
        ]

    def test_duplicate_paths_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate path"):
            Snapshot([_entry("a.css"), _entry("a.css")])


# =============================================================================
# Differ
# =============================================================================


@pytest.mark.evergreen
class TestSnapshotDiffer:
    """The stored snapshot only moves forward through commit()."""

    def test_empty_inputs_never_rebuild(self) -> None:
        differ = SnapshotDiffer()
        decision = differ.should_rebuild([])
        assert decision.changed is False
        assert decision.patch == []

    def test_first_cycle_with_inputs_rebuilds(self) -> None:
        differ = SnapshotDiffer()
        decision = differ.should_rebuild([_entry("a.css")])
        assert decision.changed is True
        assert decision.patch == [(CREATE, "a.css")]

    def test_should_rebuild_does_not_store(self) -> None:
        differ = SnapshotDiffer()
        differ.should_rebuild([_entry("a.css")])
        assert len(differ.previous) == 0
        assert differ.should_rebuild([_entry("a.css")]).changed is True

    def test_commit_makes_identical_inputs_a_no_op(self) -> None:
        differ = SnapshotDiffer()
        differ.commit(differ.should_rebuild([_entry("a.css")]))
        decision = differ.should_rebuild([_entry("a.css")])
        assert decision.changed is False
        assert decision.snapshot is differ.previous

    def test_reset_forces_rebuild(self) -> None:
        differ = SnapshotDiffer()
        differ.commit(differ.should_rebuild([_entry("a.css")]))
        differ.reset()
        assert differ.should_rebuild([_entry("a.css")]).changed is True

    def test_tree_entries_only_cover_inputs(self) -> None:
        tree = MemoryTree({
            "app/x.compiledblock.css": "",
            "app/t.block-analysis.json": "{}",
            "app/x.block.css": "",
            "app/styles/app.css": "",
        })
        paths = [e.relative_path for e in tree.entries(INPUT_GLOBS)]
        assert paths == ["app/t.block-analysis.json", "app/x.compiledblock.css"]

    def test_content_change_detected_through_tree(self) -> None:
        tree = MemoryTree({"t.block-analysis.json": "{}"})
        differ = SnapshotDiffer()
        differ.commit(differ.should_rebuild(tree.entries(INPUT_GLOBS)))

        tree.write_text("t.block-analysis.json", '{"changed": true}')
        decision = differ.should_rebuild(tree.entries(INPUT_GLOBS))
        assert decision.patch == [(CHANGE, "t.block-analysis.json")]
