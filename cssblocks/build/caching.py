"""
Build caching for the css-blocks application stage.

Tracks the input files a build depends on across build cycles so that a
cycle whose inputs did not change can be skipped entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from cssblocks.core.tree import FileEntry

logger = logging.getLogger(__name__)

# Patch operations
CREATE = "create"
CHANGE = "change"
UNLINK = "unlink"

PatchOperation = tuple[str, str]


# =============================================================================
# Snapshots
# =============================================================================


class Snapshot:
    """Immutable set of file entries captured at one point in time.

    Entries are keyed by relative path and kept in path order, so two
    snapshots of the same files compare equal regardless of how they were
    enumerated.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[FileEntry] = ()):
        by_path: dict[str, FileEntry] = {}
        for entry in sorted(entries, key=lambda e: e.relative_path):
            if entry.relative_path in by_path:
                raise ValueError(f"Duplicate path in snapshot: {entry.relative_path}")
            by_path[entry.relative_path] = entry
        self._entries: Mapping[str, FileEntry] = MappingProxyType(by_path)

    @classmethod
    def from_entries(cls, entries: Iterable[FileEntry]) -> "Snapshot":
        return cls(entries)

    @property
    def entries(self) -> Mapping[str, FileEntry]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __repr__(self) -> str:
        return f"Snapshot({len(self._entries)} entries)"

    def calculate_patch(self, other: "Snapshot") -> list[PatchOperation]:
        """Return the operations that turn this snapshot into ``other``.

        Operations are sorted by path. An empty list means the snapshots
        describe the same files with the same content.
        """
        patch: list[PatchOperation] = []
        for path, entry in self._entries.items():
            if path not in other._entries:
                patch.append((UNLINK, path))
            elif other._entries[path] != entry:
                patch.append((CHANGE, path))
        for path in other._entries:
            if path not in self._entries:
                patch.append((CREATE, path))
        return sorted(patch, key=lambda op: (op[1], op[0]))


# =============================================================================
# Differ
# =============================================================================


@dataclass(frozen=True)
class RebuildDecision:
    """Outcome of comparing the current inputs to the stored snapshot."""

    changed: bool
    snapshot: Snapshot
    patch: list[PatchOperation] = field(default_factory=list)


class SnapshotDiffer:
    """Owns the snapshot of the last successful rebuild.

    The stored snapshot starts empty and is replaced only through
    ``commit()``, after a rebuild has written all of its artifacts. A cycle
    that fails before committing leaves the previous snapshot in place, so
    the next invocation rebuilds again.
    """

    def __init__(self) -> None:
        self._previous = Snapshot()

    @property
    def previous(self) -> Snapshot:
        return self._previous

    def should_rebuild(self, current_entries: Iterable[FileEntry]) -> RebuildDecision:
        """Compare ``current_entries`` against the stored snapshot."""
        current = Snapshot.from_entries(current_entries)
        patch = self._previous.calculate_patch(current)
        if not patch:
            logger.debug("No input changes since the last build")
            return RebuildDecision(changed=False, snapshot=self._previous)
        for operation, path in patch:
            logger.debug("  %s %s", operation, path)
        return RebuildDecision(changed=True, snapshot=current, patch=patch)

    def commit(self, decision: RebuildDecision) -> None:
        """Store the snapshot of a completed rebuild."""
        if decision.changed:
            self._previous = decision.snapshot

    def reset(self) -> None:
        """Forget the stored snapshot so the next cycle always rebuilds."""
        self._previous = Snapshot()
