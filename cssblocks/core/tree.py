"""
File tree capability for the build stage.

The stage never touches the real filesystem directly. It receives a
``FileTree`` for its merged input and another for its output, which keeps
every phase testable against ``MemoryTree``.
"""

from __future__ import annotations

import hashlib
import re
import time
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from cssblocks.core.errors import MissingInputError
from cssblocks.core.utils import normalize_path


# =============================================================================
# Entries
# =============================================================================


@dataclass(frozen=True)
class FileEntry:
    """One file in a tree, identified by its tree-relative path.

    Two entries are equal when their path, size and content checksum match;
    the modification time is informational only.
    """

    relative_path: str
    size: int
    checksum: str
    mtime: float = field(default=0.0, compare=False)


def content_checksum(data: bytes) -> str:
    """16-char hex fingerprint of file content."""
    return hashlib.sha256(data).hexdigest()[:16]


# =============================================================================
# Glob Matching
# =============================================================================


@lru_cache(maxsize=64)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def match_globs(path: str, globs: Optional[Iterable[str]]) -> bool:
    """Return True if ``path`` matches any of ``globs`` (``None`` matches everything)."""
    if globs is None:
        return True
    return any(_glob_regex(g).match(path) for g in globs)


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class FileTree(Protocol):
    """Narrow read/write interface over a directory of files."""

    def entries(self, globs: Optional[Iterable[str]] = None) -> list[FileEntry]:
        """Return entries matching any of ``globs``, sorted by path."""
        ...

    def exists(self, path: str) -> bool:
        ...

    def read_text(self, path: str) -> str:
        """Read a file as UTF-8 text. Raises MissingInputError if absent."""
        ...

    def write_text(self, path: str, text: str) -> None:
        ...

    def mkdir(self, path: str) -> None:
        """Ensure a directory exists (parents included)."""
        ...


# =============================================================================
# Implementations
# =============================================================================


class LocalTree:
    """FileTree backed by a directory on disk."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalTree({str(self.root)!r})"

    def _path(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def entries(self, globs: Optional[Iterable[str]] = None) -> list[FileEntry]:
        if not self.root.exists():
            return []
        globs = list(globs) if globs is not None else None
        result = []
        for file_path in sorted(self.root.rglob("*")):
            if not file_path.is_file():
                continue
            rel = file_path.relative_to(self.root).as_posix()
            if not match_globs(rel, globs):
                continue
            data = file_path.read_bytes()
            result.append(
                FileEntry(
                    relative_path=rel,
                    size=len(data),
                    checksum=content_checksum(data),
                    mtime=file_path.stat().st_mtime,
                )
            )
        return result

    def exists(self, path: str) -> bool:
        return self._path(path).is_file()

    def read_text(self, path: str) -> str:
        file_path = self._path(path)
        if not file_path.is_file():
            raise MissingInputError(f"{path} not found in {self.root}")
        # newline="" keeps CRLF line endings intact
        with open(file_path, "r", encoding="utf-8", newline="") as f:
            return f.read()

    def write_text(self, path: str, text: str) -> None:
        file_path = self._path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    def mkdir(self, path: str) -> None:
        self._path(path).mkdir(parents=True, exist_ok=True)


class MemoryTree:
    """FileTree held in a dict. Used by tests and dry runs."""

    def __init__(self, files: Optional[dict[str, str]] = None):
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()
        self.writes: list[str] = []
        for path, text in (files or {}).items():
            self.files[normalize_path(path)] = text

    def __repr__(self) -> str:
        return f"MemoryTree({len(self.files)} files)"

    def entries(self, globs: Optional[Iterable[str]] = None) -> list[FileEntry]:
        globs = list(globs) if globs is not None else None
        result = []
        for rel in sorted(self.files):
            if not match_globs(rel, globs):
                continue
            data = self.files[rel].encode("utf-8")
            result.append(
                FileEntry(
                    relative_path=rel,
                    size=len(data),
                    checksum=content_checksum(data),
                    mtime=time.time(),
                )
            )
        return result

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self.files

    def read_text(self, path: str) -> str:
        rel = normalize_path(path)
        if rel not in self.files:
            raise MissingInputError(f"{path} not found in memory tree")
        return self.files[rel]

    def write_text(self, path: str, text: str) -> None:
        rel = normalize_path(path)
        self.files[rel] = text
        self.writes.append(rel)

    def mkdir(self, path: str) -> None:
        self.dirs.add(normalize_path(path))
