"""
Block importing against a FileTree.

Canonical block identifiers are tree-relative POSIX paths ending in
``.block.css``. A block whose precompiled fragment
(``*.compiledblock.css``) is present in the tree is loaded from that
fragment; otherwise its source is read.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass

from cssblocks.core.errors import BlockResolutionError
from cssblocks.core.tree import FileTree
from cssblocks.core.utils import BLOCK_SOURCE_SUFFIX, COMPILED_BLOCK_SUFFIX, normalize_path

logger = logging.getLogger(__name__)

SOURCE = "block"
PRECOMPILED = "precompiled"


def path_to_ident(path: str) -> str:
    """Normalize a block path to its canonical identifier.

    ``./app/styles/../styles/nav.compiledblock.css`` and
    ``app/styles/nav.block.css`` both become ``app/styles/nav.block.css``.
    """
    ident = posixpath.normpath(normalize_path(path))
    if ident.startswith("../") or ident == "..":
        raise ValueError(f"Block path escapes the input tree: {path}")
    if ident.endswith(COMPILED_BLOCK_SUFFIX):
        ident = ident[: -len(COMPILED_BLOCK_SUFFIX)] + BLOCK_SOURCE_SUFFIX
    return ident


@dataclass(frozen=True)
class ImportedFile:
    """Contents of a block as read from the tree."""

    identifier: str
    path: str
    syntax: str  # SOURCE or PRECOMPILED
    contents: str


class TreeImporter:
    """Reads blocks out of the stage's input tree."""

    def __init__(self, tree: FileTree):
        self.tree = tree

    def identifier(self, from_identifier: str, import_path: str) -> str:
        """Resolve an ``@block`` import path relative to the importing block."""
        if import_path.startswith("./") or import_path.startswith("../"):
            base = posixpath.dirname(from_identifier)
            return path_to_ident(posixpath.join(base, import_path))
        return path_to_ident(import_path)

    def compiled_path(self, identifier: str) -> str:
        if identifier.endswith(BLOCK_SOURCE_SUFFIX):
            return identifier[: -len(BLOCK_SOURCE_SUFFIX)] + COMPILED_BLOCK_SUFFIX
        return identifier + COMPILED_BLOCK_SUFFIX

    def import_block(self, identifier: str) -> ImportedFile:
        """Read a block, preferring its precompiled fragment.

        Raises:
            BlockResolutionError: If neither form exists in the tree.
        """
        compiled = self.compiled_path(identifier)
        if self.tree.exists(compiled):
            logger.debug("Importing precompiled block %s", compiled)
            return ImportedFile(identifier, compiled, PRECOMPILED, self.tree.read_text(compiled))
        if self.tree.exists(identifier):
            logger.debug("Importing block source %s", identifier)
            return ImportedFile(identifier, identifier, SOURCE, self.tree.read_text(identifier))
        raise BlockResolutionError(identifier, f"neither {identifier} nor {compiled} exists in {self.tree!r}")

    def debug_identifier(self, identifier: str) -> str:
        """Human-readable name for a block, used as the optimizer source filename."""
        compiled = self.compiled_path(identifier)
        return compiled if self.tree.exists(compiled) else identifier
