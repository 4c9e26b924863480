"""
cssblocks.core - Foundation layer: logging, errors and file trees.
"""

from cssblocks.core.errors import (
    AnalysisDeserializationError,
    BlockCompileError,
    BlockResolutionError,
    CSSBlocksError,
    MissingInputError,
    OptimizationError,
)
from cssblocks.core.tree import FileEntry, FileTree, LocalTree, MemoryTree, content_checksum
from cssblocks.core.utils import Logger, configure_debug_logging, log, output_paths

__all__ = [
    # Errors
    "AnalysisDeserializationError",
    "BlockCompileError",
    "BlockResolutionError",
    "CSSBlocksError",
    "MissingInputError",
    "OptimizationError",
    # Trees
    "FileEntry",
    "FileTree",
    "LocalTree",
    "MemoryTree",
    "content_checksum",
    # Logging
    "Logger",
    "configure_debug_logging",
    "log",
    "output_paths",
]
