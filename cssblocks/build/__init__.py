"""
cssblocks.build - The css-blocks application build stage.

Configuration and build caching are exported here; the stage itself lives
in ``cssblocks.build.stage``.
"""

from cssblocks.build.caching import RebuildDecision, Snapshot, SnapshotDiffer
from cssblocks.build.config import (
    CONFIG_FILENAME,
    BuildConfig,
    OptimizerOptions,
    ResolvedConfiguration,
    RewriteIdents,
    find_config,
    load_config,
    resolve_configuration,
)

__all__ = [
    # Caching
    "RebuildDecision",
    "Snapshot",
    "SnapshotDiffer",
    # Config
    "CONFIG_FILENAME",
    "BuildConfig",
    "OptimizerOptions",
    "ResolvedConfiguration",
    "RewriteIdents",
    "find_config",
    "load_config",
    "resolve_configuration",
]
