"""
Build phases for the css-blocks application stage.

Each phase is a plain function taking the ``BuildCycle`` accumulator and
filling in the fields later phases read. The stage runs ``PHASES`` in
order; nothing is written to the output tree until every phase has
succeeded.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from cssblocks.analysis.aggregator import collect_blocks_used
from cssblocks.analysis.analysis import Analyzer
from cssblocks.blocks.block import Block
from cssblocks.blocks.compiler import BlockCompiler
from cssblocks.blocks.factory import BlockFactory
from cssblocks.blocks.importer import TreeImporter
from cssblocks.build.config import BuildConfig, ResolvedConfiguration, resolve_configuration
from cssblocks.core.tree import FileEntry, FileTree
from cssblocks.core.utils import ANALYSIS_SUFFIX
from cssblocks.optimizer.optimizer import OptimizationResult, Optimizer, OptimizerSource
from cssblocks.runtime.data import RuntimeDataGenerator, render_runtime_module

logger = logging.getLogger(__name__)


# =============================================================================
# Accumulator
# =============================================================================


@dataclass
class BuildCycle:
    """State of one build cycle. Discarded when the cycle ends."""

    config: BuildConfig
    input_tree: FileTree
    entries: list[FileEntry]

    importer: Optional[TreeImporter] = None
    factory: Optional[BlockFactory] = None
    analyzer: Optional[Analyzer] = None
    resolved: Optional[ResolvedConfiguration] = None
    optimizer: Optional[Optimizer] = None
    blocks_used: dict[str, Block] = field(default_factory=dict)
    compiler: Optional[BlockCompiler] = None
    result: Optional[OptimizationResult] = None
    runtime_data: Optional[dict[str, Any]] = None
    # output path -> content, in write order
    artifacts: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Phases
# =============================================================================


def load_analyses(cycle: BuildCycle) -> None:
    """Deserialize every analysis record, resolving the blocks it references."""
    cycle.importer = TreeImporter(cycle.input_tree)
    cycle.factory = BlockFactory(cycle.importer)
    cycle.analyzer = Analyzer(cycle.factory)
    for entry in cycle.entries:
        if not entry.relative_path.endswith(ANALYSIS_SUFFIX):
            continue
        logger.debug("Processing analysis: %s", entry.relative_path)
        text = cycle.input_tree.read_text(entry.relative_path)
        cycle.analyzer.load_json(text, entry.relative_path)


def resolve_config(cycle: BuildCycle) -> None:
    """Fix the class names of the cycle and submit the analyses."""
    cycle.resolved = resolve_configuration(
        cycle.config,
        cycle.analyzer.reserved_class_names(),
        cycle.factory.precompiled_class_names(),
    )
    cycle.optimizer = Optimizer(cycle.resolved.optimizer_options(), Analyzer.optimization_options)
    for analysis in cycle.analyzer.analyses:
        cycle.optimizer.add_analysis(analysis.for_optimizer(cycle.resolved))


def collect_blocks(cycle: BuildCycle) -> None:
    cycle.blocks_used = collect_blocks_used(cycle.analyzer.analyses)


def compile_sources(cycle: BuildCycle) -> None:
    """Submit the CSS of every used block to the optimizer."""
    cycle.compiler = BlockCompiler(cycle.resolved.taken_class_names)
    for block in cycle.blocks_used.values():
        filename = cycle.importer.debug_identifier(block.identifier)
        if block.precompiled_stylesheet is not None:
            logger.debug("Optimizing precompiled stylesheet for %s", filename)
        else:
            logger.debug("Compiling stylesheet for optimization of %s", filename)
        cycle.optimizer.add_source(OptimizerSource(content=cycle.compiler.content_for(block), filename=filename))
    logger.debug("Loaded %d blocks.", len(cycle.blocks_used))
    logger.debug("Loaded %d analyses.", len(cycle.optimizer.analyses))


def optimize(cycle: BuildCycle) -> None:
    cycle.result = cycle.optimizer.optimize(cycle.config.outputs["css"])
    logger.debug(
        "Optimized CSS. There were %d optimizations performed.",
        len(cycle.result.actions.performed),
    )


def generate_runtime_data(cycle: BuildCycle) -> None:
    generator = RuntimeDataGenerator(
        cycle.blocks_used,
        cycle.result.style_mapping,
        cycle.analyzer,
        cycle.resolved,
        cycle.resolved.reserved_class_names,
    )
    cycle.runtime_data = generator.generate()
    logger.debug("Runtime data: %s", cycle.runtime_data)


def render_artifacts(cycle: BuildCycle) -> None:
    """Render every output file in memory; the runtime module comes last."""
    outputs = cycle.config.outputs
    cycle.artifacts = {
        outputs["css"]: cycle.result.output.content,
        outputs["source_map"]: cycle.result.output.source_map or "",
        outputs["optimization_log"]: "\n".join(cycle.result.actions.log_strings()),
        outputs["runtime_data"]: render_runtime_module(cycle.runtime_data),
    }


PHASES: list[tuple[str, Callable[[BuildCycle], None]]] = [
    ("load_analyses", load_analyses),
    ("resolve_config", resolve_config),
    ("collect_blocks", collect_blocks),
    ("compile_sources", compile_sources),
    ("optimize", optimize),
    ("generate_runtime_data", generate_runtime_data),
    ("render_artifacts", render_artifacts),
]


# =============================================================================
# Output
# =============================================================================


def write_artifacts(output_tree: FileTree, artifacts: dict[str, str]) -> None:
    """Write rendered artifacts in order, creating their directories first."""
    for directory in sorted({posixpath.dirname(path) for path in artifacts}):
        if directory:
            output_tree.mkdir(directory)
    for path, content in artifacts.items():
        output_tree.write_text(path, content)
        logger.debug("Wrote %s (%d bytes)", path, len(content))
