"""
The css-blocks application stage.

Turns the per-template block fragments and analyses in an input tree into
one optimized stylesheet and the runtime lookup module for an application.
The stage instance lives across build cycles; only its snapshot differ
carries state from one cycle to the next.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from cssblocks.build.caching import PatchOperation, SnapshotDiffer
from cssblocks.build.config import BuildConfig
from cssblocks.build.phases import PHASES, BuildCycle, write_artifacts
from cssblocks.core.tree import FileTree
from cssblocks.core.utils import INPUT_GLOBS, log


@dataclass
class BuildResult:
    """Summary of one call to ``CSSBlocksApplicationStage.build()``."""

    rebuilt: bool
    patch: list[PatchOperation] = field(default_factory=list)
    phase_timings: dict[str, float] = field(default_factory=dict)
    artifacts: dict[str, str] = field(default_factory=dict)
    blocks: int = 0
    analyses: int = 0
    optimizations: int = 0


class CSSBlocksApplicationStage:
    """Runs build cycles for one application."""

    def __init__(self, config: BuildConfig, input_tree: FileTree, output_tree: FileTree):
        self.config = config
        self.input_tree = input_tree
        self.output_tree = output_tree
        self.differ = SnapshotDiffer()

        # Timing tracking
        self._phase_start: Optional[float] = None
        self._phase_timings: dict[str, float] = {}

    def _start_phase(self, name: str) -> None:
        """Mark start of a phase."""
        self._phase_start = time.time()

    def _end_phase(self, name: str) -> None:
        """Record phase duration."""
        if self._phase_start is not None:
            duration = time.time() - self._phase_start
            self._phase_timings[name] = round(duration, 3)
            self._phase_start = None

    def build(self) -> BuildResult:
        """Run one build cycle.

        Returns without touching the output tree when no input changed since
        the last completed rebuild. Errors from any phase are logged and
        re-raised; the stored snapshot is only updated after the artifacts
        have been written.
        """
        entries = self.input_tree.entries(INPUT_GLOBS)
        decision = self.differ.should_rebuild(entries)
        if not decision.changed:
            log.dim(f"{self.config.app_name}: no block inputs changed, skipping build")
            return BuildResult(rebuilt=False)

        log.header(f"CSS Blocks: {self.config.app_name}")
        log.info(f"{len(decision.patch)} input change(s) across {len(entries)} file(s)")

        self._phase_timings = {}
        build_start = time.time()
        cycle = BuildCycle(config=self.config, input_tree=self.input_tree, entries=entries)
        try:
            for name, phase in PHASES:
                self._start_phase(name)
                phase(cycle)
                self._end_phase(name)

            if self.config.dry_run:
                log.info("[DRY-RUN] Would write:")
                for path, content in cycle.artifacts.items():
                    log.dim(f"  {path} ({len(content)} bytes)")
            else:
                self._start_phase("write_artifacts")
                write_artifacts(self.output_tree, cycle.artifacts)
                self._end_phase("write_artifacts")
                self.differ.commit(decision)
        except Exception as e:
            log.error(f"Build of {self.config.app_name} failed: {e}")
            raise

        result = BuildResult(
            rebuilt=True,
            patch=list(decision.patch),
            phase_timings=dict(self._phase_timings),
            artifacts=dict(cycle.artifacts),
            blocks=len(cycle.blocks_used),
            analyses=len(cycle.analyzer.analyses),
            optimizations=len(cycle.result.actions.performed),
        )
        log.success(
            f"Optimized {result.blocks} block(s) from {result.analyses} analysis record(s), "
            f"{result.optimizations} optimization(s) performed"
        )
        log.info(f"Total time: {time.time() - build_start:.2f}s")
        if self.config.verbose:
            for phase_name, duration in self._phase_timings.items():
                log.info(f"  {phase_name}: {duration:.3f}s")
        return result
