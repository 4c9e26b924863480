"""Collect the set of blocks used by a group of analyses."""

from __future__ import annotations

from typing import Iterable

from cssblocks.analysis.analysis import Analysis
from cssblocks.blocks.block import Block


def collect_blocks_used(analyses: Iterable[Analysis]) -> dict[str, Block]:
    """Union of the transitive block dependencies of ``analyses``.

    Blocks are keyed by identifier, so a block shared by many templates
    appears once. Within each analysis dependencies precede dependents, and
    a block keeps the position of its first appearance.
    """
    used: dict[str, Block] = {}
    for analysis in analyses:
        for identifier, block in analysis.transitive_block_dependencies().items():
            used.setdefault(identifier, block)
    return used
