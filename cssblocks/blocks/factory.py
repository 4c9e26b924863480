"""
Block factory: one Block instance per canonical identifier per build cycle.

The factory is a keyed registry. Deduplication downstream relies on it:
any two lookups of the same identifier in one cycle yield the same object.
A new factory is created for every build cycle.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from cssblocks.blocks.block import Block, Style
from cssblocks.blocks.importer import PRECOMPILED, TreeImporter, path_to_ident
from cssblocks.blocks.parser import BlockDefinition, parse_block_source, parse_precompiled
from cssblocks.core.errors import BlockResolutionError

logger = logging.getLogger(__name__)


class BlockFactory:
    """Resolves block identifiers to parsed, fully linked Blocks."""

    def __init__(self, importer: TreeImporter):
        self.importer = importer
        self._registry: dict[str, Block] = {}
        self._resolving: list[str] = []
        self._names: dict[str, str] = {}  # block name -> identifier

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, identifier: str) -> bool:
        return path_to_ident(identifier) in self._registry

    @property
    def blocks(self) -> dict[str, Block]:
        """Blocks resolved so far, keyed by identifier."""
        return dict(self._registry)

    def resolve(self, identifier: str) -> Block:
        """Return the Block for ``identifier``, parsing it on first use.

        Raises:
            BlockResolutionError: If the block or one of its references is
                missing, fails to parse, or references itself in a cycle.
        """
        try:
            ident = path_to_ident(identifier)
        except ValueError as e:
            raise BlockResolutionError(identifier, str(e)) from e

        block = self._registry.get(ident)
        if block is not None:
            return block

        if ident in self._resolving:
            cycle = " -> ".join(self._resolving[self._resolving.index(ident):] + [ident])
            raise BlockResolutionError(ident, f"circular block reference: {cycle}")

        self._resolving.append(ident)
        try:
            block = self._load(ident)
        finally:
            self._resolving.pop()

        self._registry[ident] = block
        return block

    def resolve_all(self, identifiers: Iterable[str]) -> list[Block]:
        return [self.resolve(i) for i in identifiers]

    def precompiled_class_names(self) -> set[str]:
        """Fixed class names of every precompiled block resolved so far.

        Raises:
            BlockResolutionError: If two precompiled blocks were rendered with
                the same class name.
        """
        owners: dict[str, str] = {}
        for ident, block in self._registry.items():
            if block.precompiled_stylesheet is None:
                continue
            for class_name in block.class_names().values():
                owner = owners.setdefault(class_name, ident)
                if owner != ident:
                    raise BlockResolutionError(
                        ident, f"precompiled class '{class_name}' is also used by {owner}"
                    )
        return set(owners)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _load(self, ident: str) -> Block:
        imported = self.importer.import_block(ident)
        try:
            if imported.syntax == PRECOMPILED:
                definition = parse_precompiled(ident, imported.contents)
            else:
                definition = parse_block_source(ident, imported.contents)
        except ValueError as e:
            raise BlockResolutionError(ident, str(e)) from e

        block = Block(
            identifier=ident,
            name=self._unique_name(definition),
            styles=definition.styles,
            stylesheet=definition.stylesheet,
            precompiled_stylesheet=definition.precompiled,
            source_content=definition.source_content,
        )
        self._link(block, definition)
        logger.debug("Resolved block %s (%d styles)", ident, len(block.styles))
        return block

    def _unique_name(self, definition: BlockDefinition) -> str:
        """Keep source block names unique so generated classes cannot clash."""
        name = definition.name
        owner = self._names.get(name)
        if owner is not None and owner != definition.identifier and definition.precompiled is None:
            suffix = 2
            while f"{name}-{suffix}" in self._names:
                suffix += 1
            name = f"{name}-{suffix}"
        self._names.setdefault(name, definition.identifier)
        return name

    def _link(self, block: Block, definition: BlockDefinition) -> None:
        """Resolve references, base block and composed styles."""
        for local, path in definition.references.items():
            try:
                ref_ident = self.importer.identifier(block.identifier, path)
            except ValueError as e:
                raise BlockResolutionError(block.identifier, str(e)) from e
            block.references[local] = self.resolve(ref_ident)

        if definition.extends is not None:
            base = block.references.get(definition.extends)
            if base is None:
                raise BlockResolutionError(
                    block.identifier, f"extends unknown block reference '{definition.extends}'"
                )
            block.base = base

        for style_name, targets in definition.composes.items():
            style: Optional[Style] = block.styles.get(style_name)
            if style is None:
                raise BlockResolutionError(block.identifier, f"composes for unknown style '{style_name}'")
            for local, target_style in targets:
                other = block.references.get(local)
                if other is None:
                    raise BlockResolutionError(
                        block.identifier, f"composes unknown block reference '{local}'"
                    )
                found = other.lookup(target_style)
                if found is None:
                    raise BlockResolutionError(
                        block.identifier, f"block '{local}' has no style '{target_style}'"
                    )
                owner, _ = found
                style.composes.append((owner.identifier, target_style))
