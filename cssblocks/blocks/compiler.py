"""
Block compilation: render a block's styles with concrete class names.
"""

from __future__ import annotations

import copy
import logging
from typing import Iterable

from cssblocks.blocks.block import Block, CompiledStylesheet
from cssblocks.blocks.parser import STYLE_TOKEN, token_styles
from cssblocks.core.errors import BlockCompileError
from cssblocks.css.parser import AtRule, Node, Rule, split_selector_list

logger = logging.getLogger(__name__)


class BlockCompiler:
    """Produces the CSS for blocks that are not precompiled.

    Each block may be compiled at most once per build cycle; a second
    request for the same block is a caller error and raises
    BlockCompileError rather than silently producing a duplicate source.
    """

    def __init__(self, reserved_class_names: Iterable[str] = ()):
        self.reserved_class_names = frozenset(reserved_class_names)
        self._seen: set[str] = set()
        self.compiled_count = 0
        self.precompiled_count = 0

    def content_for(self, block: Block) -> CompiledStylesheet:
        """Return the CSS for ``block``.

        Precompiled blocks are returned verbatim; everything else goes
        through ``compile()``.
        """
        if block.identifier in self._seen:
            raise BlockCompileError(f"Block {block.identifier} was already compiled in this build")
        self._seen.add(block.identifier)

        if block.precompiled_stylesheet is not None:
            self.precompiled_count += 1
            return block.precompiled_stylesheet
        self.compiled_count += 1
        return self.compile(block)

    def compile(self, block: Block) -> CompiledStylesheet:
        """Rewrite the block's raw stylesheet to concrete class names.

        Raises:
            BlockCompileError: If the block has no raw stylesheet or a
                selector references a style the block does not define.
        """
        if block.stylesheet is None:
            raise BlockCompileError(f"Block {block.identifier} has no stylesheet to compile")

        class_names = block.class_names(self.reserved_class_names)
        nodes = copy.deepcopy(block.stylesheet)
        try:
            self._rewrite(nodes, class_names)
        except KeyError as e:
            raise BlockCompileError(f"Block {block.identifier} has no style {e}") from e
        return CompiledStylesheet(nodes=nodes, source_content=block.source_content)

    def _rewrite(self, nodes: list[Node], class_names: dict[str, str]) -> None:
        for node in nodes:
            if isinstance(node, Rule):
                node.selector = ", ".join(
                    STYLE_TOKEN.sub(
                        lambda m: "".join("." + class_names[s] for s in token_styles(m)),
                        selector,
                    )
                    for selector in split_selector_list(node.selector)
                )
            elif isinstance(node, AtRule) and node.children is not None:
                self._rewrite(node.children, class_names)
