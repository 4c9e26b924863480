"""
Merging of the optimized block CSS into the application stylesheet.

Runs after the application stage, during CSS preprocessing: the app's own
``app/styles/app.css`` is rewritten with the css-blocks output appended.
"""

from __future__ import annotations

import logging

from cssblocks.core.errors import MissingInputError
from cssblocks.core.tree import FileTree
from cssblocks.core.utils import APP_CSS_PATH, BLOCKS_CSS_GLOB

logger = logging.getLogger(__name__)


class CSSBlocksStylesProcessor:
    """Concatenates app CSS and block CSS.

    ``blocks_tree`` is the output of the application stage and
    ``app_css_tree`` the application's compiled CSS.
    """

    def __init__(self, blocks_tree: FileTree, app_css_tree: FileTree, output_tree: FileTree):
        self.blocks_tree = blocks_tree
        self.app_css_tree = app_css_tree
        self.output_tree = output_tree

    def find_blocks_css(self) -> str:
        """Path of the single css-blocks.css in the blocks tree.

        Raises:
            MissingInputError: If there is no such file, or more than one.
        """
        matches = [e.relative_path for e in self.blocks_tree.entries([BLOCKS_CSS_GLOB])]
        if not matches:
            raise MissingInputError(f"No css-blocks.css found in {self.blocks_tree!r}")
        if len(matches) > 1:
            raise MissingInputError(f"Expected one css-blocks.css, found {len(matches)}: {', '.join(matches)}")
        return matches[0]

    def build(self) -> str:
        """Write ``app/styles/app.css`` and return its content."""
        blocks_path = self.find_blocks_css()
        blocks_css = self.blocks_tree.read_text(blocks_path)
        app_css = self.app_css_tree.read_text(APP_CSS_PATH)

        content = f"{app_css}{blocks_css}"
        self.output_tree.mkdir("app/styles")
        self.output_tree.write_text(APP_CSS_PATH, content)
        logger.debug("Appended %s (%d bytes) to %s", blocks_path, len(blocks_css), APP_CSS_PATH)
        return content
