"""
cssblocks.blocks - Block model, parsing, resolution and compilation.
"""

from cssblocks.blocks.block import SCOPE, Block, CompiledStylesheet, Style, class_for, parse_style_name
from cssblocks.blocks.compiler import BlockCompiler
from cssblocks.blocks.factory import BlockFactory
from cssblocks.blocks.importer import ImportedFile, TreeImporter, path_to_ident
from cssblocks.blocks.parser import BlockDefinition, BlockSyntaxError, parse_block_source, parse_precompiled

__all__ = [
    "SCOPE",
    "Block",
    "CompiledStylesheet",
    "Style",
    "class_for",
    "parse_style_name",
    "BlockCompiler",
    "BlockFactory",
    "ImportedFile",
    "TreeImporter",
    "path_to_ident",
    "BlockDefinition",
    "BlockSyntaxError",
    "parse_block_source",
    "parse_precompiled",
]
