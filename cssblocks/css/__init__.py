"""
cssblocks.css - Minimal CSS parsing, rendering and source maps.
"""

from cssblocks.css.parser import (
    AtRule,
    CSSSyntaxError,
    Declaration,
    Node,
    Rule,
    iter_rules,
    normalize_selector,
    parse_declarations,
    parse_stylesheet,
    render_css,
    render_nodes,
    replace_classes,
    selector_classes,
    split_selector_list,
)
from cssblocks.css.sourcemap import SourceMapBuilder, encode_vlq

__all__ = [
    "AtRule",
    "CSSSyntaxError",
    "Declaration",
    "Node",
    "Rule",
    "iter_rules",
    "normalize_selector",
    "parse_declarations",
    "parse_stylesheet",
    "render_css",
    "render_nodes",
    "replace_classes",
    "selector_classes",
    "split_selector_list",
    "SourceMapBuilder",
    "encode_vlq",
]
