"""
Block data structures.

A Block is one parsed stylesheet resource. Within a build cycle there is
exactly one Block instance per canonical identifier (see
``cssblocks.blocks.factory.BlockFactory``), so blocks can be collected in
identifier-keyed mappings without further deduplication.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from cssblocks.css.parser import Node

SCOPE = ":scope"

# ":scope", ".item", ".item[active]", ":scope[size=large]"
_STYLE_NAME = re.compile(r"^(:scope|\.[_a-zA-Z][\w-]*)((?:\[[\w-]+(?:=[\w-]+)?\])*)$")
_STATE = re.compile(r"\[([\w-]+)(?:=([\w-]+))?\]")


def parse_style_name(style_name: str) -> tuple[str, list[tuple[str, Optional[str]]]]:
    """Split a canonical style name into its base and its states.

    >>> parse_style_name(".item[size=large]")
    ('.item', [('size', 'large')])
    """
    match = _STYLE_NAME.match(style_name)
    if not match:
        raise ValueError(f"Invalid style name: {style_name}")
    states = [(m.group(1), m.group(2)) for m in _STATE.finditer(match.group(2))]
    return match.group(1), states


def class_for(prefix: str, style_name: str) -> str:
    """Return the generated class name for a single style of a block."""
    base, states = parse_style_name(style_name)
    name = prefix if base == SCOPE else f"{prefix}__{base[1:]}"
    for state, value in states:
        name += f"--{state}" if value is None else f"--{state}-{value}"
    return name


@dataclass
class Style:
    """One style exported by a block.

    ``composes`` holds ``(block identifier, style name)`` pairs the style
    pulls in at runtime.
    """

    name: str
    composes: list[tuple[str, str]] = field(default_factory=list)
    class_name: Optional[str] = None  # fixed only for precompiled blocks

    @property
    def is_scope(self) -> bool:
        return self.name.startswith(SCOPE)


@dataclass
class CompiledStylesheet:
    """Rendered CSS for a block, ready for the optimizer."""

    nodes: list[Node]
    source_content: str = ""  # the text the node line numbers refer to


class Block:
    """A parsed block.

    ``stylesheet`` is the raw rule list of a block authored in source form;
    ``precompiled_stylesheet`` is set instead when the block arrived already
    rendered, in which case its class names are fixed.
    """

    def __init__(
        self,
        identifier: str,
        name: str,
        styles: Optional[dict[str, Style]] = None,
        stylesheet: Optional[list[Node]] = None,
        precompiled_stylesheet: Optional[CompiledStylesheet] = None,
        source_content: str = "",
    ):
        self.identifier = identifier
        self.name = name
        self.styles: dict[str, Style] = styles if styles is not None else {SCOPE: Style(SCOPE)}
        self.stylesheet = stylesheet
        self.precompiled_stylesheet = precompiled_stylesheet
        self.source_content = source_content

        # Filled in by the factory once references are resolved
        self.references: dict[str, "Block"] = {}
        self.base: Optional["Block"] = None

        self._class_name_cache: dict[frozenset[str], dict[str, str]] = {}

    def __repr__(self) -> str:
        return f"Block({self.identifier!r})"

    # -------------------------------------------------------------------------
    # Dependencies
    # -------------------------------------------------------------------------

    def transitive_block_dependencies(self) -> dict[str, "Block"]:
        """Every block this block composes with or inherits from, recursively.

        The block itself is not included. Keys are identifiers; a block
        always comes after the blocks it depends on.
        """
        found: dict[str, Block] = {}

        def visit(block: Block) -> None:
            for dep in block._direct_dependencies():
                if dep.identifier not in found and dep is not self:
                    visit(dep)
                    found[dep.identifier] = dep

        visit(self)
        return found

    def _direct_dependencies(self) -> Iterable["Block"]:
        seen: set[str] = set()
        blocks = list(self.references.values())
        if self.base is not None:
            blocks.insert(0, self.base)
        for block in blocks:
            if block.identifier not in seen:
                seen.add(block.identifier)
                yield block

    # -------------------------------------------------------------------------
    # Styles
    # -------------------------------------------------------------------------

    def lookup(self, style_name: str) -> Optional[tuple["Block", Style]]:
        """Find a style on this block or, failing that, on its base chain."""
        block: Optional[Block] = self
        while block is not None:
            if style_name in block.styles:
                return block, block.styles[style_name]
            block = block.base
        return None

    def implied_styles(self, style_name: str) -> list[tuple["Block", str]]:
        """Styles an element gets implicitly when it uses ``style_name``.

        Composed styles come first, then the same-named style of the base
        block. Only direct implications are returned.
        """
        implied: list[tuple[Block, str]] = []
        style = self.styles.get(style_name)
        if style is not None and style.composes:
            deps = self.transitive_block_dependencies()
            for identifier, target in style.composes:
                implied.append((deps[identifier], target))
        if self.base is not None:
            found = self.base.lookup(style_name)
            if found is not None:
                implied.append((found[0], style_name))
        return implied

    def style_names(self) -> list[str]:
        """Style names in a stable order, ``:scope`` styles first."""
        return sorted(self.styles, key=lambda n: (not n.startswith(SCOPE), n))

    def class_names(self, reserved: Iterable[str] = ()) -> dict[str, str]:
        """Map every style of this block to its class name.

        Precompiled blocks keep the names they were rendered with. Source
        blocks derive names from the block name; if any derived name is
        reserved, the whole block switches to a prefix suffixed with a hash
        of its identifier so the rename is stable between builds.
        """
        key = frozenset(reserved)
        if key in self._class_name_cache:
            return self._class_name_cache[key]

        if self.precompiled_stylesheet is not None:
            names = {n: s.class_name or class_for(self.name, n) for n, s in self.styles.items()}
        else:
            names = {n: class_for(self.name, n) for n in self.styles}
            if key and any(c in key for c in names.values()):
                digest = hashlib.sha256(self.identifier.encode("utf-8")).hexdigest()[:5]
                prefix = f"{self.name}_{digest}"
                names = {n: class_for(prefix, n) for n in self.styles}

        self._class_name_cache[key] = names
        return names

    def class_name(self, style_name: str, reserved: Iterable[str] = ()) -> str:
        return self.class_names(reserved)[style_name]
