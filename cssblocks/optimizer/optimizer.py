"""
Cross-source CSS optimizer.

Takes the compiled CSS of every block used by the application plus the
template analyses that describe which classes each template uses, and
produces one stylesheet, a source map, a log of what was done, and the
mapping from original class names to the class names in the output.

Supported rewrites, applied in this order:

1. exact duplicate rules are removed, keeping the last copy;
2. unused rules are dropped (``remove_unused_styles``);
3. class names are shortened (``rewrite_idents.class_``);
4. adjacent rules with identical declarations are merged
   (``merge_declarations``).
"""

from __future__ import annotations

import copy
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from cssblocks.blocks.block import CompiledStylesheet
from cssblocks.build.config import OptimizerOptions
from cssblocks.core.errors import OptimizationError
from cssblocks.css.parser import (
    AtRule,
    CSSSyntaxError,
    Node,
    Rule,
    parse_stylesheet,
    render_nodes,
    replace_classes,
    selector_classes,
    split_selector_list,
)
from cssblocks.css.sourcemap import SourceMapBuilder

logger = logging.getLogger(__name__)

# Action kinds
REMOVE_DUPLICATE = "remove-duplicate"
REMOVE_UNUSED = "remove-unused"
REWRITE_IDENT = "rewrite-ident"
MERGE_DECLARATIONS = "merge-declarations"

# At-rules whose position in the stylesheet is significant
_POSITIONAL_AT_RULES = {"charset", "import", "namespace"}


# =============================================================================
# Inputs
# =============================================================================


@dataclass
class ElementUsage:
    """Classes one template element can carry."""

    tag_name: Optional[str] = None
    static_classes: list[str] = field(default_factory=list)
    dynamic_classes: list[str] = field(default_factory=list)


@dataclass
class OptimizerAnalysis:
    """What the optimizer needs to know about one template."""

    template_identifier: str
    class_names: list[str] = field(default_factory=list)  # every class the template may apply
    elements: dict[str, ElementUsage] = field(default_factory=dict)


@dataclass
class OptimizerSource:
    """One input stylesheet; ``content`` may be parsed nodes or raw CSS text."""

    content: Union[CompiledStylesheet, str]
    filename: str


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class Action:
    """A single rewrite the optimizer applied."""

    kind: str
    message: str
    source: Optional[str] = None
    line: int = 0

    def log_string(self) -> str:
        location = ""
        if self.source:
            location = f"{self.source}:{self.line}: " if self.line else f"{self.source}: "
        return f"[{self.kind}] {location}{self.message}"


@dataclass
class Actions:
    performed: list[Action] = field(default_factory=list)

    def add(self, kind: str, message: str, source: Optional[str] = None, line: int = 0) -> None:
        self.performed.append(Action(kind, message, source, line))

    def log_strings(self) -> list[str]:
        return [action.log_string() for action in self.performed]

    def count(self, kind: str) -> int:
        return sum(1 for action in self.performed if action.kind == kind)


@dataclass
class StyleMapping:
    """Original class name -> class name in the optimized output."""

    rewritten: dict[str, str] = field(default_factory=dict)

    def __contains__(self, class_name: str) -> bool:
        return class_name in self.rewritten

    def output_class(self, class_name: str) -> str:
        return self.rewritten.get(class_name, class_name)

    def to_dict(self) -> dict[str, str]:
        return dict(sorted(self.rewritten.items()))


@dataclass
class OptimizedOutput:
    content: str
    source_map: Optional[str] = None


@dataclass
class OptimizationResult:
    output: OptimizedOutput
    actions: Actions
    style_mapping: StyleMapping


# =============================================================================
# Helpers
# =============================================================================


def generated_ident(index: int) -> str:
    """``0 -> a``, ``25 -> z``, ``26 -> aa``, ``27 -> ab``."""
    name = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        name = chr(ord("a") + remainder) + name
    return name


@dataclass
class _Entry:
    """A top-level output node and the source it came from."""

    source_index: int
    node: Node


def _leaves(nodes: list[Node], context: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], Node]]:
    for node in nodes:
        if isinstance(node, AtRule) and node.children is not None:
            yield from _leaves(node.children, context + (node.prelude,))
        else:
            yield context, node


def _duplicate_key(context: tuple[str, ...], node: Node) -> Optional[tuple]:
    if isinstance(node, Rule):
        return (context, "rule") + node.key()
    if node.raw is not None:
        return (context, "at-rule", node.prelude, node.raw)
    return None


def _prune(nodes: list[Node], drop: set[int]) -> list[Node]:
    kept: list[Node] = []
    for node in nodes:
        if id(node) in drop:
            continue
        if isinstance(node, AtRule) and node.children is not None:
            node.children = _prune(node.children, drop)
            if not node.children:
                continue
        kept.append(node)
    return kept


# =============================================================================
# Optimizer
# =============================================================================


class Optimizer:
    """Merges block stylesheets using template analyses.

    ``analyzer_options`` describes what the analyses can vouch for (see
    ``Analyzer.optimization_options``); rewrites the analyses cannot
    support are rejected.
    """

    def __init__(self, options: OptimizerOptions, analyzer_options: Optional[dict[str, Any]] = None):
        self.options = options
        self.analyzer_options = analyzer_options or {}
        self.analyses: list[OptimizerAnalysis] = []
        self.sources: list[OptimizerSource] = []

    def add_analysis(self, analysis: OptimizerAnalysis) -> None:
        self.analyses.append(analysis)

    def add_source(self, source: OptimizerSource) -> None:
        self.sources.append(source)

    # -------------------------------------------------------------------------
    # Optimize
    # -------------------------------------------------------------------------

    def optimize(self, output_filename: str) -> OptimizationResult:
        """Run every enabled rewrite and render the combined stylesheet.

        Raises:
            OptimizationError: If the options are unsupported or a source
                cannot be parsed.
        """
        self._validate()
        actions = Actions()
        source_map = SourceMapBuilder(file=posixpath.basename(output_filename))
        entries = self._load_sources(source_map)
        logger.debug("Optimizing %d sources with %d analyses", len(self.sources), len(self.analyses))

        rewrite = self.options.enabled and self.options.rewrite_idents.class_
        if self.options.enabled:
            entries = self._remove_duplicates(entries, actions)
            if self.options.remove_unused_styles:
                entries = self._remove_unused(entries, actions)
        mapping = self._build_mapping(entries, rewrite, actions)
        if rewrite:
            self._rewrite_classes(entries, mapping)
        if self.options.enabled and self.options.merge_declarations:
            entries = self._merge_declarations(entries, actions)

        content = self._render(entries, source_map)
        map_name = posixpath.basename(output_filename) + ".map"
        content += f"/*# sourceMappingURL={map_name} */\n"
        return OptimizationResult(
            output=OptimizedOutput(content=content, source_map=source_map.to_json()),
            actions=actions,
            style_mapping=mapping,
        )

    def _validate(self) -> None:
        rewrite = self.options.rewrite_idents
        if not self.options.enabled:
            return
        if rewrite.id:
            raise OptimizationError("Rewriting id idents is not supported")
        if rewrite.tag:
            raise OptimizationError("Rewriting tag idents is not supported")
        supported = self.analyzer_options.get("rewriteIdents", {})
        if rewrite.class_ and supported and not supported.get("class", False):
            raise OptimizationError("The analyses do not support rewriting class idents")
        if self.options.remove_unused_styles and not self.analyses:
            raise OptimizationError("remove_unused_styles requires at least one analysis")

    def _load_sources(self, source_map: SourceMapBuilder) -> list[_Entry]:
        entries: list[_Entry] = []
        for source in self.sources:
            if isinstance(source.content, str):
                try:
                    nodes = parse_stylesheet(source.content, source.filename)
                except CSSSyntaxError as e:
                    raise OptimizationError(f"Cannot parse {source.filename}: {e}") from e
                text = source.content
            else:
                nodes = copy.deepcopy(source.content.nodes)
                text = source.content.source_content
            index = source_map.add_source(source.filename, text or None)
            entries.extend(_Entry(index, node) for node in nodes)
        return entries

    # -------------------------------------------------------------------------
    # Rewrites
    # -------------------------------------------------------------------------

    def _source_name(self, index: int) -> Optional[str]:
        return self.sources[index].filename if 0 <= index < len(self.sources) else None

    def _remove_duplicates(self, entries: list[_Entry], actions: Actions) -> list[_Entry]:
        occurrences: list[tuple[tuple, Node, int]] = []
        for entry in entries:
            for context, node in _leaves([entry.node]):
                if isinstance(node, AtRule) and node.name in _POSITIONAL_AT_RULES:
                    continue
                key = _duplicate_key(context, node)
                if key is not None:
                    occurrences.append((key, node, entry.source_index))

        last: dict[tuple, int] = {}
        for position, (key, _, _) in enumerate(occurrences):
            last[key] = position

        drop: set[int] = set()
        for position, (key, node, source_index) in enumerate(occurrences):
            if last[key] != position:
                drop.add(id(node))
                label = node.selector if isinstance(node, Rule) else node.prelude
                actions.add(
                    REMOVE_DUPLICATE,
                    f"Removed '{label}', a later copy of the same rule takes precedence",
                    self._source_name(source_index),
                    node.line,
                )
        return self._prune_entries(entries, drop)

    def _remove_unused(self, entries: list[_Entry], actions: Actions) -> list[_Entry]:
        used = {name for analysis in self.analyses for name in analysis.class_names}
        used.update(self.options.rewrite_idents.omit_class_names)

        drop: set[int] = set()
        for entry in entries:
            for _, node in _leaves([entry.node]):
                if not isinstance(node, Rule):
                    continue
                selectors = split_selector_list(node.selector)
                live = [s for s in selectors if all(c in used for c in selector_classes(s))]
                if len(live) == len(selectors):
                    continue
                source = self._source_name(entry.source_index)
                if live:
                    dead = [s for s in selectors if s not in live]
                    node.selector = ", ".join(live)
                    actions.add(REMOVE_UNUSED, f"Removed unused selectors {', '.join(dead)}", source, node.line)
                else:
                    drop.add(id(node))
                    actions.add(REMOVE_UNUSED, f"Removed unused rule '{node.selector}'", source, node.line)
        return self._prune_entries(entries, drop)

    def _prune_entries(self, entries: list[_Entry], drop: set[int]) -> list[_Entry]:
        if not drop:
            return entries
        kept: list[_Entry] = []
        for entry in entries:
            nodes = _prune([entry.node], drop)
            if nodes:
                kept.append(entry)
        return kept

    def _build_mapping(self, entries: list[_Entry], rewrite: bool, actions: Actions) -> StyleMapping:
        """Assign output names: CSS classes in first-seen order, then analysis-only classes."""
        ordered: list[str] = []
        seen: set[str] = set()

        def note(name: str) -> None:
            if name not in seen:
                seen.add(name)
                ordered.append(name)

        for entry in entries:
            for _, node in _leaves([entry.node]):
                if isinstance(node, Rule):
                    for name in selector_classes(node.selector):
                        note(name)
        for analysis in self.analyses:
            for name in analysis.class_names:
                note(name)

        if not rewrite:
            return StyleMapping({name: name for name in ordered})

        omitted = set(self.options.rewrite_idents.omit_class_names)
        mapping: dict[str, str] = {}
        counter = 0
        for name in ordered:
            if name in omitted:
                mapping[name] = name
                continue
            ident = generated_ident(counter)
            counter += 1
            while ident in omitted:
                ident = generated_ident(counter)
                counter += 1
            mapping[name] = ident
            actions.add(REWRITE_IDENT, f"Rewrote class .{name} to .{ident}")
        return StyleMapping(mapping)

    def _rewrite_classes(self, entries: list[_Entry], mapping: StyleMapping) -> None:
        for entry in entries:
            for _, node in _leaves([entry.node]):
                if isinstance(node, Rule):
                    node.selector = replace_classes(node.selector, mapping.output_class)

    def _merge_declarations(self, entries: list[_Entry], actions: Actions) -> list[_Entry]:
        merged: list[_Entry] = []
        for entry in entries:
            if isinstance(entry.node, AtRule) and entry.node.children is not None:
                entry.node.children = self._merge_nodes(entry.node.children, entry.source_index, actions)
            previous = merged[-1].node if merged else None
            if self._merge_into(previous, entry.node, entry.source_index, actions):
                continue
            merged.append(entry)
        return merged

    def _merge_nodes(self, nodes: list[Node], source_index: int, actions: Actions) -> list[Node]:
        merged: list[Node] = []
        for node in nodes:
            if isinstance(node, AtRule) and node.children is not None:
                node.children = self._merge_nodes(node.children, source_index, actions)
            if self._merge_into(merged[-1] if merged else None, node, source_index, actions):
                continue
            merged.append(node)
        return merged

    def _merge_into(self, previous: Optional[Node], node: Node, source_index: int, actions: Actions) -> bool:
        if not (isinstance(previous, Rule) and isinstance(node, Rule)):
            return False
        if previous.render_body() != node.render_body():
            return False
        selectors = split_selector_list(previous.selector)
        selectors.extend(s for s in split_selector_list(node.selector) if s not in selectors)
        actions.add(
            MERGE_DECLARATIONS,
            f"Merged '{node.selector}' into '{previous.selector}'",
            self._source_name(source_index),
            node.line,
        )
        previous.selector = ", ".join(selectors)
        return True

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _render(self, entries: list[_Entry], source_map: SourceMapBuilder) -> str:
        lines: list[str] = []
        for entry in entries:
            for line in render_nodes([entry.node]).lines:
                lines.append(line.text)
                source_map.add_line(entry.source_index, line.source_line)
        return "\n".join(lines) + ("\n" if lines else "")
