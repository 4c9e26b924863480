"""
Block source parsing.

Turns the text of a block file into an unresolved ``BlockDefinition``.
Two forms are understood:

- block sources (``*.block.css``)::

      @block base from "./base.block.css";
      :scope { block-name: nav; extends: base; }
      .item { composes: "base.item"; color: red; }
      .item[active] { color: blue; }

- precompiled fragments (``*.compiledblock.css``): rendered CSS preceded by
  a ``/*#blockDefinition {...}*/`` comment holding the block's name,
  references, styles and their fixed class names.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Optional

from cssblocks.blocks.block import SCOPE, CompiledStylesheet, Style, parse_style_name
from cssblocks.css.parser import AtRule, Node, Rule, iter_rules, parse_stylesheet, split_selector_list


class BlockSyntaxError(ValueError):
    """Raised when block source is structurally invalid."""
    pass


DEFINITION_PATTERN = re.compile(r"\A\s*/\*#blockDefinition\s+(\{.*?\})\s*\*/", re.DOTALL)

# Declarations that describe the block rather than style an element
META_PROPERTIES = {"block-name", "extends", "composes"}

_REFERENCE = re.compile(r"""^([\w-]+)\s+from\s+(["'])(.+)\2$""")
STYLE_TOKEN = re.compile(
    r"""(:scope|\.[_a-zA-Z][\w-]*)((?:\[[\w-]+(?:=(?:"[^"]*"|'[^']*'|[\w-]+))?\])*)"""
)
_STATE_TOKEN = re.compile(r"""\[([\w-]+)(?:=(?:"([^"]*)"|'([^']*)'|([\w-]+)))?\]""")
_BLOCK_NAME = re.compile(r"^[a-zA-Z][\w-]*$")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class BlockDefinition:
    """A block as written, before its references are resolved.

    ``references`` maps local names to import paths as written;
    ``composes`` maps a style name to ``(local name, style name)`` targets.
    """

    identifier: str
    name: str
    references: dict[str, str] = field(default_factory=dict)
    extends: Optional[str] = None
    styles: dict[str, Style] = field(default_factory=dict)
    composes: dict[str, list[tuple[str, str]]] = field(default_factory=dict)
    stylesheet: Optional[list[Node]] = None
    precompiled: Optional[CompiledStylesheet] = None
    source_content: str = ""


# =============================================================================
# Helpers
# =============================================================================


def default_block_name(identifier: str) -> str:
    """``app/styles/nav-bar.block.css`` -> ``nav-bar``."""
    filename = identifier.rsplit("/", 1)[-1]
    name = filename.split(".", 1)[0]
    name = re.sub(r"[^\w-]", "-", name)
    if not name or not name[0].isalpha():
        name = f"block-{name}"
    return name


def token_styles(token: re.Match[str]) -> list[str]:
    """Canonical style names targeted by one selector token.

    ``.item`` targets ``[".item"]``; ``.item[a][size="lg"]`` targets
    ``[".item[a]", ".item[size=lg]"]``, each state being its own style.
    """
    base, states = token.group(1), token.group(2)
    if not states:
        return [base]
    names = []
    for match in _STATE_TOKEN.finditer(states):
        value = next((g for g in match.groups()[1:] if g is not None), None)
        name = f"{base}[{match.group(1)}]" if value is None else f"{base}[{match.group(1)}={value}]"
        parse_style_name(name)
        names.append(name)
    return names


def style_tokens(selector: str) -> list[re.Match[str]]:
    """Return the block style references in one complex selector."""
    return list(STYLE_TOKEN.finditer(selector))


def parse_composes(value: str) -> list[tuple[str, str]]:
    """Parse ``"base.item", other`` into ``[("base", ".item"), ("other", ":scope")]``."""
    targets: list[tuple[str, str]] = []
    for item in value.split(","):
        item = item.strip().strip("\"'")
        if not item:
            continue
        if "." in item:
            local, style = item.split(".", 1)
            style = "." + style
        else:
            local, style = item, SCOPE
        if not local:
            raise BlockSyntaxError(f"composes target '{item}' has no block name")
        parse_style_name(style)
        targets.append((local, style))
    return targets


def _strip_meta(nodes: list[Node]) -> list[Node]:
    """Remove meta declarations, then drop rules and at-rules left empty."""
    result: list[Node] = []
    for node in nodes:
        if isinstance(node, Rule):
            node.declarations = [d for d in node.declarations if d.prop not in META_PROPERTIES]
            if node.declarations:
                result.append(node)
        elif isinstance(node, AtRule) and node.children is not None:
            node.children = _strip_meta(node.children)
            if node.children:
                result.append(node)
        else:
            result.append(node)
    return result


# =============================================================================
# Parsing Functions
# =============================================================================


def parse_block_source(identifier: str, contents: str) -> BlockDefinition:
    """Parse a ``*.block.css`` source.

    Raises:
        BlockSyntaxError: On invalid references, selectors or meta declarations.
        CSSSyntaxError: If the CSS itself cannot be parsed.
    """
    nodes = parse_stylesheet(contents, identifier)
    definition = BlockDefinition(
        identifier=identifier,
        name=default_block_name(identifier),
        styles={SCOPE: Style(SCOPE)},
        source_content=contents,
    )

    body: list[Node] = []
    for node in nodes:
        if isinstance(node, AtRule) and node.name == "block":
            match = _REFERENCE.match(node.params)
            if not match:
                raise BlockSyntaxError(f"{identifier}:{node.line}: invalid @block reference '{node.params}'")
            local, path = match.group(1), match.group(3)
            if local in definition.references:
                raise BlockSyntaxError(f"{identifier}:{node.line}: duplicate block reference '{local}'")
            definition.references[local] = path
            continue
        body.append(node)

    for rule in iter_rules(body):
        _register_rule(definition, rule)

    definition.stylesheet = _strip_meta(body)
    return definition


def _register_rule(definition: BlockDefinition, rule: Rule) -> None:
    selectors = split_selector_list(rule.selector)
    rule_styles: list[str] = []
    for selector in selectors:
        tokens = style_tokens(selector)
        if not tokens:
            raise BlockSyntaxError(
                f"{definition.identifier}:{rule.line}: selector '{selector}' does not target a block style"
            )
        for token in tokens:
            definition.styles.setdefault(token.group(1), Style(token.group(1)))
            for name in token_styles(token):
                definition.styles.setdefault(name, Style(name))
                rule_styles.append(name)

    # A rule with a single selector made of a single style can carry meta declarations
    single_style: Optional[str] = None
    if len(selectors) == 1:
        tokens = style_tokens(selectors[0])
        if len(tokens) == 1 and len(rule_styles) == 1 and tokens[0].group(0) == selectors[0].strip():
            single_style = rule_styles[0]

    for decl in rule.declarations:
        if decl.prop not in META_PROPERTIES:
            continue
        where = f"{definition.identifier}:{rule.line}"
        if single_style is None:
            raise BlockSyntaxError(f"{where}: '{decl.prop}' must be declared in a rule for a single style")
        if decl.prop == "block-name":
            if single_style != SCOPE:
                raise BlockSyntaxError(f"{where}: block-name is only allowed in :scope")
            name = decl.value.strip("\"'")
            if not _BLOCK_NAME.match(name):
                raise BlockSyntaxError(f"{where}: invalid block-name '{name}'")
            definition.name = name
        elif decl.prop == "extends":
            if single_style != SCOPE:
                raise BlockSyntaxError(f"{where}: extends is only allowed in :scope")
            definition.extends = decl.value.strip("\"'")
        else:
            targets = parse_composes(decl.value)
            definition.composes.setdefault(single_style, []).extend(targets)


def parse_precompiled(identifier: str, contents: str) -> BlockDefinition:
    """Parse a ``*.compiledblock.css`` fragment.

    Raises:
        BlockSyntaxError: If the definition header is missing or invalid.
        CSSSyntaxError: If the rendered CSS cannot be parsed.
    """
    match = DEFINITION_PATTERN.match(contents)
    if not match:
        raise BlockSyntaxError(f"{identifier}: missing /*#blockDefinition */ header")
    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise BlockSyntaxError(f"{identifier}: invalid block definition: {e}") from e
    if not isinstance(data, dict):
        raise BlockSyntaxError(f"{identifier}: block definition must be an object")

    name = data.get("name") or default_block_name(identifier)
    if not isinstance(name, str) or not _BLOCK_NAME.match(name):
        raise BlockSyntaxError(f"{identifier}: invalid block name '{name}'")

    raw_styles = data.get("styles") or {}
    raw_composes = data.get("composes") or {}
    raw_references = data.get("references") or {}
    if not all(isinstance(v, dict) for v in (raw_styles, raw_composes, raw_references)):
        raise BlockSyntaxError(f"{identifier}: styles, composes and references must be objects")
    if not all(isinstance(p, str) for p in raw_references.values()):
        raise BlockSyntaxError(f"{identifier}: reference paths must be strings")
    if not isinstance(data.get("extends"), (str, type(None))):
        raise BlockSyntaxError(f"{identifier}: extends must name a block reference")

    styles: dict[str, Style] = {}
    for style_name, class_name in raw_styles.items():
        parse_style_name(style_name)
        if not isinstance(class_name, str) or not class_name:
            raise BlockSyntaxError(f"{identifier}: style '{style_name}' needs a class name")
        styles[style_name] = Style(style_name, class_name=class_name)
    if SCOPE not in styles:
        raise BlockSyntaxError(f"{identifier}: block definition has no :scope style")

    composes: dict[str, list[tuple[str, str]]] = {}
    for style_name, targets in raw_composes.items():
        if style_name not in styles:
            raise BlockSyntaxError(f"{identifier}: composes for unknown style '{style_name}'")
        if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
            raise BlockSyntaxError(f"{identifier}: composes for '{style_name}' must be a list of strings")
        composes[style_name] = parse_composes(", ".join(targets))

    nodes = parse_stylesheet(contents, identifier)
    return BlockDefinition(
        identifier=identifier,
        name=name,
        references=dict(raw_references),
        extends=data.get("extends"),
        styles=styles,
        composes=composes,
        precompiled=CompiledStylesheet(nodes=nodes, source_content=contents),
        source_content=contents,
    )
