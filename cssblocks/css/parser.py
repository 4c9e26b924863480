"""
CSS parsing utilities for block compilation and optimization.

Parses stylesheets into a flat tree of rules and at-rules, keeping the
source line of every node so output can be mapped back to its input.
This is a deliberately small parser: it understands nested conditional
at-rules (@media, @supports, ...), keeps other block at-rules such as
@keyframes as raw text, and does not validate property values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Union


class CSSSyntaxError(ValueError):
    """Raised when a stylesheet cannot be split into rules."""

    def __init__(self, message: str, filename: str = "<input>", line: int = 0):
        self.filename = filename
        self.line = line
        super().__init__(f"{filename}:{line}: {message}")


# =============================================================================
# Data Structures
# =============================================================================

# At-rules whose body is a list of rules rather than declarations
NESTED_AT_RULES = {"media", "supports", "document", "layer", "container"}


@dataclass
class Declaration:
    """A single ``property: value`` pair."""

    prop: str
    value: str

    def render(self) -> str:
        return f"{self.prop}: {self.value};"


@dataclass
class Rule:
    """A style rule: ``selector { declarations }``."""

    selector: str
    declarations: list[Declaration]
    line: int = 0

    def render_body(self) -> str:
        return " ".join(d.render() for d in self.declarations)

    def key(self) -> tuple[str, str]:
        """Identity used to detect exact duplicates."""
        return (normalize_selector(self.selector), self.render_body())


@dataclass
class AtRule:
    """An at-rule.

    Statement at-rules (``@import url(x);``) have neither children nor a
    body. Conditional at-rules carry ``children``; anything else with a
    block keeps its body verbatim in ``raw``.
    """

    name: str
    params: str
    line: int = 0
    children: Optional[list["Node"]] = None
    raw: Optional[str] = None

    @property
    def prelude(self) -> str:
        return f"@{self.name} {self.params}".strip()


Node = Union[Rule, AtRule]


# =============================================================================
# Parsing Functions
# =============================================================================


def _blank_comments(content: str) -> str:
    """Replace comments with whitespace, preserving line numbers."""
    return re.sub(
        r"/\*.*?\*/",
        lambda m: re.sub(r"[^\n]", " ", m.group(0)),
        content,
        flags=re.DOTALL,
    )


def _line_at(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def _first_content_pos(text: str, start: int, end: int) -> int:
    pos = start
    while pos < end and text[pos].isspace():
        pos += 1
    return pos


def parse_stylesheet(content: str, filename: str = "<input>") -> list[Node]:
    """Parse CSS content into a list of rules and at-rules.

    Raises:
        CSSSyntaxError: If braces are unbalanced or a declaration appears
            outside of a rule.
    """
    text = _blank_comments(content)
    nodes, _ = _parse_block(text, 0, filename, top=True)
    return nodes


def _split_at_prelude(prelude: str) -> tuple[str, str]:
    match = re.match(r"@([\w-]+)\s*(.*)", prelude, re.DOTALL)
    if not match:
        return prelude[1:], ""
    return match.group(1).lower(), " ".join(match.group(2).split())


def _find_block_end(text: str, start: int, filename: str) -> int:
    """Return the index of the ``}`` closing the block opened before ``start``."""
    depth = 1
    quote: Optional[str] = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise CSSSyntaxError("Unclosed block", filename, _line_at(text, start))


def _parse_block(text: str, pos: int, filename: str, top: bool) -> tuple[list[Node], int]:
    nodes: list[Node] = []
    start = pos
    quote: Optional[str] = None
    paren = 0
    i = pos

    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "(":
            paren += 1
        elif ch == ")":
            paren = max(paren - 1, 0)
        elif paren == 0 and ch == ";":
            prelude = text[start:i].strip()
            line = _line_at(text, _first_content_pos(text, start, i))
            if prelude.startswith("@"):
                name, params = _split_at_prelude(prelude)
                nodes.append(AtRule(name=name, params=params, line=line))
            elif prelude:
                raise CSSSyntaxError(f"Unexpected declaration '{prelude}'", filename, line)
            start = i + 1
        elif paren == 0 and ch == "{":
            prelude = " ".join(text[start:i].split())
            line = _line_at(text, _first_content_pos(text, start, i))
            if not prelude:
                raise CSSSyntaxError("Block without selector", filename, line)
            if prelude.startswith("@"):
                name, params = _split_at_prelude(prelude)
                if name in NESTED_AT_RULES:
                    children, i = _parse_block(text, i + 1, filename, top=False)
                    nodes.append(AtRule(name=name, params=params, line=line, children=children))
                else:
                    end = _find_block_end(text, i + 1, filename)
                    raw = " ".join(text[i + 1:end].split())
                    nodes.append(AtRule(name=name, params=params, line=line, raw=raw))
                    i = end
            else:
                end = _find_block_end(text, i + 1, filename)
                body = text[i + 1:end]
                if "{" in body:
                    raise CSSSyntaxError(f"Nested rule inside '{prelude}'", filename, line)
                nodes.append(Rule(selector=prelude, declarations=parse_declarations(body), line=line))
                i = end
            start = i + 1
        elif ch == "}":
            if top:
                raise CSSSyntaxError("Unexpected '}'", filename, _line_at(text, i))
            leftover = text[start:i].strip()
            if leftover:
                raise CSSSyntaxError(f"Unexpected '{leftover}'", filename, _line_at(text, start))
            return nodes, i
        i += 1

    if not top:
        raise CSSSyntaxError("Unclosed block", filename, _line_at(text, pos))
    leftover = text[start:].strip()
    if leftover.startswith("@"):
        name, params = _split_at_prelude(leftover)
        nodes.append(AtRule(name=name, params=params, line=_line_at(text, _first_content_pos(text, start, len(text)))))
    elif leftover:
        raise CSSSyntaxError(f"Unexpected '{leftover}'", filename, _line_at(text, start))
    return nodes, i


def parse_declarations(block: str) -> list[Declaration]:
    """Parse the content between ``{`` and ``}`` into declarations.

    Semicolons inside strings and parentheses do not end a declaration,
    and only the first colon separates the property from its value.
    """
    declarations: list[Declaration] = []
    parts: list[str] = []
    quote: Optional[str] = None
    paren = 0
    current: list[str] = []

    for ch in block:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "(":
            paren += 1
        elif ch == ")":
            paren = max(paren - 1, 0)
        elif ch == ";" and paren == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))

    for decl in parts:
        decl = decl.strip()
        if not decl or ":" not in decl:
            continue
        colon_pos = decl.index(":")
        prop_name = decl[:colon_pos].strip()
        prop_value = " ".join(decl[colon_pos + 1:].split())
        if prop_name and prop_value:
            if not prop_name.startswith("--"):
                prop_name = prop_name.lower()
            declarations.append(Declaration(prop=prop_name, value=prop_value))

    return declarations


# =============================================================================
# Selectors
# =============================================================================

_CLASS_PATTERN = re.compile(r"\.(-?[_a-zA-Z][\w-]*)")


def normalize_selector(selector: str) -> str:
    """Collapse whitespace so equivalent selectors compare equal."""
    parts = [" ".join(p.split()) for p in split_selector_list(selector)]
    return ", ".join(parts)


def split_selector_list(selector: str) -> list[str]:
    """Split a selector list on top-level commas."""
    parts: list[str] = []
    depth = 0
    quote: Optional[str] = None
    current: list[str] = []
    for ch in selector:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def replace_classes(selector: str, replace: Callable[[str], str]) -> str:
    """Rewrite every class name in ``selector`` through ``replace``.

    Attribute selectors and quoted strings are left untouched.
    """
    out: list[str] = []
    i = 0
    while i < len(selector):
        ch = selector[i]
        if ch == "[":
            end = selector.find("]", i)
            end = len(selector) if end == -1 else end + 1
            out.append(selector[i:end])
            i = end
            continue
        if ch in "\"'":
            end = selector.find(ch, i + 1)
            end = len(selector) if end == -1 else end + 1
            out.append(selector[i:end])
            i = end
            continue
        if ch == ".":
            match = _CLASS_PATTERN.match(selector, i)
            if match:
                out.append("." + replace(match.group(1)))
                i = match.end()
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def selector_classes(selector: str) -> list[str]:
    """Return class names referenced by a selector, in order of appearance."""
    found: list[str] = []

    def collect(name: str) -> str:
        if name not in found:
            found.append(name)
        return name

    replace_classes(selector, collect)
    return found


def iter_rules(nodes: list[Node]):
    """Yield every Rule in ``nodes``, descending into conditional at-rules."""
    for node in nodes:
        if isinstance(node, Rule):
            yield node
        elif node.children is not None:
            yield from iter_rules(node.children)


# =============================================================================
# Rendering
# =============================================================================


@dataclass
class RenderedLine:
    """An output line and the source line it came from (0 when generated)."""

    text: str
    source_line: int = 0


@dataclass
class Rendered:
    lines: list[RenderedLine] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines) + ("\n" if self.lines else "")


def render_nodes(nodes: list[Node], indent: str = "") -> Rendered:
    """Render nodes back to CSS, one declaration per line."""
    rendered = Rendered()
    _render_into(rendered, nodes, indent)
    return rendered


def _render_into(rendered: Rendered, nodes: list[Node], indent: str) -> None:
    for node in nodes:
        if isinstance(node, Rule):
            rendered.lines.append(RenderedLine(f"{indent}{node.selector} {{", node.line))
            for decl in node.declarations:
                rendered.lines.append(RenderedLine(f"{indent}  {decl.render()}", node.line))
            rendered.lines.append(RenderedLine(f"{indent}}}", node.line))
        elif node.children is not None:
            rendered.lines.append(RenderedLine(f"{indent}{node.prelude} {{", node.line))
            _render_into(rendered, node.children, indent + "  ")
            rendered.lines.append(RenderedLine(f"{indent}}}", node.line))
        elif node.raw is not None:
            rendered.lines.append(RenderedLine(f"{indent}{node.prelude} {{ {node.raw} }}", node.line))
        else:
            rendered.lines.append(RenderedLine(f"{indent}{node.prelude};", node.line))


def render_css(nodes: list[Node]) -> str:
    """Render nodes to a CSS string."""
    return render_nodes(nodes).text
