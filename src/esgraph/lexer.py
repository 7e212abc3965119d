"""Static import extraction for ECMAScript modules.

The source is parsed with tree-sitter (JavaScript with JSX, or TypeScript and
TSX chosen by file suffix) and only the import-bearing nodes are reported, in
source order:

- ``import x from "a"`` and ``import "a"`` as ``static``
- ``export { x } from "a"`` and ``export * from "a"`` as ``export``
- ``import("a")`` as ``dynamic``
- ``import.meta`` as ``meta``

Dynamic imports whose argument is a template literal with substitutions are
reported with their raw text so callers can recognise and skip them. Any other
non-literal argument is not reported at all.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache
from pathlib import PurePath

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from esgraph.errors import LexError
from esgraph.specifiers import IMPORT_META

TYPESCRIPT_SUFFIXES = {".ts", ".mts", ".cts"}
TSX_SUFFIXES = {".tsx"}

ESCAPE_RE = re.compile(r"\\(u\{[0-9A-Fa-f]+\}|u[0-9A-Fa-f]{4}|x[0-9A-Fa-f]{2}|\r\n|[\s\S])")
SINGLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
LINE_CONTINUATIONS = {"\n", "\r", "\r\n", "\u2028", "\u2029"}


@dataclass(frozen=True, slots=True)
class ImportSpecifier:
    specifier: str
    kind: str
    line: int


@lru_cache(maxsize=None)
def _parser(dialect: str) -> Parser:
    if dialect == "typescript":
        return Parser(Language(tree_sitter_typescript.language_typescript()))
    if dialect == "tsx":
        return Parser(Language(tree_sitter_typescript.language_tsx()))
    return Parser(Language(tree_sitter_javascript.language()))


def dialect_for(filename: str) -> str:
    suffix = PurePath(filename).suffix.lower()
    if suffix in TYPESCRIPT_SUFFIXES:
        return "typescript"
    if suffix in TSX_SUFFIXES:
        return "tsx"
    return "javascript"


def _text(node: Node) -> str:
    return node.text.decode("utf-8") if node.text is not None else ""


def _unescape(match: re.Match[str]) -> str:
    escape = match.group(1)
    if escape in LINE_CONTINUATIONS:
        return ""
    if escape.startswith("u{"):
        return chr(int(escape[2:-1], 16))
    if escape.startswith(("u", "x")) and len(escape) > 1:
        return chr(int(escape[1:], 16))
    return SINGLE_ESCAPES.get(escape, escape)


def decode_js_string(body: str) -> str:
    """Decode the escape sequences of a JS string literal body (quotes already removed)."""
    return ESCAPE_RE.sub(_unescape, body)


def _string_value(node: Node) -> str:
    raw = _text(node)
    return decode_js_string(raw[1:-1]) if len(raw) >= 2 else ""


def _source_node(node: Node) -> Node | None:
    source = node.child_by_field_name("source")
    if source is not None:
        return source
    # older grammars keep the source field on a visible from_clause child
    for child in node.children:
        if child.type == "from_clause":
            return child.child_by_field_name("source")
    return None


def _dynamic_specifier(node: Node) -> str | None:
    arguments = node.child_by_field_name("arguments")
    if arguments is None or not arguments.named_children:
        return None
    first = arguments.named_children[0]
    if first.type == "string":
        return _string_value(first)
    if first.type == "template_string":
        if any(child.type == "template_substitution" for child in first.named_children):
            return _text(first)
        return _string_value(first)
    return None


def _first_error_line(node: Node) -> int:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current.start_point[0] + 1
        stack.extend(reversed(current.children))
    return node.start_point[0] + 1


def _walk(root: Node) -> Iterator[ImportSpecifier]:
    stack = [root]
    while stack:
        node = stack.pop()
        line = node.start_point[0] + 1

        if node.type in {"import_statement", "export_statement"}:
            source = _source_node(node)
            if source is not None:
                kind = "static" if node.type == "import_statement" else "export"
                yield ImportSpecifier(specifier=_string_value(source), kind=kind, line=line)
        elif node.type == "call_expression":
            function = node.child_by_field_name("function")
            if function is not None and function.type == "import":
                specifier = _dynamic_specifier(node)
                if specifier is not None:
                    yield ImportSpecifier(specifier=specifier, kind="dynamic", line=line)
        elif node.type == "meta_property" and _text(node) == IMPORT_META:
            yield ImportSpecifier(specifier=IMPORT_META, kind="meta", line=line)

        stack.extend(reversed(node.children))


def lex(source: str, filename: str = "") -> Iterator[ImportSpecifier]:
    """Parse ``source`` and lazily yield its import specifiers in source order.

    ``filename`` picks the grammar: ``.ts``/``.mts``/``.cts`` use TypeScript,
    ``.tsx`` uses TSX and everything else uses JavaScript with JSX.
    """
    tree = _parser(dialect_for(filename)).parse(source.encode("utf-8"))
    if tree.root_node.has_error:
        raise LexError(f"source is not a lexable module (syntax error near line {_first_error_line(tree.root_node)})")
    return _walk(tree.root_node)
