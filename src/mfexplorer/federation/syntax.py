"""tree-sitter helpers for static inspection of JavaScript/TypeScript config sources.

Nothing here evaluates code. Values are read only when they are literals, and
identifiers are followed through at most one top-level ``const``/``let``
declaration of the same file.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from mfexplorer.errors import ResolutionAmbiguity

JAVASCRIPT = "javascript"
TYPESCRIPT = "typescript"

_TS_SUFFIXES = {".ts", ".mts", ".cts"}
_TRANSPARENT_TYPES = {
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "type_assertion",
}
_FUNCTION_TYPES = {"arrow_function", "function_expression", "function", "function_declaration"}
IDENTIFIER_TYPES = {"identifier", "shorthand_property_identifier"}
_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])")
# Config factories nest at most: call -> function -> returned object.
_MAX_UNWRAP_DEPTH = 4


@lru_cache(maxsize=None)
def _language(dialect: str) -> Language:
    if dialect == JAVASCRIPT:
        return Language(tree_sitter_javascript.language())
    if dialect == TYPESCRIPT:
        return Language(tree_sitter_typescript.language_typescript())
    raise ValueError(f"Unsupported source dialect: {dialect}")


def dialect_for(path: str | Path) -> str:
    if Path(path).suffix.lower() in _TS_SUFFIXES:
        return TYPESCRIPT
    return JAVASCRIPT


def parse_source(source: str, dialect: str = JAVASCRIPT) -> Tree:
    parser = Parser(_language(dialect))
    return parser.parse(source.encode("utf-8"))


def first_error(node: Node) -> Node | None:
    if not node.has_error:
        return None
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        stack.extend(reversed([child for child in current.children if child.has_error or child.is_missing]))
    return node


def node_text(node: Node) -> str:
    raw = node.text
    if raw is None:
        return ""
    return raw.decode("utf-8", errors="replace")


def walk(node: Node) -> Iterator[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.named_children))


def unwrap(node: Node) -> Node:
    while node.type in _TRANSPARENT_TYPES and node.named_children:
        node = node.named_children[0]
    return node


def _unescape(raw: str) -> str:
    def replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token.startswith("u{"):
            return chr(int(token[2:-1], 16))
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        if token.startswith("x") and len(token) == 3:
            return chr(int(token[1:], 16))
        if token in ("\n", "\r\n", "\u2028", "\u2029"):
            return ""
        return _ESCAPES.get(token, token)

    return _ESCAPE_RE.sub(replace, raw)


def string_value(node: Node | None) -> str | None:
    """Return the value of a string literal or substitution-free template."""
    if node is None:
        return None
    node = unwrap(node)
    if node.type == "string":
        return _unescape(node_text(node)[1:-1])
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.named_children):
            return None
        return _unescape(node_text(node)[1:-1])
    return None


def property_key(node: Node | None) -> str | None:
    if node is None:
        return None
    if node.type in {"property_identifier", "identifier", "shorthand_property_identifier"}:
        return node_text(node)
    if node.type == "number":
        return node_text(node)
    return string_value(node)


def object_entries(node: Node) -> Iterator[tuple[str | None, Node]]:
    """Yield ``(key, value)`` for every property of an object literal.

    Shorthand properties yield the identifier itself as value. Spreads and
    computed keys yield ``None`` keys so callers can report them.
    """
    for child in node.named_children:
        if child.type == "pair":
            key = property_key(child.child_by_field_name("key"))
            value = child.child_by_field_name("value")
            if value is not None:
                yield key, value
        elif child.type == "shorthand_property_identifier":
            yield node_text(child), child
        elif child.type in {"spread_element", "method_definition"}:
            yield None, child


def find_property(node: Node, name: str) -> Node | None:
    for key, value in object_entries(node):
        if key == name:
            return value
    return None


def first_argument(node: Node) -> Node | None:
    arguments = node.child_by_field_name("arguments")
    if arguments is None or not arguments.named_children:
        return None
    return arguments.named_children[0]


def _require_source(node: Node) -> str | None:
    node = unwrap(node)
    if node.type != "call_expression":
        return None
    function = node.child_by_field_name("function")
    if function is None or function.type != "identifier" or node_text(function) != "require":
        return None
    return string_value(first_argument(node))


@dataclass(frozen=True)
class Binding:
    """A local name that refers to (a member of) an imported module.

    ``path`` is the member chain below the module; empty for default,
    namespace and whole-module ``require`` bindings.
    """

    local: str
    source: str
    path: tuple[str, ...] = ()

    @property
    def exported_name(self) -> str | None:
        return self.path[-1] if self.path else None

    @property
    def module_basename(self) -> str:
        tail = self.source.rstrip("/").rsplit("/", 1)[-1]
        return tail.split(".", 1)[0]


class ModuleScope:
    """Top-level bindings and declarations of one parsed module."""

    def __init__(self, root: Node) -> None:
        self.root = root
        self.declarations: dict[str, Node] = {}
        self.bindings: dict[str, Binding] = {}
        for child in root.named_children:
            self._collect(child)

    def _collect(self, node: Node) -> None:
        if node.type == "import_statement":
            self._collect_import(node)
        elif node.type in {"lexical_declaration", "variable_declaration"}:
            self._collect_declaration(node)
        elif node.type == "export_statement":
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                self._collect(declaration)

    def _collect_import(self, node: Node) -> None:
        source = string_value(node.child_by_field_name("source"))
        if source is None:
            return
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for item in clause.named_children:
                if item.type == "identifier":
                    local = node_text(item)
                    self.bindings[local] = Binding(local, source)
                elif item.type == "namespace_import":
                    for name in item.named_children:
                        if name.type == "identifier":
                            local = node_text(name)
                            self.bindings[local] = Binding(local, source)
                elif item.type == "named_imports":
                    for specifier in item.named_children:
                        if specifier.type != "import_specifier":
                            continue
                        imported = property_key(specifier.child_by_field_name("name"))
                        alias = specifier.child_by_field_name("alias")
                        if imported is None:
                            continue
                        local = node_text(alias) if alias is not None else imported
                        self.bindings[local] = Binding(local, source, (imported,))

    def _collect_declaration(self, node: Node) -> None:
        constant = node.type == "lexical_declaration"
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name is None or value is None:
                continue
            value = unwrap(value)
            if name.type == "identifier" and constant:
                self.declarations[node_text(name)] = value

            origin = self.reference(value)
            if origin is None:
                continue
            if name.type == "identifier":
                local = node_text(name)
                self.bindings[local] = Binding(local, origin.source, origin.path)
            elif name.type == "object_pattern":
                self._collect_pattern(name, origin)

    def _collect_pattern(self, pattern: Node, origin: Binding) -> None:
        for item in pattern.named_children:
            key: str | None = None
            local: str | None = None
            if item.type == "shorthand_property_identifier_pattern":
                key = local = node_text(item)
            elif item.type == "pair_pattern":
                key = property_key(item.child_by_field_name("key"))
                target = item.child_by_field_name("value")
                if target is not None and target.type == "identifier":
                    local = node_text(target)
            elif item.type == "object_assignment_pattern":
                left = item.child_by_field_name("left")
                if left is not None:
                    key = local = node_text(left)
            if key and local:
                self.bindings[local] = Binding(local, origin.source, origin.path + (key,))

    def reference(self, node: Node | None) -> Binding | None:
        """Resolve ``node`` to the module member it names, if any."""
        if node is None:
            return None
        node = unwrap(node)
        source = _require_source(node)
        if source is not None:
            return Binding("", source)
        if node.type == "identifier":
            return self.bindings.get(node_text(node))
        if node.type == "member_expression":
            base = self.reference(node.child_by_field_name("object"))
            prop = node.child_by_field_name("property")
            if base is None or prop is None:
                return None
            return Binding(base.local, base.source, base.path + (node_text(prop),))
        return None

    def resolve(
        self,
        node: Node,
        notes: list[ResolutionAmbiguity],
        *,
        subject: str,
        hopped: bool = False,
    ) -> Node | None:
        """Return the literal node behind ``node``, following one identifier hop."""
        node = unwrap(node)
        if node.type not in IDENTIFIER_TYPES:
            return node
        name = node_text(node)
        if hopped:
            notes.append(ResolutionAmbiguity("multi-hop", subject, f"'{name}' needs a second lookup"))
            return None
        value = self.declarations.get(name)
        if value is None:
            notes.append(ResolutionAmbiguity("unresolved", subject, f"'{name}' is not a local const/let"))
            return None
        value = unwrap(value)
        if value.type in IDENTIFIER_TYPES:
            notes.append(
                ResolutionAmbiguity("multi-hop", subject, f"'{name}' refers to '{node_text(value)}'")
            )
            return None
        return value

    def exported_values(self) -> list[Node]:
        """Expressions assigned to ``module.exports`` or ``export default``."""
        values: list[Node] = []
        for child in self.root.named_children:
            if child.type == "export_statement":
                if not any(token.type == "default" for token in child.children):
                    continue
                value = child.child_by_field_name("value") or child.child_by_field_name("declaration")
                if value is not None:
                    values.append(value)
            elif child.type == "expression_statement" and child.named_children:
                expression = unwrap(child.named_children[0])
                if expression.type != "assignment_expression":
                    continue
                left = expression.child_by_field_name("left")
                right = expression.child_by_field_name("right")
                if left is not None and right is not None and _is_module_exports(left):
                    values.append(right)
        return values

    def exported_objects(self, notes: list[ResolutionAmbiguity]) -> list[Node]:
        """Object literals that make up the exported configuration(s)."""
        objects: list[Node] = []
        for value in self.exported_values():
            objects.extend(self._objects_from(value, notes, hopped=False, depth=0))
        return objects

    def _objects_from(
        self,
        node: Node,
        notes: list[ResolutionAmbiguity],
        *,
        hopped: bool,
        depth: int,
    ) -> list[Node]:
        if depth > _MAX_UNWRAP_DEPTH:
            return []
        node = unwrap(node)
        if node.type in IDENTIFIER_TYPES:
            resolved = self.resolve(node, notes, subject="exported config", hopped=hopped)
            if resolved is None:
                return []
            return self._objects_from(resolved, notes, hopped=True, depth=depth + 1)
        if node.type == "object":
            return [node]
        if node.type == "array":
            found: list[Node] = []
            for element in node.named_children:
                found.extend(self._objects_from(element, notes, hopped=hopped, depth=depth + 1))
            return found
        if node.type == "call_expression":
            argument = first_argument(node)
            if argument is None:
                return []
            return self._objects_from(argument, notes, hopped=hopped, depth=depth + 1)
        if node.type in _FUNCTION_TYPES:
            body = node.child_by_field_name("body")
            if body is None:
                return []
            if body.type != "statement_block":
                return self._objects_from(body, notes, hopped=hopped, depth=depth + 1)
            found = []
            for returned in _returned_expressions(body):
                found.extend(self._objects_from(returned, notes, hopped=hopped, depth=depth + 1))
            return found
        return []


def _is_module_exports(node: Node) -> bool:
    node = unwrap(node)
    if node.type != "member_expression":
        return False
    obj = node.child_by_field_name("object")
    prop = node.child_by_field_name("property")
    return (
        obj is not None
        and prop is not None
        and node_text(obj) == "module"
        and node_text(prop) == "exports"
    )


def _returned_expressions(body: Node) -> Iterator[Node]:
    stack = list(reversed(body.named_children))
    while stack:
        current = stack.pop()
        if current.type in _FUNCTION_TYPES or current.type == "class_declaration":
            continue
        if current.type == "return_statement":
            if current.named_children:
                yield current.named_children[0]
            continue
        stack.extend(reversed(current.named_children))
