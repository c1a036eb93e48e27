"""Language adapter: parse sources with tree-sitter and extract normalized test units."""

from __future__ import annotations

import inspect
import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tree_sitter import Parser

from goldtest.adapters.languages import get_lang_config

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from tree_sitter import Node as TSNode
    from tree_sitter import Tree

    from goldtest.adapters.languages import LangConfig
    from goldtest.infrastructure.config import LanguagePatterns

# Regex for goldtest annotations in comments.
_ANNOTATION_RE = re.compile(r"goldtest:(.+)")
_KV_RE = re.compile(r"(\w+)=(\S+)")
_STRING_LITERAL_RE = re.compile(r"^[rRbBuUfF]{0,2}(\"\"\"|'''|\"|'|`)(.*)\1$", re.DOTALL)
_ARGS_RE = re.compile(r"\([^()]*\)")
_WS_RE = re.compile(r"\s+")

_IDENTIFIER_TYPES = frozenset(
    {"identifier", "shorthand_property_identifier_pattern", "field_identifier"}
)
_ATTRIBUTE_TYPES = frozenset({"attribute", "member_expression", "selector_expression"})


class ParseError(Exception):
    """Raised when a source file cannot be parsed into a usable syntax tree."""

    def __init__(self, message: str, line: int = 1) -> None:
        super().__init__(message)
        self.line = line


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallInfo:
    """A call site found in a statement."""

    target: str  # callee with argument lists collapsed, e.g. "expect().toBe"
    line: int
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class Statement:
    """One normalized statement of a test body."""

    line: int
    end_line: int
    kind: str  # assert | compound | binding | expression
    text: str
    calls: tuple[CallInfo, ...] = ()
    bound_names: tuple[str, ...] = ()
    guard: str = ""  # header of the enclosing compound statement(s)


@dataclass(frozen=True)
class Import:
    """One imported name: ``local`` refers to ``module`` (slash-separated path)."""

    local: str
    module: str
    line: int


@dataclass(frozen=True)
class TestUnit:
    """A function, method or callback recognized as a test."""

    __test__ = False  # keep pytest from collecting this class

    name: str
    qualified_name: str
    file_path: str
    language: str
    line_start: int
    line_end: int
    tags: frozenset[str] = frozenset()
    docstring: str | None = None
    docstring_line: int | None = None
    parameters: tuple[str, ...] = ()
    decorator_calls: tuple[CallInfo, ...] = ()
    statements: tuple[Statement, ...] = ()


@dataclass
class SourceFile:
    """A parsed source file; ``tree`` is dropped once facts are extracted."""

    path: str
    language: str
    text: str
    tree: Tree | None
    lang: LangConfig
    imports: tuple[Import, ...] = ()
    suite_tags: frozenset[str] = frozenset()
    suite_docstring: str | None = None
    extension: str = field(default="")

    def release(self) -> None:
        self.tree = None


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def _text(node: TSNode | None) -> str:
    if node is None or not node.text:
        return ""
    return node.text.decode("utf-8", errors="replace")


def parse_annotations(line: str) -> dict[str, str]:
    """Parse a goldtest annotation from a comment line.

    Format: ``goldtest:<key>=<value>[ <key>=<value>]*``; ``tags`` applies to
    the next test, ``suite_tags`` to the whole file.
    """
    match = _ANNOTATION_RE.search(line)
    if not match:
        return {}
    return dict(_KV_RE.findall(match.group(1)))


def _split_tags(value: str | None) -> set[str]:
    if not value:
        return set()
    return {tag.strip() for tag in value.split(",") if tag.strip()}


def string_value(text: str) -> str | None:
    """Return the contents of a string literal, or ``None`` if *text* is not one."""
    match = _STRING_LITERAL_RE.match(text.strip())
    if match is None:
        return None
    return match.group(2)


def collapse_call_target(text: str) -> str:
    """Normalize a callee expression: drop whitespace, empty every argument list."""
    collapsed = _WS_RE.sub("", text)
    previous = None
    while previous != collapsed:
        previous = collapsed
        collapsed = _ARGS_RE.sub("\x00", collapsed)
    return collapsed.replace("\x00", "()")


def _first_error_line(node: TSNode) -> int:
    """1-based line of the first ERROR or MISSING node below *node*."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current.start_point.row + 1
        stack.extend(reversed(current.children))
    return node.start_point.row + 1


def _comment_text(raw: str) -> str:
    """Strip comment markers from a ``//``, ``/* */`` or ``#`` comment."""
    text = raw.strip()
    if text.startswith("/*"):
        text = text[3:] if text.startswith("/**") else text[2:]
        text = text.removesuffix("*/")
        lines = [line.strip().removeprefix("*").rstrip() for line in text.splitlines()]
        return "\n".join(line[1:] if line.startswith(" ") else line for line in lines)
    for marker in ("//", "#"):
        if text.startswith(marker):
            text = text[len(marker) :]
            return text[1:] if text.startswith(" ") else text
    return text


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse(text: str, path: str) -> SourceFile:
    """Parse *text* (the contents of repo-relative *path*) into a :class:`SourceFile`.

    Deterministic and side-effect free.  Raises :class:`ParseError` when the
    grammar reports a syntax error; raises ``LookupError`` for extensions with
    no available grammar.
    """
    extension = posixpath.splitext(path)[1]
    lang = get_lang_config(extension)
    if lang is None:
        msg = f"no grammar available for '{extension}' files"
        raise LookupError(msg)

    tree = Parser(lang.language).parse(text.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        line = _first_error_line(root)
        msg = f"syntax error near line {line}"
        raise ParseError(msg, line=line)

    source = SourceFile(
        path=path,
        language=lang.name,
        text=text,
        tree=tree,
        lang=lang,
        extension=extension,
    )
    source.imports = tuple(_IMPORT_EXTRACTORS[lang.name](root, path))
    source.suite_tags = frozenset(_suite_tags(root, lang))
    source.suite_docstring = _module_docstring(root, lang)
    return source


def read_source(file_path: Path, rel_path: str) -> SourceFile:
    """Read and parse a file; undecodable bytes are a :class:`ParseError`."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        msg = f"file is not valid UTF-8: {exc.reason}"
        raise ParseError(msg) from exc
    return parse(text, rel_path)


def _suite_tags(root: TSNode, lang: LangConfig) -> set[str]:
    tags: set[str] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in lang.comment_types:
            tags |= _split_tags(parse_annotations(_text(node)).get("suite_tags"))
            continue
        stack.extend(node.children)
    return tags


def _module_docstring(root: TSNode, lang: LangConfig) -> str | None:
    for child in root.named_children:
        if child.type in lang.comment_types:
            continue
        return _docstring_of_statement(child, lang)
    return None


def _docstring_of_statement(node: TSNode, lang: LangConfig) -> str | None:
    if node.type != "expression_statement" or not node.named_children:
        return None
    expr = node.named_children[0]
    if expr.type not in lang.string_types:
        return None
    value = string_value(_text(expr))
    return inspect.cleandoc(value) if value is not None else None


# ---------------------------------------------------------------------------
# Statement normalization
# ---------------------------------------------------------------------------


def _bound_names(lhs: TSNode) -> list[str]:
    if lhs.type in _IDENTIFIER_TYPES:
        name = _text(lhs)
        return [name] if name and name != "_" else []
    if lhs.type in _ATTRIBUTE_TYPES:
        return [_WS_RE.sub("", _text(lhs))]
    names: list[str] = []
    for child in lhs.named_children:
        names.extend(_bound_names(child))
    return names


def _call_info(node: TSNode, lang: LangConfig) -> CallInfo:
    func = node.child_by_field_name("function") or node.child_by_field_name("constructor")
    target = collapse_call_target(_text(func)) if func is not None else ""
    args_node = node.child_by_field_name("arguments")
    args: tuple[str, ...] = ()
    if args_node is not None:
        args = tuple(
            _text(arg) for arg in args_node.named_children if arg.type not in lang.comment_types
        )
    return CallInfo(target=target, line=node.start_point.row + 1, args=args)


def _collect(
    node: TSNode,
    lang: LangConfig,
    calls: list[CallInfo],
    bound: list[str],
) -> None:
    """Gather calls and bindings anywhere below *node*, closures included."""
    if node.type in lang.call_types:
        calls.append(_call_info(node, lang))
    lhs_field = lang.binding_fields.get(node.type)
    if lhs_field is not None:
        lhs = node.child_by_field_name(lhs_field)
        if lhs is not None:
            bound.extend(_bound_names(lhs))
    for child in node.children:
        _collect(child, lang, calls, bound)


def _statement_kind(node: TSNode, lang: LangConfig, bound: list[str]) -> str:
    if node.type in lang.assert_types:
        return "assert"
    if node.type in lang.compound_types:
        return "compound"
    if bound:
        return "binding"
    return "expression"


def _normalize(node: TSNode, lang: LangConfig, guard: str) -> list[Statement]:
    if node.type in lang.comment_types:
        return []
    if node.type in lang.block_types:
        return normalize_block(node, lang, guard)

    if node.type not in lang.compound_types:
        calls: list[CallInfo] = []
        bound: list[str] = []
        _collect(node, lang, calls, bound)
        return [
            Statement(
                line=node.start_point.row + 1,
                end_line=node.end_point.row + 1,
                kind=_statement_kind(node, lang, bound),
                text=_text(node),
                calls=tuple(calls),
                bound_names=tuple(bound),
                guard=guard,
            )
        ]

    # Compound statement: header first, then its nested blocks and clauses.
    nested_types = lang.block_types | lang.compound_types
    nested = [c for c in node.children if c.type in nested_types]
    calls = []
    bound = []
    lhs_field = lang.binding_fields.get(node.type)
    if lhs_field is not None:
        lhs = node.child_by_field_name(lhs_field)
        if lhs is not None:
            bound.extend(_bound_names(lhs))
    for child in node.children:
        if child.type in nested_types:
            continue
        _collect(child, lang, calls, bound)

    raw = node.text or b""
    header_end = (nested[0].start_byte - node.start_byte) if nested else len(raw)
    header = raw[:header_end].decode("utf-8", errors="replace").strip()

    statements: list[Statement] = []
    if calls or bound:
        statements.append(
            Statement(
                line=node.start_point.row + 1,
                end_line=node.start_point.row + 1 + header.count("\n"),
                kind="compound",
                text=header,
                calls=tuple(calls),
                bound_names=tuple(bound),
                guard=guard,
            )
        )
    inner_guard = f"{guard} {header}".strip() if header else guard
    for child in nested:
        statements.extend(_normalize(child, lang, inner_guard))
    return statements


def normalize_block(block: TSNode, lang: LangConfig, guard: str = "") -> list[Statement]:
    """Flatten a block into normalized statements, descending into compound bodies."""
    statements: list[Statement] = []
    for child in block.named_children:
        statements.extend(_normalize(child, lang, guard))
    return statements


# ---------------------------------------------------------------------------
# Test unit discovery
# ---------------------------------------------------------------------------


def _leading_comments(siblings: list[TSNode], index: int, lang: LangConfig) -> list[TSNode]:
    """Contiguous comment nodes directly above ``siblings[index]``."""
    comments: list[TSNode] = []
    next_row = siblings[index].start_point.row
    pos = index - 1
    while pos >= 0:
        candidate = siblings[pos]
        if candidate.type not in lang.comment_types or candidate.end_point.row < next_row - 1:
            break
        comments.append(candidate)
        next_row = candidate.start_point.row
        pos -= 1
    comments.reverse()
    return comments


def _comment_docstring(comments: list[TSNode]) -> tuple[str | None, int | None]:
    lines: list[str] = []
    for comment in comments:
        body = _comment_text(_text(comment))
        lines.extend(line for line in body.splitlines() if "goldtest:" not in line)
    text = inspect.cleandoc("\n".join(lines)) if lines else ""
    if not text:
        return None, None
    return text, comments[0].start_point.row + 1


def _parameters(func: TSNode) -> tuple[str, ...]:
    params = func.child_by_field_name("parameters")
    if params is None:
        return ()
    names: list[str] = []
    for param in params.named_children:
        name_node = param.child_by_field_name("name")
        if name_node is None and param.type in _IDENTIFIER_TYPES:
            name_node = param
        if name_node is None:
            found = [c for c in param.named_children if c.type in _IDENTIFIER_TYPES]
            name_node = found[0] if found else None
        name = _text(name_node)
        if name and name not in ("self", "cls"):
            names.append(name)
    return tuple(names)


@dataclass
class _Scope:
    """Discovery state shared while walking one file."""

    source: SourceFile
    lang: LangConfig
    patterns: LanguagePatterns
    units: list[TestUnit] = field(default_factory=list)


def _markers(decorators: list[TSNode], patterns: LanguagePatterns) -> set[str]:
    tags: set[str] = set()
    for decorator in decorators:
        expr = collapse_call_target(_text(decorator).lstrip("@"))
        match = patterns.marker_pattern.search(expr)
        if match is not None and match.groups():
            tags.add(match.group(1))
    return tags


def _unwrap(node: TSNode, lang: LangConfig) -> tuple[TSNode | None, list[TSNode]]:
    """Return the definition inside a wrapper plus the wrapper's decorators."""
    if node.type not in lang.wrapper_types:
        return node, []
    decorators = [c for c in node.named_children if c.type == "decorator"]
    definition = node.child_by_field_name("definition") or node.child_by_field_name(
        "declaration"
    )
    return definition, decorators


def _named_test(
    scope: _Scope,
    node: TSNode,
    definition: TSNode,
    decorators: list[TSNode],
    prefix: str,
    tags: set[str],
    comments: list[TSNode],
) -> TestUnit:
    lang = scope.lang
    name = _text(definition.child_by_field_name("name"))
    body = definition.child_by_field_name("body")

    docstring: str | None = None
    docstring_line: int | None = None
    statements: list[Statement] = []
    if body is not None:
        children = [c for c in body.named_children if c.type not in lang.comment_types]
        if scope.patterns.docstring_style == "body-string" and children:
            docstring = _docstring_of_statement(children[0], lang)
            if docstring is not None:
                docstring_line = children[0].start_point.row + 1
                children = children[1:]
        for child in children:
            statements.extend(_normalize(child, lang, ""))
    if scope.patterns.docstring_style == "leading-comment":
        docstring, docstring_line = _comment_docstring(comments)

    decorator_calls: list[CallInfo] = []
    for decorator in decorators:
        _collect(decorator, lang, decorator_calls, [])

    return TestUnit(
        name=name,
        qualified_name=f"{prefix}{name}",
        file_path=scope.source.path,
        language=lang.name,
        line_start=node.start_point.row + 1,
        line_end=node.end_point.row + 1,
        tags=frozenset(tags | _markers(decorators, scope.patterns)),
        docstring=docstring,
        docstring_line=docstring_line,
        parameters=_parameters(definition),
        decorator_calls=tuple(decorator_calls),
        statements=tuple(statements),
    )


def _scan_named(scope: _Scope, container: TSNode, prefix: str, inherited: set[str]) -> None:
    lang = scope.lang
    patterns = scope.patterns
    siblings = list(container.named_children)
    pending: set[str] = set()

    for index, child in enumerate(siblings):
        if child.type in lang.comment_types:
            pending |= _split_tags(parse_annotations(_text(child)).get("tags"))
            continue

        definition, decorators = _unwrap(child, lang)
        if definition is None:
            pending = set()
            continue

        name = _text(definition.child_by_field_name("name"))
        tags = inherited | pending
        pending = set()

        if definition.type in lang.function_types and patterns.test_function_pattern.search(name):
            comments = _leading_comments(siblings, index, lang)
            scope.units.append(
                _named_test(scope, child, definition, decorators, prefix, tags, comments)
            )
        elif definition.type in lang.class_types and patterns.test_class_pattern.search(name):
            body = definition.child_by_field_name("body")
            if body is not None:
                class_tags = tags | _markers(decorators, patterns)
                _scan_named(scope, body, f"{prefix}{name}.", class_tags)


def _callee_name(call: TSNode) -> tuple[str, str | None]:
    """Return ``(name, modifier)`` for ``it(...)`` / ``it.only(...)`` style callees."""
    func = call.child_by_field_name("function")
    if func is None:
        return "", None
    if func.type == "identifier":
        return _text(func), None
    if func.type == "member_expression":
        obj = func.child_by_field_name("object")
        prop = func.child_by_field_name("property")
        if obj is not None and obj.type == "identifier":
            return _text(obj), _text(prop) or None
    return "", None


def _call_of(node: TSNode, lang: LangConfig) -> TSNode | None:
    if node.type == "expression_statement" and node.named_children:
        node = node.named_children[0]
    return node if node.type in lang.call_types else None


def _callback_body(call: TSNode, lang: LangConfig) -> TSNode | None:
    args = call.child_by_field_name("arguments")
    if args is None:
        return None
    callbacks = [a for a in args.named_children if a.type in lang.closure_types]
    if not callbacks:
        return None
    return callbacks[-1].child_by_field_name("body")


def _call_title(call: TSNode) -> str:
    args = call.child_by_field_name("arguments")
    if args is None or not args.named_children:
        return ""
    first = _text(args.named_children[0])
    value = string_value(first)
    return value if value is not None else first


def _scan_calls(scope: _Scope, container: TSNode, titles: list[str], inherited: set[str]) -> None:
    lang = scope.lang
    patterns = scope.patterns
    siblings = list(container.named_children)
    pending: set[str] = set()

    for index, child in enumerate(siblings):
        if child.type in lang.comment_types:
            pending |= _split_tags(parse_annotations(_text(child)).get("tags"))
            continue

        call = _call_of(child, lang)
        tags = inherited | pending
        pending = set()
        if call is None:
            continue

        callee, modifier = _callee_name(call)
        if modifier is not None:
            tags = tags | {modifier}
        body = _callback_body(call, lang)
        if body is None:
            continue

        if callee in patterns.suite_call_names:
            if body.type in lang.block_types:
                _scan_calls(scope, body, [*titles, _call_title(call)], tags)
            continue
        if callee not in patterns.test_call_names:
            continue

        title = _call_title(call)
        if body.type in lang.block_types:
            statements = normalize_block(body, lang)
        else:
            statements = _normalize(body, lang, "")
        docstring, docstring_line = _comment_docstring(_leading_comments(siblings, index, lang))
        scope.units.append(
            TestUnit(
                name=title,
                qualified_name=" > ".join([*titles, title]),
                file_path=scope.source.path,
                language=lang.name,
                line_start=child.start_point.row + 1,
                line_end=child.end_point.row + 1,
                tags=frozenset(tags),
                docstring=docstring,
                docstring_line=docstring_line,
                statements=tuple(statements),
            )
        )


def extract_test_units(source: SourceFile, patterns: LanguagePatterns) -> list[TestUnit]:
    """Identify the test units of a parsed file using the language's recognition policy."""
    if source.tree is None:
        return []
    scope = _Scope(source=source, lang=source.lang, patterns=patterns)
    root = source.tree.root_node
    if patterns.discovery == "call":
        _scan_calls(scope, root, [], set())
    else:
        _scan_named(scope, root, "", set())
    return scope.units


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def _python_relative_module(node: TSNode, file_path: str) -> str:
    raw = _text(node)
    dots = len(raw) - len(raw.lstrip("."))
    parts = posixpath.dirname(file_path).split("/") if posixpath.dirname(file_path) else []
    if dots > 1:
        parts = parts[: max(len(parts) - (dots - 1), 0)]
    rest = raw[dots:]
    if rest:
        parts.extend(rest.split("."))
    return "/".join(parts)


def _extract_python_imports(root: TSNode, file_path: str) -> list[Import]:
    """Python ``import`` and ``from ... import`` statements, relative ones resolved."""
    results: list[Import] = []
    for child in root.children:
        line = child.start_point.row + 1
        if child.type == "import_statement":
            # `import X.Y` binds X; `import X.Y as Z` binds Z.
            for name in child.children_by_field_name("name"):
                if name.type == "aliased_import":
                    module = _text(name.child_by_field_name("name"))
                    local = _text(name.child_by_field_name("alias"))
                else:
                    module = _text(name)
                    local = module.split(".")[0]
                if module and local:
                    results.append(Import(local, module.replace(".", "/"), line))

        elif child.type == "import_from_statement":
            module_node = child.child_by_field_name("module_name")
            if module_node is None:
                continue
            if module_node.type == "relative_import":
                module = _python_relative_module(module_node, file_path)
            else:
                module = _text(module_node).replace(".", "/")
            for name in child.children_by_field_name("name"):
                if name.type == "aliased_import":
                    imported = _text(name.child_by_field_name("name"))
                    local = _text(name.child_by_field_name("alias"))
                else:
                    imported = _text(name)
                    local = imported.split(".")[-1]
                if local:
                    full = "/".join(p for p in (module, imported.replace(".", "/")) if p)
                    results.append(Import(local, full, line))
    return results


def _extract_ts_imports(root: TSNode, file_path: str) -> list[Import]:
    """ES module imports of a TypeScript or JavaScript file."""
    results: list[Import] = []
    for child in root.children:
        if child.type != "import_statement":
            continue
        source = string_value(_text(child.child_by_field_name("source")))
        if not source:
            continue
        if source.startswith("."):
            module = posixpath.normpath(posixpath.join(posixpath.dirname(file_path), source))
        else:
            module = source
        line = child.start_point.row + 1

        for clause in child.named_children:
            if clause.type != "import_clause":
                continue
            for part in clause.named_children:
                if part.type == "identifier":
                    results.append(Import(_text(part), module, line))
                elif part.type == "namespace_import":
                    for ident in part.named_children:
                        if ident.type == "identifier":
                            results.append(Import(_text(ident), module, line))
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        alias = spec.child_by_field_name("alias")
                        local = _text(alias or spec.child_by_field_name("name"))
                        if local:
                            results.append(Import(local, module, line))
    return results


def _go_import_spec(spec: TSNode) -> Import | None:
    path = string_value(_text(spec.child_by_field_name("path")))
    if not path:
        return None
    alias = _text(spec.child_by_field_name("name"))
    local = alias if alias and alias not in ("_", ".") else path.rsplit("/", 1)[-1]
    return Import(local, path, spec.start_point.row + 1)


def _extract_go_imports(root: TSNode, file_path: str) -> list[Import]:
    """Go import declarations, single and grouped."""
    results: list[Import] = []
    for child in root.children:
        if child.type != "import_declaration":
            continue
        for sub in child.named_children:
            specs = sub.named_children if sub.type == "import_spec_list" else [sub]
            for spec in specs:
                if spec.type != "import_spec":
                    continue
                info = _go_import_spec(spec)
                if info is not None:
                    results.append(info)
    return results


_IMPORT_EXTRACTORS: dict[str, Callable[[TSNode, str], list[Import]]] = {
    "python": _extract_python_imports,
    "typescript": _extract_ts_imports,
    "go": _extract_go_imports,
}


# ---------------------------------------------------------------------------
# Symbols (for code reference resolution)
# ---------------------------------------------------------------------------


def _symbol_name(node: TSNode) -> str | None:
    """Name a definition node declares, or ``None``.

    Most grammars expose a ``name`` field; Go ``type_declaration`` does not,
    its name sits on the nested ``type_spec``.
    """
    name_node = node.child_by_field_name("name")
    if name_node is not None:
        return _text(name_node) or None
    for child in node.children:
        if child.type == "type_spec":
            return _text(child.child_by_field_name("name")) or None
    return None


def _go_receiver_type(node: TSNode) -> str | None:
    receiver = node.child_by_field_name("receiver")
    if receiver is None:
        return None
    for param in receiver.named_children:
        type_node = param.child_by_field_name("type")
        if type_node is not None:
            return _text(type_node).lstrip("*").split("[")[0] or None
    return None


def _class_members(body: TSNode, lang: LangConfig) -> list[tuple[str, tuple[int, int]]]:
    members: list[tuple[str, tuple[int, int]]] = []
    for member in body.named_children:
        definition, _ = _unwrap(member, lang)
        if definition is None:
            continue
        if definition.type in lang.function_types or definition.type == "method_definition":
            name = _symbol_name(definition)
            if name:
                members.append((name, (member.start_point.row + 1, member.end_point.row + 1)))
    return members


def _module_bindings(node: TSNode) -> list[str]:
    """Names bound by a top-level Python assignment or Go const/var declaration."""
    if node.type == "expression_statement":
        names: list[str] = []
        for child in node.named_children:
            if child.type == "assignment":
                left = child.child_by_field_name("left")
                if left is not None:
                    names.extend(n for n in _bound_names(left) if "." not in n)
        return names
    if node.type in ("const_declaration", "var_declaration"):
        names = []
        stack = list(node.named_children)
        while stack:
            spec = stack.pop(0)
            if spec.type in ("const_spec", "var_spec"):
                names.extend(_text(n) for n in spec.children_by_field_name("name"))
            elif spec.type == "var_spec_list":
                stack.extend(spec.named_children)
        return [name for name in names if name and name != "_"]
    return []


def list_symbols(text: str, path: str) -> dict[str, tuple[int, int]]:
    """Return ``{symbol: (line_start, line_end)}`` for the definitions in a file.

    Covers top-level functions, classes, types, constants and variables,
    ``Class.method`` members, and Go ``Type.Method`` methods.  Returns an
    empty dict for unsupported languages.
    """
    lang = get_lang_config(posixpath.splitext(path)[1])
    if lang is None:
        return {}
    root = Parser(lang.language).parse(text.encode("utf-8")).root_node

    symbols: dict[str, tuple[int, int]] = {}
    for child in root.named_children:
        definition, _ = _unwrap(child, lang)
        if definition is None:
            continue
        span = (child.start_point.row + 1, child.end_point.row + 1)

        if definition.type in ("lexical_declaration", "variable_declaration"):
            for declarator in definition.named_children:
                name = _text(declarator.child_by_field_name("name"))
                if name:
                    symbols[name] = span
            continue
        bound = _module_bindings(definition)
        if bound:
            for name in bound:
                symbols[name] = span
            continue
        if definition.type not in lang.symbol_types:
            continue
        name = _symbol_name(definition)
        if name is None:
            continue

        receiver = _go_receiver_type(definition) if lang.name == "go" else None
        qualified = f"{receiver}.{name}" if receiver else name
        symbols[qualified] = span

        body = definition.child_by_field_name("body")
        if definition.type in lang.class_types and body is not None:
            for member, member_span in _class_members(body, lang):
                symbols[f"{name}.{member}"] = member_span
    return symbols
