"""Tree-sitter grammars and the node-type tables that normalize each language."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tree_sitter import Language

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LangConfig:
    """Tree-sitter node vocabulary for one grammar.

    Only syntax lives here.  What counts as a test, a mock or an assertion
    is policy and comes from :class:`~goldtest.infrastructure.config.LanguagePatterns`.
    """

    name: str  # key into the configured pattern sets
    language: Language
    comment_types: frozenset[str]
    function_types: frozenset[str]  # named definitions a test can be
    class_types: frozenset[str]  # containers whose methods can be tests
    wrapper_types: frozenset[str]  # decorated_definition, export_statement
    symbol_types: dict[str, str]  # node_type -> kind, for code reference lookup
    block_types: frozenset[str]
    compound_types: frozenset[str]  # statements holding nested blocks
    call_types: frozenset[str]
    assert_types: frozenset[str]
    closure_types: frozenset[str]
    string_types: frozenset[str]
    binding_fields: dict[str, str] = field(default_factory=dict)  # node_type -> lhs field


# ---- Grammar loaders; a missing package raises ImportError ----


def _load_python() -> LangConfig:
    import tree_sitter_python as tspython

    return LangConfig(
        name="python",
        language=Language(tspython.language()),
        comment_types=frozenset({"comment"}),
        function_types=frozenset({"function_definition"}),
        class_types=frozenset({"class_definition"}),
        wrapper_types=frozenset({"decorated_definition"}),
        symbol_types={
            "function_definition": "function",
            "class_definition": "class",
        },
        block_types=frozenset({"block"}),
        compound_types=frozenset(
            {
                "with_statement",
                "if_statement",
                "elif_clause",
                "else_clause",
                "for_statement",
                "while_statement",
                "try_statement",
                "except_clause",
                "finally_clause",
            }
        ),
        call_types=frozenset({"call"}),
        assert_types=frozenset({"assert_statement"}),
        closure_types=frozenset({"lambda"}),
        string_types=frozenset({"string", "concatenated_string"}),
        binding_fields={
            "assignment": "left",
            "augmented_assignment": "left",
            "as_pattern": "alias",
            "for_statement": "left",
            "named_expression": "name",
        },
    )


def _typescript_config(language: Language) -> LangConfig:
    return LangConfig(
        name="typescript",
        language=language,
        comment_types=frozenset({"comment"}),
        function_types=frozenset({"function_declaration"}),
        class_types=frozenset({"class_declaration"}),
        wrapper_types=frozenset({"export_statement"}),
        symbol_types={
            "function_declaration": "function",
            "class_declaration": "class",
            "interface_declaration": "type",
            "type_alias_declaration": "type",
        },
        block_types=frozenset({"statement_block"}),
        compound_types=frozenset(
            {
                "if_statement",
                "else_clause",
                "for_statement",
                "for_in_statement",
                "while_statement",
                "try_statement",
                "catch_clause",
                "finally_clause",
            }
        ),
        call_types=frozenset({"call_expression", "new_expression"}),
        assert_types=frozenset(),
        closure_types=frozenset(
            {"arrow_function", "function_expression", "function", "generator_function"}
        ),
        string_types=frozenset({"string", "template_string"}),
        binding_fields={
            "variable_declarator": "name",
            "assignment_expression": "left",
        },
    )


def _load_typescript() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return _typescript_config(Language(tstypescript.language_typescript()))


def _load_tsx() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return _typescript_config(Language(tstypescript.language_tsx()))


def _load_go() -> LangConfig:
    import tree_sitter_go as tsgo

    return LangConfig(
        name="go",
        language=Language(tsgo.language()),
        comment_types=frozenset({"comment"}),
        function_types=frozenset({"function_declaration", "method_declaration"}),
        class_types=frozenset(),
        wrapper_types=frozenset(),
        symbol_types={
            "function_declaration": "function",
            "method_declaration": "function",
            "type_declaration": "type",
        },
        block_types=frozenset({"block", "statement_list"}),
        compound_types=frozenset({"if_statement", "for_statement"}),
        call_types=frozenset({"call_expression"}),
        assert_types=frozenset(),
        closure_types=frozenset({"func_literal"}),
        string_types=frozenset({"interpreted_string_literal", "raw_string_literal"}),
        binding_fields={
            "short_var_declaration": "left",
            "assignment_statement": "left",
            "var_spec": "name",
            "range_clause": "left",
        },
    )


# Loader per supported file extension.
_EXTENSION_LOADERS: dict[str, Callable[[], LangConfig]] = {
    ".py": _load_python,
    ".ts": _load_typescript,
    ".tsx": _load_tsx,
    ".js": _load_typescript,
    ".jsx": _load_tsx,
    ".mjs": _load_typescript,
    ".cjs": _load_typescript,
    ".go": _load_go,
}

# Per-extension adapters; None records a grammar that failed to load.
_LANG_CACHE: dict[str, LangConfig | None] = {}


def get_lang_config(extension: str) -> LangConfig | None:
    """Return the adapter for *extension*; ``None`` when goldtest cannot parse it."""
    if extension in _LANG_CACHE:
        return _LANG_CACHE[extension]

    loader = _EXTENSION_LOADERS.get(extension)
    if loader is None:
        _LANG_CACHE[extension] = None
        return None

    try:
        config = loader()
    except ImportError:
        logger.debug("No tree-sitter grammar installed for %s files", extension)
        _LANG_CACHE[extension] = None
        return None

    _LANG_CACHE[extension] = config
    return config


def supported_extensions() -> frozenset[str]:
    """Extensions whose grammar package is installed and loads."""
    available: set[str] = set()
    for ext in _EXTENSION_LOADERS:
        if get_lang_config(ext) is not None:
            available.add(ext)
    return frozenset(available)


def warm_cache(extensions: Iterable[str]) -> None:
    """Load grammars up front so worker threads only ever read the cache."""
    for ext in extensions:
        get_lang_config(ext)


def clear_cache() -> None:
    """Forget every loaded grammar so the next lookup reloads it."""
    _LANG_CACHE.clear()
