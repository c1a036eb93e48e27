"""Language adapters: tree-sitter grammars, normalized statements, test unit discovery."""

from goldtest.adapters.languages import (
    LangConfig,
    clear_cache,
    get_lang_config,
    supported_extensions,
    warm_cache,
)
from goldtest.adapters.syntax import (
    CallInfo,
    Import,
    ParseError,
    SourceFile,
    Statement,
    TestUnit,
    extract_test_units,
    list_symbols,
    parse,
    read_source,
)

__all__ = [
    "CallInfo",
    "Import",
    "LangConfig",
    "ParseError",
    "SourceFile",
    "Statement",
    "TestUnit",
    "clear_cache",
    "extract_test_units",
    "get_lang_config",
    "list_symbols",
    "parse",
    "read_source",
    "supported_extensions",
    "warm_cache",
]
