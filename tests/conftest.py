"""Shared test fixtures for goldtest."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from goldtest.adapters.syntax import extract_test_units, parse
from goldtest.analysis.context import RepoContext, module_of_path
from goldtest.analysis.docstrings import clear_symbol_cache
from goldtest.analysis.facts import extract
from goldtest.infrastructure.config import default_config

if TYPE_CHECKING:
    from collections.abc import Callable

    from goldtest.adapters.syntax import SourceFile, TestUnit
    from goldtest.analysis.facts import FactSheet
    from goldtest.infrastructure.config import EngineConfig


@pytest.fixture(autouse=True)
def _clear_symbol_cache() -> None:
    clear_symbol_cache()


@pytest.fixture()
def make_repo(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative path: source}`` into a fresh repository root."""

    def _make(files: dict[str, str]) -> Path:
        for rel_path, text in files.items():
            target = tmp_path / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return tmp_path

    return _make


def make_context(
    root: Path,
    production_files: tuple[str, ...] = (),
    config: EngineConfig | None = None,
) -> RepoContext:
    cfg = config or default_config()
    return RepoContext(
        root=root,
        config=cfg,
        production_files=frozenset(production_files),
        production_modules=frozenset(
            module_of_path(p, cfg.source_roots) for p in production_files
        ),
    )


def analyze_source(
    text: str,
    path: str,
    *,
    root: Path | None = None,
    production_files: tuple[str, ...] = (),
    config: EngineConfig | None = None,
) -> tuple[SourceFile, RepoContext, list[tuple[TestUnit, FactSheet]]]:
    """Parse a test file and extract a FactSheet for each of its units."""
    source = parse(textwrap.dedent(text).lstrip("\n"), path)
    base = make_context(root or Path("."), production_files, config)
    ctx = base.for_file(source)
    units = extract_test_units(source, ctx.patterns)
    return source, ctx, [(unit, extract(unit, ctx)) for unit in units]
