"""Repository-level context handed to every evaluator."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from goldtest.adapters.syntax import Import, SourceFile
    from goldtest.infrastructure.config import EngineConfig, LanguagePatterns


def module_of_path(rel_path: str, source_roots: tuple[str, ...]) -> str:
    """Top-level module a repo-relative path belongs to.

    ``src/billing/invoice.py`` and ``billing/invoice.py`` both map to
    ``billing``; a root-level file maps to its stem.
    """
    parts = [p for p in rel_path.split("/") if p and p != "."]
    while len(parts) > 1 and parts[0] in source_roots:
        parts = parts[1:]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0].split(".")[0]
    return parts[0]


@dataclass(frozen=True)
class RepoContext:
    """Read-only view of the repository, narrowed to one file by :meth:`for_file`."""

    root: Path
    config: EngineConfig
    production_files: frozenset[str] = frozenset()
    production_modules: frozenset[str] = frozenset()
    file_path: str = ""
    language: str = ""
    suite_tags: frozenset[str] = frozenset()
    suite_docstring: str | None = None
    imports: tuple[Import, ...] = field(default=())

    def for_file(self, source: SourceFile) -> RepoContext:
        # Pattern sets are matched by extension, not by grammar name.
        selected = self.config.language_for(source.path)
        return dataclasses.replace(
            self,
            file_path=source.path,
            language=selected.name if selected is not None else source.language,
            suite_tags=source.suite_tags,
            suite_docstring=source.suite_docstring,
            imports=source.imports,
        )

    @property
    def patterns(self) -> LanguagePatterns:
        return self.config.languages[self.language]

    def top_module(self, module_path: str) -> str | None:
        """Production module an import path lands in, or ``None`` for third-party code."""
        parts = [p for p in module_path.split("/") if p and p != "."]
        while parts and parts[0] in self.config.source_roots:
            parts = parts[1:]
        if not parts:
            return None
        if parts[0] in self.production_modules:
            return parts[0]
        # Go-style paths carry a module prefix before the package directory.
        for part in parts[1:]:
            if part in self.production_modules:
                return part
        return None
