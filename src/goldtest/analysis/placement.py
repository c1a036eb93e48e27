"""Placement checker: unit-test co-location and E2E directory tiers."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

from goldtest.analysis.context import module_of_path
from goldtest.findings import make_finding
from goldtest.infrastructure.config import glob_match

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goldtest.adapters.syntax import SourceFile, TestUnit
    from goldtest.analysis.context import RepoContext
    from goldtest.analysis.facts import FactSheet
    from goldtest.findings import Finding
    from goldtest.infrastructure.config import EngineConfig, LanguagePatterns

TIER_PROJECT = "project"
TIER_MODULE = "module"


def e2e_tier(rel_path: str, config: EngineConfig) -> str | None:
    """Directory tier of an E2E test file, or ``None`` for ordinary unit tests.

    Project-level globs are checked first so ``tests/e2e/`` is not mistaken
    for a module's own ``e2e/`` directory.
    """
    if any(glob_match(rel_path, pattern) for pattern in config.e2e_project_globs):
        return TIER_PROJECT
    if any(glob_match(rel_path, pattern) for pattern in config.e2e_module_globs):
        return TIER_MODULE
    return None


def expected_tier(modules: frozenset[str]) -> str | None:
    if not modules:
        return None
    return TIER_MODULE if len(modules) == 1 else TIER_PROJECT


def colocated_paths(target: str, templates: Sequence[str], extensions: Sequence[str]) -> list[str]:
    """Render the co-location templates for production file *target*."""
    directory = posixpath.dirname(target)
    stem, target_ext = posixpath.splitext(posixpath.basename(target))
    paths: set[str] = set()
    for template in templates:
        for ext in dict.fromkeys((target_ext, *extensions)):
            rendered = template.format(dir=directory, stem=stem, ext=ext).lstrip("/")
            paths.add(posixpath.normpath(rendered))
    return sorted(paths)


def _strip_roots(path: str, roots: tuple[str, ...]) -> str:
    parts = path.split("/")
    while len(parts) > 1 and parts[0] in roots:
        parts = parts[1:]
    return "/".join(parts)


def _is_imported(candidate: str, source: SourceFile, roots: tuple[str, ...]) -> bool:
    module_path = posixpath.splitext(candidate)[0]
    forms = {
        module_path,
        _strip_roots(module_path, roots),
        posixpath.dirname(candidate),
        _strip_roots(posixpath.dirname(candidate), roots),
    }
    forms.discard("")
    for imp in source.imports:
        # Python from-imports carry the imported name as a trailing segment.
        padded = f"/{imp.module}/"
        if any(f"/{form}/" in padded for form in forms):
            return True
    return False


def _target_candidates(
    source: SourceFile, patterns: LanguagePatterns, ctx: RepoContext
) -> list[str]:
    stem = patterns.test_stem(posixpath.basename(source.path))
    if stem is None:
        return []
    candidates = sorted(
        path
        for path in ctx.production_files
        if posixpath.splitext(posixpath.basename(path))[0] == stem
        and any(path.endswith(ext) for ext in patterns.extensions)
    )
    imported = [c for c in candidates if _is_imported(c, source, ctx.config.source_roots)]
    return imported or candidates


def _check_colocation(source: SourceFile, ctx: RepoContext) -> list[Finding]:
    patterns = ctx.patterns
    candidates = _target_candidates(source, patterns, ctx)
    if not candidates or not patterns.colocation:
        return []

    test_ext = posixpath.splitext(source.path)[1]
    for candidate in candidates:
        expected = colocated_paths(candidate, patterns.colocation, (test_ext,))
        if source.path in expected:
            return []

    target = candidates[0]
    expected = colocated_paths(target, patterns.colocation, (test_ext,))
    finding = make_finding(
        ctx.config,
        "unit-test-misplaced",
        source.path,
        (1, 1),
        f"unit test '{source.path}' is not co-located with '{target}'",
        [f"target module: {target}", f"expected one of: {', '.join(expected)}"],
    )
    return [finding] if finding is not None else []


def _check_e2e_scope(
    source: SourceFile,
    results: Sequence[tuple[TestUnit, FactSheet]],
    tier: str,
    ctx: RepoContext,
) -> list[Finding]:
    findings: list[Finding] = []
    home = module_of_path(source.path, ctx.config.source_roots)
    for unit, sheet in results:
        modules = sheet.modules
        expected = expected_tier(modules)
        if expected is None:
            continue
        touched = ", ".join(sorted(modules))
        message: str | None = None
        if expected != tier:
            message = (
                f"e2e test '{unit.qualified_name}' touches {len(modules)} module(s) ({touched}) "
                f"but lives in a {tier}-level e2e directory; expected {expected}-level"
            )
        elif tier == TIER_MODULE and home in ctx.production_modules and home not in modules:
            message = (
                f"e2e test '{unit.qualified_name}' lives under module '{home}' "
                f"but exercises '{touched}'"
            )
        if message is None:
            continue
        finding = make_finding(
            ctx.config,
            "e2e-test-misscoped",
            source.path,
            (unit.line_start, unit.line_end),
            message,
            [f"directory tier: {tier}", f"modules reached by real calls: {touched}"],
        )
        if finding is not None:
            findings.append(finding)
    return findings


def check(
    source: SourceFile,
    results: Sequence[tuple[TestUnit, FactSheet]],
    ctx: RepoContext,
) -> list[Finding]:
    """Placement findings for one test file.

    Parameters
    ----------
    source:
        The parsed test file.
    results:
        Each test unit in the file with its FactSheet; used to infer the
        scope of E2E tests from the production modules they reach.
    ctx:
        Context narrowed to *source*.
    """
    tier = e2e_tier(source.path, ctx.config)
    if tier is None:
        return _check_colocation(source, ctx)
    return _check_e2e_scope(source, results, tier, ctx)
