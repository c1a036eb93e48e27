"""Runner: discover files, analyze them on a worker pool, and aggregate a report."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from goldtest.adapters.languages import get_lang_config, warm_cache
from goldtest.adapters.syntax import ParseError, extract_test_units, read_source
from goldtest.analysis import docstrings, placement
from goldtest.analysis.context import RepoContext, module_of_path
from goldtest.analysis.facts import extract
from goldtest.analysis.rule_engine import evaluate_unit
from goldtest.findings import make_finding
from goldtest.infrastructure.report import aggregate

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from goldtest.adapters.syntax import SourceFile, TestUnit
    from goldtest.analysis.facts import FactSheet
    from goldtest.findings import Finding
    from goldtest.infrastructure.config import EngineConfig
    from goldtest.infrastructure.report import Report

logger = logging.getLogger(__name__)

# Directories whose files are never treated as production code.
TEST_DIR_NAMES: frozenset[str] = frozenset(
    {"tests", "test", "e2e", "__tests__", "testdata", "fixtures", "spec"}
)


@dataclass
class FileAnalysis:
    """Per-file result buffer, owned by exactly one worker."""

    path: str
    findings: list[Finding] = field(default_factory=list)
    units: int = 0
    errors: list[str] = field(default_factory=list)

    def add(self, finding: Finding | None) -> None:
        if finding is not None:
            self.findings.append(finding)


@dataclass(frozen=True)
class RepoFiles:
    """Files selected for a run, repo-relative and sorted."""

    test_files: tuple[str, ...]
    production_files: tuple[str, ...]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_files(root: Path, config: EngineConfig) -> RepoFiles:
    """Split the supported files under *root* into test and production files."""
    tests: list[str] = []
    production: list[str] = []
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        rel_path = file_path.relative_to(root).as_posix()
        if config.is_excluded(rel_path):
            continue
        patterns = config.language_for(file_path.name)
        if patterns is None:
            continue
        if get_lang_config(file_path.suffix) is None:
            logger.debug("Skipping %s: no grammar available", rel_path)
            continue
        if patterns.is_test_file(file_path.name):
            tests.append(rel_path)
        elif not TEST_DIR_NAMES.intersection(rel_path.split("/")[:-1]):
            production.append(rel_path)
    return RepoFiles(test_files=tuple(tests), production_files=tuple(production))


# ---------------------------------------------------------------------------
# Per-file pipeline
# ---------------------------------------------------------------------------


def _contained(analysis: FileAnalysis, label: str, fn: Callable[[], list[Finding]]) -> None:
    """Run one evaluator; a crash is logged and recorded, never propagated."""
    try:
        analysis.findings.extend(fn())
    except Exception as exc:
        logger.exception("%s failed on %s", label, analysis.path)
        analysis.errors.append(f"{analysis.path}: {label} failed: {exc!r}")


def _read(
    root: Path, rel_path: str, analysis: FileAnalysis, config: EngineConfig
) -> SourceFile | None:
    """Parse *rel_path*; a failure is added to *analysis* and ``None`` returned."""
    try:
        return read_source(root / rel_path, rel_path)
    except ParseError as exc:
        logger.debug("Parse failure in %s: %s", rel_path, exc)
        analysis.add(
            make_finding(config, "parse-failure", rel_path, (exc.line, exc.line), str(exc))
        )
    except OSError as exc:
        analysis.add(
            make_finding(
                config, "parse-failure", rel_path, (1, 1), f"cannot read file: {exc.strerror}"
            )
        )
    return None


def analyze_file(root: Path, rel_path: str, base: RepoContext) -> FileAnalysis:
    """Parse one test file and run every evaluator over it.

    Parse failures and per-file timeouts become findings; evaluator crashes
    become engine errors.  Nothing raised here stops the rest of the run.
    """
    config = base.config
    analysis = FileAnalysis(path=rel_path)
    started = time.monotonic()
    budget = config.per_file_timeout

    def overran(stage: str) -> bool:
        elapsed = time.monotonic() - started
        if budget is None or elapsed <= budget:
            return False
        logger.warning("Timed out analyzing %s after %.1fs (%s)", rel_path, elapsed, stage)
        analysis.findings.clear()
        analysis.add(
            make_finding(
                config,
                "parse-timeout",
                rel_path,
                (1, 1),
                f"analysis exceeded the {budget:g}s per-file budget during {stage}",
                [f"elapsed={elapsed:.2f}s"],
            )
        )
        return True

    source = _read(root, rel_path, analysis, config)
    if source is None:
        return analysis
    if overran("parsing"):
        return analysis

    ctx = base.for_file(source)
    results: list[tuple[TestUnit, FactSheet]] = []
    for unit in extract_test_units(source, ctx.patterns):
        results.append((unit, extract(unit, ctx)))
    source.release()
    analysis.units = len(results)
    if overran("fact extraction"):
        return analysis

    for unit, sheet in results:
        outcome = evaluate_unit(sheet, unit, ctx)
        analysis.findings.extend(outcome.findings)
        analysis.errors.extend(f"{rel_path}: {error}" for error in outcome.errors)
        _contained(
            analysis,
            "docstring validation",
            lambda unit=unit: docstrings.validate(unit.docstring, unit, ctx),
        )
    _contained(analysis, "placement check", lambda: placement.check(source, results, ctx))
    overran("rule evaluation")
    return analysis


def check_production_file(root: Path, rel_path: str, config: EngineConfig) -> FileAnalysis:
    """Parse a production file; only its syntax errors are reported."""
    analysis = FileAnalysis(path=rel_path)
    source = _read(root, rel_path, analysis, config)
    if source is not None:
        source.release()
    return analysis


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def build_context(root: Path, config: EngineConfig, files: RepoFiles) -> RepoContext:
    production = frozenset(files.production_files)
    modules = frozenset(
        module
        for module in (module_of_path(p, config.source_roots) for p in production)
        if module
    )
    return RepoContext(
        root=root,
        config=config,
        production_files=production,
        production_modules=modules,
    )


def run(root: Path, config: EngineConfig, *, fail_on: str = "error") -> Report:
    """Analyze every test file under *root* and aggregate the findings.

    Production files are parsed as well so their syntax errors are reported.
    When ``config.run_timeout`` expires, ``run`` returns without waiting for
    busy workers, but they are not interrupted: ``concurrent.futures`` joins
    its threads at interpreter exit, so a process ends only once they finish.

    Parameters
    ----------
    root:
        Repository root; all reported paths are relative to it.
    config:
        Resolved configuration (see :func:`~goldtest.infrastructure.config.load_config`).
    fail_on:
        Lowest severity that makes the run fail.

    Returns
    -------
    Report
        Deduplicated, ordered findings plus the exit status.
    """
    started = time.monotonic()
    files = discover_files(root, config)
    warm_cache(ext for patterns in config.languages.values() for ext in patterns.extensions)
    base = build_context(root, config, files)

    analyses: list[FileAnalysis] = []
    executor = ThreadPoolExecutor(max_workers=config.worker_count())
    timed_out = False
    try:
        submitted = [
            (rel, executor.submit(analyze_file, root, rel, base)) for rel in files.test_files
        ]
        submitted.extend(
            (rel, executor.submit(check_production_file, root, rel, config))
            for rel in files.production_files
        )
        _done, pending = wait([future for _, future in submitted], timeout=config.run_timeout)
        timed_out = bool(pending)
        for rel_path, future in submitted:
            if future in pending:
                future.cancel()
                analysis = FileAnalysis(path=rel_path)
                analysis.add(
                    make_finding(
                        config,
                        "parse-timeout",
                        rel_path,
                        (1, 1),
                        f"run timeout of {config.run_timeout:g}s reached before analysis finished",
                    )
                )
                analyses.append(analysis)
                continue
            try:
                analyses.append(future.result())
            except Exception as exc:
                logger.exception("Analysis of %s crashed", rel_path)
                analysis = FileAnalysis(path=rel_path)
                analysis.errors.append(f"{rel_path}: analysis crashed: {exc!r}")
                analyses.append(analysis)
    finally:
        executor.shutdown(wait=not timed_out, cancel_futures=True)

    if timed_out:
        logger.warning("Run timeout reached; unfinished files were reported as timeouts")

    report = aggregate(
        (finding for analysis in analyses for finding in analysis.findings),
        fail_on=fail_on,
        files_scanned=len(files.test_files) + len(files.production_files),
        units_analyzed=sum(analysis.units for analysis in analyses),
        engine_errors=(error for analysis in analyses for error in analysis.errors),
    )
    logger.info(
        "Analyzed %d file(s), %d test unit(s), %d finding(s) in %.2fs",
        report.files_scanned,
        report.units_analyzed,
        len(report.findings),
        time.monotonic() - started,
    )
    return report
