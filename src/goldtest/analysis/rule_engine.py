"""Rule engine: a registry of independent evaluators over FactSheets."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from goldtest.findings import make_finding

if TYPE_CHECKING:
    from collections.abc import Callable

    from goldtest.adapters.syntax import TestUnit
    from goldtest.analysis.context import RepoContext
    from goldtest.analysis.facts import FactSheet
    from goldtest.findings import Finding

    RuleFn = Callable[[FactSheet, TestUnit, RepoContext], list[Finding]]

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATOR_RE = re.compile(r"[\s\-]+")
_UNDERSCORES_RE = re.compile(r"_+")


class RuleEvaluationError(Exception):
    """A rule implementation faulted on valid input (an engine defect)."""

    def __init__(self, rule_id: str, unit_name: str, cause: Exception) -> None:
        super().__init__(f"rule '{rule_id}' failed on '{unit_name}': {cause!r}")
        self.rule_id = rule_id
        self.unit_name = unit_name
        self.cause = cause


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_REGISTRY: dict[str, RuleFn] = {}


def register(rule_id: str) -> Callable[[RuleFn], RuleFn]:
    """Decorator adding an evaluator to the registry under *rule_id*."""

    def decorator(fn: RuleFn) -> RuleFn:
        if rule_id in _REGISTRY:
            msg = f"rule '{rule_id}' is already registered"
            raise ValueError(msg)
        _REGISTRY[rule_id] = fn
        return fn

    return decorator


def registered_rules() -> dict[str, RuleFn]:
    """Return a copy of the registry, keyed by rule id."""
    return dict(_REGISTRY)


@dataclass(frozen=True)
class UnitResult:
    """Findings for one unit plus any contained rule defects."""

    findings: tuple[Finding, ...]
    errors: tuple[RuleEvaluationError, ...] = ()


def evaluate_unit(
    sheet: FactSheet,
    unit: TestUnit,
    ctx: RepoContext,
    rules: dict[str, RuleFn] | None = None,
) -> UnitResult:
    """Run every enabled rule against one unit.

    Rules are independent: a rule that raises is logged, recorded as a
    :class:`RuleEvaluationError` and skipped; the others still run.
    Findings are kept as produced, without suppression across rules.
    """
    active = _REGISTRY if rules is None else rules
    findings: list[Finding] = []
    errors: list[RuleEvaluationError] = []
    for rule_id in sorted(active):
        if not ctx.config.is_enabled(rule_id):
            continue
        try:
            findings.extend(active[rule_id](sheet, unit, ctx))
        except Exception as exc:
            error = RuleEvaluationError(rule_id, unit.qualified_name, exc)
            logger.exception("Rule %s failed on %s:%s", rule_id, unit.file_path, unit.line_start)
            errors.append(error)
    return UnitResult(findings=tuple(findings), errors=tuple(errors))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _span(unit: TestUnit) -> tuple[int, int]:
    return (unit.line_start, unit.line_end)


def _aaa_evidence(sheet: FactSheet) -> str:
    if sheet.arrange_act_separated:
        return "arrange/act/assert structure detected"
    return "no arrange/act/assert structure detected (lower confidence)"


def normalize_test_name(name: str, prefix: re.Pattern[str]) -> str:
    """Strip the framework prefix and convert the rest to snake_case."""
    stripped = prefix.sub("", name, count=1)
    snake = _CAMEL_RE.sub("_", stripped)
    snake = _SEPARATOR_RE.sub("_", snake.strip())
    return _UNDERSCORES_RE.sub("_", snake).strip("_").lower()


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@register("shape-only-test")
def shape_only_test(sheet: FactSheet, unit: TestUnit, ctx: RepoContext) -> list[Finding]:
    if not sheet.assertions or sheet.shape_score < 1.0:
        return []
    exempt = (unit.tags | ctx.suite_tags) & ctx.config.exempt_tags
    kinds = sorted({a.kind for a in sheet.assertions})
    evidence = [
        f"shape-score={sheet.shape_score:.2f} over {len(sheet.assertions)} assertion(s)",
        f"assertion kinds: {', '.join(kinds)}",
        *(f"line {a.line}: {a.text.strip()}" for a in sheet.assertions[:3]),
        _aaa_evidence(sheet),
    ]
    if exempt:
        evidence.append(f"exempt via tag(s): {', '.join(sorted(exempt))}")
    finding = make_finding(
        ctx.config,
        "shape-only-test",
        unit.file_path,
        _span(unit),
        f"'{unit.qualified_name}' only checks types or attribute presence; "
        "it would pass against a dummy object",
        evidence,
        severity="info" if exempt else None,
    )
    return [finding] if finding is not None else []


@register("over-mocking")
def over_mocking(sheet: FactSheet, unit: TestUnit, ctx: RepoContext) -> list[Finding]:
    collaborators = sheet.collaborators
    mocked = [c for c in collaborators if c.is_mocked]
    if not mocked or sheet.mock_ratio < ctx.config.thresholds.mock_ratio:
        return []
    evidence = [
        f"mock-ratio={sheet.mock_ratio:.2f} (threshold {ctx.config.thresholds.mock_ratio:.2f})",
        f"mocked: {', '.join(sorted({c.target for c in mocked}))}",
        _aaa_evidence(sheet),
    ]
    finding = make_finding(
        ctx.config,
        "over-mocking",
        unit.file_path,
        _span(unit),
        f"'{unit.qualified_name}' mocks {len(mocked)} of {len(collaborators)} "
        "non-boundary collaborator call(s)",
        evidence,
    )
    return [finding] if finding is not None else []


@register("brittle-assertion")
def brittle_assertion(sheet: FactSheet, unit: TestUnit, ctx: RepoContext) -> list[Finding]:
    if (unit.tags | ctx.suite_tags) & ctx.config.contract_tags:
        return []
    patterns = ctx.patterns.brittle_patterns
    findings: list[Finding] = []
    for assertion in sheet.assertions:
        hit = next((p for p in patterns if p.search(assertion.text)), None)
        if hit is None:
            continue
        finding = make_finding(
            ctx.config,
            "brittle-assertion",
            unit.file_path,
            (assertion.line, assertion.line),
            f"'{unit.qualified_name}' pins exact message or output text; "
            "tag the test as a contract if the text is part of the API",
            [f"line {assertion.line}: {assertion.text.strip()}", f"matched /{hit.pattern}/"],
        )
        if finding is not None:
            findings.append(finding)
    return findings


@register("missing-arrange-act-assert")
def missing_arrange_act_assert(
    sheet: FactSheet, unit: TestUnit, ctx: RepoContext
) -> list[Finding]:
    limit = ctx.config.thresholds.aaa_min_statements
    if sheet.arrange_act_separated or sheet.statement_count <= limit:
        return []
    finding = make_finding(
        ctx.config,
        "missing-arrange-act-assert",
        unit.file_path,
        _span(unit),
        f"'{unit.qualified_name}' has {sheet.statement_count} statements "
        "without a recognizable arrange/act/assert shape",
        [f"statement threshold {limit}", sheet.summary()],
    )
    return [finding] if finding is not None else []


@register("naming-intent")
def naming_intent(sheet: FactSheet, unit: TestUnit, ctx: RepoContext) -> list[Finding]:
    patterns = ctx.patterns
    normalized = normalize_test_name(unit.name, patterns.name_prefix_pattern)
    if patterns.naming_pattern.search(normalized):
        return []
    finding = make_finding(
        ctx.config,
        "naming-intent",
        unit.file_path,
        _span(unit),
        f"'{unit.name}' does not read as <behavior>_<condition>_<expected>",
        [
            f"normalized name: {normalized or '<empty>'}",
            f"pattern: {patterns.naming_pattern.pattern}",
        ],
    )
    return [finding] if finding is not None else []


@register("fact-extraction-incomplete")
def fact_extraction_incomplete(
    sheet: FactSheet, unit: TestUnit, ctx: RepoContext
) -> list[Finding]:
    if not sheet.incomplete:
        return []
    finding = make_finding(
        ctx.config,
        "fact-extraction-incomplete",
        unit.file_path,
        _span(unit),
        f"no assertions or collaborator calls recognized in '{unit.qualified_name}'",
        [f"statements={sheet.statement_count}"],
    )
    return [finding] if finding is not None else []
