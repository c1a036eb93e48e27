"""Finding model and the catalog of every rule id the engine can emit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from goldtest.infrastructure.config import EngineConfig

# ---------------------------------------------------------------------------
# Severities
# ---------------------------------------------------------------------------

SEVERITIES: tuple[str, ...] = ("info", "warning", "error")
_SEVERITY_RANK: dict[str, int] = {name: idx for idx, name in enumerate(SEVERITIES)}


def severity_rank(severity: str) -> int:
    """Return the ordinal of *severity* (``info`` < ``warning`` < ``error``)."""
    return _SEVERITY_RANK[severity]


# ---------------------------------------------------------------------------
# Rule catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleInfo:
    """Static description of a rule id."""

    rule_id: str
    default_severity: str
    component: str  # adapter | facts | rules | docstrings | placement
    description: str


RULE_CATALOG: dict[str, RuleInfo] = {
    info.rule_id: info
    for info in (
        RuleInfo("parse-failure", "error", "adapter", "Source file could not be parsed"),
        RuleInfo("parse-timeout", "error", "adapter", "File analysis exceeded its time budget"),
        RuleInfo(
            "fact-extraction-incomplete",
            "info",
            "facts",
            "No assertions or call sites could be extracted from the test body",
        ),
        RuleInfo(
            "shape-only-test",
            "error",
            "rules",
            "Every assertion checks types or attribute presence, never values",
        ),
        RuleInfo(
            "over-mocking",
            "warning",
            "rules",
            "Most non-boundary collaborators are mocked",
        ),
        RuleInfo(
            "brittle-assertion",
            "warning",
            "rules",
            "Assertion pins exact error text or output formatting",
        ),
        RuleInfo(
            "missing-arrange-act-assert",
            "info",
            "rules",
            "Long test body without an Arrange/Act/Assert shape",
        ),
        RuleInfo(
            "naming-intent",
            "warning",
            "rules",
            "Test name does not read as <behavior>_<condition>_<expected>",
        ),
        RuleInfo(
            "docstring-missing-required-fields",
            "error",
            "docstrings",
            "Docstring absent, incomplete, or holding unparsable fields",
        ),
        RuleInfo(
            "codeRef-unresolved",
            "warning",
            "docstrings",
            "Code reference does not point at an existing symbol",
        ),
        RuleInfo("style-violation", "warning", "docstrings", "Emoji in docstring"),
        RuleInfo(
            "language-violation",
            "warning",
            "docstrings",
            "Docstring does not appear to be written in English",
        ),
        RuleInfo(
            "unit-test-misplaced",
            "warning",
            "placement",
            "Unit test is not co-located with the module it covers",
        ),
        RuleInfo(
            "e2e-test-misscoped",
            "warning",
            "placement",
            "E2E test scope does not match its directory tier",
        ),
    )
}

# Always on at their catalog severity; configuration cannot hide a file.
ENGINE_RULES: frozenset[str] = frozenset({"parse-failure", "parse-timeout"})


# ---------------------------------------------------------------------------
# Finding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """One reported rule violation or informational signal."""

    rule_id: str
    severity: str  # info | warning | error
    file: str  # repo-relative POSIX path
    line_start: int
    line_end: int
    message: str
    evidence: tuple[str, ...] = ()

    def sort_key(self) -> tuple[str, int, str, int, int, str, tuple[str, ...]]:
        """Total ordering used by the aggregator."""
        return (
            self.file,
            self.line_start,
            self.rule_id,
            self.line_end,
            severity_rank(self.severity),
            self.message,
            self.evidence,
        )

    def dedupe_key(self) -> tuple[str, str, int, int]:
        return (self.rule_id, self.file, self.line_start, self.line_end)

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity,
            "file": self.file,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "message": self.message,
            "evidence": list(self.evidence),
        }


def make_finding(
    config: EngineConfig,
    rule_id: str,
    file: str,
    lines: tuple[int, int],
    message: str,
    evidence: tuple[str, ...] | list[str] = (),
    *,
    severity: str | None = None,
) -> Finding | None:
    """Build a finding honoring the rule's enabled flag and severity override.

    Returns ``None`` when the rule is disabled.  An explicit *severity*
    replaces the catalog default, but a configured override still wins.
    """
    setting = config.rule_setting(rule_id)
    if not setting.enabled:
        return None
    resolved = setting.severity_override or severity or RULE_CATALOG[rule_id].default_severity
    return Finding(
        rule_id=rule_id,
        severity=resolved,
        file=file,
        line_start=lines[0],
        line_end=lines[1],
        message=message,
        evidence=tuple(evidence),
    )
