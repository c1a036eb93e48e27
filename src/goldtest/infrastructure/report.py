"""Aggregator and reporters: dedupe, order, count, and format findings."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from goldtest.findings import RULE_CATALOG, SEVERITIES, severity_rank

if TYPE_CHECKING:
    from collections.abc import Iterable

    from goldtest.findings import Finding

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ENGINE_FAILURE = 2


@dataclass(frozen=True)
class Report:
    """Aggregated, ordered result of one run."""

    findings: tuple[Finding, ...]
    counts: dict[str, int] = field(default_factory=dict)  # rule_id -> count, sorted by rule_id
    exit_status: int = EXIT_OK
    fail_on: str = "error"
    files_scanned: int = 0
    units_analyzed: int = 0
    engine_errors: tuple[str, ...] = ()

    def severity_counts(self) -> dict[str, int]:
        counter = Counter(f.severity for f in self.findings)
        return {severity: counter.get(severity, 0) for severity in SEVERITIES}


def aggregate(
    findings: Iterable[Finding],
    *,
    fail_on: str = "error",
    files_scanned: int = 0,
    units_analyzed: int = 0,
    engine_errors: Iterable[str] = (),
) -> Report:
    """Deduplicate and order findings, then decide the run's exit status.

    Identical ``(rule_id, file, line range)`` findings collapse to the first
    under the total order of :meth:`Finding.sort_key`, so the result does
    not depend on the order findings arrived in.

    Exit status is 2 when the engine itself failed, 1 when any finding is
    at or above *fail_on*, else 0.
    """
    if fail_on not in SEVERITIES:
        msg = f"fail_on must be one of {list(SEVERITIES)}, got '{fail_on}'"
        raise ValueError(msg)

    seen: set[tuple[str, str, int, int]] = set()
    unique: list[Finding] = []
    for finding in sorted(findings, key=lambda f: f.sort_key()):
        key = finding.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)

    counter = Counter(f.rule_id for f in unique)
    counts = {rule_id: counter[rule_id] for rule_id in sorted(counter)}

    errors = tuple(sorted(engine_errors))
    threshold = severity_rank(fail_on)
    if errors:
        status = EXIT_ENGINE_FAILURE
    elif any(severity_rank(f.severity) >= threshold for f in unique):
        status = EXIT_VIOLATIONS
    else:
        status = EXIT_OK

    return Report(
        findings=tuple(unique),
        counts=counts,
        exit_status=status,
        fail_on=fail_on,
        files_scanned=files_scanned,
        units_analyzed=units_analyzed,
        engine_errors=errors,
    )


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _location(finding: Finding) -> str:
    if finding.line_end != finding.line_start:
        return f"{finding.file}:{finding.line_start}-{finding.line_end}"
    return f"{finding.file}:{finding.line_start}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_text(report: Report) -> str:
    """Format a Report as a human-readable summary grouped by rule.

    Example output::

        Files: 12 scanned, 40 test units analyzed

        x shape-only-test (1)
          Every assertion checks types or attribute presence, never values
          tests/test_user.py:4-6 [error] 'test_user_has_name' only checks ...
            - shape-score=1.00 over 1 assertion(s)

        1 finding (1 error, 0 warnings, 0 info) - failing at 'error'
    """
    lines: list[str] = [
        f"Files: {report.files_scanned} scanned, "
        f"{_plural(report.units_analyzed, 'test unit')} analyzed",
        "",
    ]

    for rule_id, count in report.counts.items():
        info = RULE_CATALOG.get(rule_id)
        lines.append(f"\u2717 {rule_id} ({count})")
        if info is not None:
            lines.append(f"  {info.description}")
        for finding in report.findings:
            if finding.rule_id != rule_id:
                continue
            lines.append(f"  {_location(finding)} [{finding.severity}] {finding.message}")
            lines.extend(f"    - {item}" for item in finding.evidence)
        lines.append("")

    if report.engine_errors:
        lines.append("Engine errors:")
        lines.extend(f"  {error}" for error in report.engine_errors)
        lines.append("")

    severities = report.severity_counts()
    breakdown = (
        f"{_plural(severities['error'], 'error')}, "
        f"{_plural(severities['warning'], 'warning')}, {severities['info']} info"
    )
    if report.findings:
        summary = f"{_plural(len(report.findings), 'finding')} ({breakdown})"
    else:
        summary = "\u2713 No findings"
    if report.exit_status == EXIT_VIOLATIONS:
        summary += f" - failing at '{report.fail_on}'"
    elif report.exit_status == EXIT_ENGINE_FAILURE:
        summary += " - engine errors occurred"
    lines.append(summary)
    return "\n".join(lines)


def format_json(report: Report) -> str:
    """Format a Report as JSON with a ``findings`` array and a ``summary`` object."""
    output: dict[str, object] = {
        "findings": [f.to_dict() for f in report.findings],
        "summary": {
            "files_scanned": report.files_scanned,
            "units_analyzed": report.units_analyzed,
            "findings_count": len(report.findings),
            "by_rule": report.counts,
            "by_severity": report.severity_counts(),
            "fail_on": report.fail_on,
            "exit_status": report.exit_status,
            "engine_errors": list(report.engine_errors),
        },
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def format_porcelain(report: Report) -> str:
    """One line per finding: ``file:line_start:line_end:severity:rule_id:message``.

    Returns an empty string when there are no findings.
    """
    return "\n".join(
        f"{f.file}:{f.line_start}:{f.line_end}:{f.severity}:{f.rule_id}:{f.message}"
        for f in report.findings
    )


FORMATTERS = {
    "text": format_text,
    "json": format_json,
    "porcelain": format_porcelain,
}
