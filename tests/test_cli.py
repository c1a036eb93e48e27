"""Tests for the goldtest CLI: run, rules and template commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from goldtest import __version__
from goldtest.analysis.docstrings import parse_docstring
from goldtest.cli import main
from goldtest.findings import RULE_CATALOG

if TYPE_CHECKING:
    from pathlib import Path

INVOICE = """
def compute_total(lines, discount=0.0):
    return sum(lines) * (1 - discount)
"""

GOOD_TEST = '''
from billing.invoice import compute_total


def test_compute_total_with_discount_returns_discounted_sum():
    """Discount is applied to the order subtotal.

    Validates: orders get the configured discount
    Code: billing/invoice.py::compute_total
    Asserts: the total equals the subtotal minus 10%
    Method: compute the total with a 0.1 discount
    """
    assert compute_total([10, 20], discount=0.1) == 27
'''

SHAPE_TEST = '''
from billing.invoice import compute_total


def test_compute_total_when_called_returns_number():
    """Total is a number.

    Validates: totals are numeric
    Code: billing/invoice.py::compute_total
    Asserts: the total is a float
    Method: call compute_total
    """
    assert isinstance(compute_total([1]), float)
'''


@pytest.fixture()
def clean_repo(make_repo) -> Path:
    return make_repo({"billing/invoice.py": INVOICE, "billing/test_invoice.py": GOOD_TEST})


@pytest.fixture()
def failing_repo(make_repo) -> Path:
    return make_repo({"billing/invoice.py": INVOICE, "billing/test_invoice.py": SHAPE_TEST})


# ---------------------------------------------------------------------------
# goldtest run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_clean_repo_exits_zero(self, clean_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(clean_repo), "--format", "text"])
        assert result.exit_code == 0, result.output
        assert "\u2713 No findings" in result.output
        assert "Files: 2 scanned, 1 test unit analyzed" in result.output

    def test_violation_exits_one(self, failing_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(failing_repo), "--format", "text"])
        assert result.exit_code == 1
        assert "\u2717 shape-only-test (1)" in result.output

    def test_json_format(self, failing_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(failing_repo), "--format", "json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert [f["rule_id"] for f in data["findings"]] == ["shape-only-test"]
        assert data["summary"]["exit_status"] == 1

    def test_porcelain_is_default_when_piped(self, failing_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(failing_repo)])
        assert result.exit_code == 1
        line = result.stdout.strip()
        assert line.startswith("billing/test_invoice.py:4:")
        assert ":error:shape-only-test:" in line

    def test_no_findings_at_fail_on_info_exits_zero(self, failing_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["run", str(failing_repo), "--rules", "naming-intent", "--fail-on", "info"]
        )
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_rules_option_restricts(self, failing_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["run", str(failing_repo), "--rules", "over-mocking", "--format", "json"]
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["findings"] == []

    def test_rules_option_keeps_parse_failures(self, make_repo) -> None:
        root = make_repo(
            {
                "billing/invoice.py": INVOICE,
                "billing/test_broken.py": "def test_broken(:\n    pass\n",
            }
        )
        runner = CliRunner()
        result = runner.invoke(
            main, ["run", str(root), "--rules", "shape-only-test", "--format", "porcelain"]
        )
        assert result.exit_code == 1
        assert result.stdout.startswith("billing/test_broken.py:1:1:error:parse-failure:")

    def test_unknown_rule_is_config_error(self, clean_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(clean_repo), "--rules", "no-such-rule"])
        assert result.exit_code == 2
        assert "Error:" in result.output
        assert "no-such-rule" in result.output

    def test_invalid_config_file_exits_two(self, clean_repo: Path) -> None:
        (clean_repo / ".goldtest.yml").write_text("version: 2\n")
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(clean_repo)])
        assert result.exit_code == 2
        assert "unsupported version 2" in result.output

    def test_explicit_config_file(self, failing_repo: Path, tmp_path: Path) -> None:
        config = tmp_path / "strict.yml"
        config.write_text("rules:\n  shape-only-test:\n    severity: info\n")
        runner = CliRunner()
        result = runner.invoke(
            main, ["run", str(failing_repo), "--config", str(config), "--format", "json"]
        )
        assert result.exit_code == 0
        findings = json.loads(result.stdout)["findings"]
        assert [(f["rule_id"], f["severity"]) for f in findings] == [("shape-only-test", "info")]

    def test_jobs_option(self, clean_repo: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(clean_repo), "-j", "2", "--format", "text"])
        assert result.exit_code == 0

    def test_missing_path(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["run", str(tmp_path / "nope")])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# goldtest rules / template / --version
# ---------------------------------------------------------------------------


class TestRulesCommand:
    def test_json_lists_catalog(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [entry["rule_id"] for entry in data] == list(RULE_CATALOG)
        shape = next(entry for entry in data if entry["rule_id"] == "shape-only-test")
        assert shape["severity"] == "error"

    def test_table(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["rules"])
        assert result.exit_code == 0
        assert "goldtest rules" in result.output


class TestTemplateCommand:
    def test_standard_template_is_complete(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["template"])
        assert result.exit_code == 0
        doc = parse_docstring(result.output)
        assert doc.template == "standard"
        assert doc.missing_fields() == []
        assert "    1. Arrange the inputs." in result.output

    def test_regression_template_is_complete(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["template", "--regression"])
        assert result.exit_code == 0
        doc = parse_docstring(result.output)
        assert doc.template == "regression"
        assert doc.missing_fields() == []


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
