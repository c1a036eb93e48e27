"""Tests for goldtest.analysis.facts: FactSheet extraction and assertion classification."""

from __future__ import annotations

import pytest
from conftest import analyze_source

from goldtest.adapters.syntax import CallInfo, Statement
from goldtest.analysis.facts import (
    Assertion,
    CallSite,
    FactSheet,
    _patch_target,
    arrange_act_assert,
    classify_assertion,
)
from goldtest.infrastructure.config import default_config

PYTHON = default_config().languages["python"]
TYPESCRIPT = default_config().languages["typescript"]
GO = default_config().languages["go"]


def _sheet(text: str, path: str = "tests/test_invoice.py", **kwargs):
    _, _, results = analyze_source(text, path, **kwargs)
    assert len(results) == 1
    return results[0][1]


# ---------------------------------------------------------------------------
# FactSheet properties
# ---------------------------------------------------------------------------


class TestFactSheet:
    def test_shape_score_is_zero_without_assertions(self) -> None:
        assert FactSheet(unit_name="t").shape_score == 0.0

    def test_shape_score_fraction(self) -> None:
        sheet = FactSheet(
            unit_name="t",
            assertions=(
                Assertion("type-check", False, 1),
                Assertion("value-equality", True, 2),
            ),
        )
        assert sheet.shape_score == 0.5

    def test_mock_ratio_ignores_boundaries(self) -> None:
        sheet = FactSheet(
            unit_name="t",
            call_sites=(
                CallSite(
                    "time.time", 1, is_mocked=True, is_system_under_test=False, is_boundary=True
                ),
                CallSite("repo.load", 2, is_mocked=True, is_system_under_test=False),
                CallSite("compute", 3, is_mocked=False, is_system_under_test=True),
            ),
        )
        assert len(sheet.collaborators) == 2
        assert sheet.mock_ratio == 0.5

    def test_modules_only_from_real_calls(self) -> None:
        sheet = FactSheet(
            unit_name="t",
            call_sites=(
                CallSite("a", 1, is_mocked=False, is_system_under_test=True, module="billing"),
                CallSite("b", 2, is_mocked=True, is_system_under_test=False, module="shipping"),
            ),
        )
        assert sheet.modules == frozenset({"billing"})

    def test_summary(self) -> None:
        sheet = FactSheet(unit_name="t", arrange_act_separated=True)
        assert sheet.summary() == (
            "assertions=0 shape-score=0.00 mock-ratio=0.00 arrange-act-assert=yes"
        )


# ---------------------------------------------------------------------------
# Assertion classification
# ---------------------------------------------------------------------------


class TestClassifyAssertion:
    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ("assert total == 27", "value-equality"),
            ("assert len(items) == 2", "value-equality"),
            ("assert type(user) == User", "type-check"),
            ("assert isinstance(user, User)", "type-check"),
            ("assert hasattr(user, 'name')", "attribute-existence"),
            ("assert user.name is not None", "attribute-existence"),
            ("assert isinstance(x, int) and x == 3", "value-equality"),
            ("assert cart.is_empty()", "state-check"),
            ("with pytest.raises(ValueError):", "error-check"),
        ],
    )
    def test_python(self, text: str, kind: str) -> None:
        assert classify_assertion(text, PYTHON) == kind

    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ("expect(total).toBe(27);", "value-equality"),
            ('expect(typeof total).toBe("number");', "type-check"),
            ("expect(user).toHaveProperty('name');", "attribute-existence"),
            ('expect(() => parse("x")).toThrow();', "error-check"),
        ],
    )
    def test_typescript(self, text: str, kind: str) -> None:
        assert classify_assertion(text, TYPESCRIPT) == kind

    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ('if got != 27 t.Errorf("got %d", got)', "value-equality"),
            ("if err != nil t.Fatal(err)", "error-check"),
            ("assert.NotNil(t, user)", "attribute-existence"),
        ],
    )
    def test_go(self, text: str, kind: str) -> None:
        assert classify_assertion(text, GO) == kind


# ---------------------------------------------------------------------------
# Arrange / act / assert
# ---------------------------------------------------------------------------


def _stmt(line: int, calls: tuple[str, ...] = ()) -> Statement:
    return Statement(
        line=line,
        end_line=line,
        kind="expression",
        text="",
        calls=tuple(CallInfo(target=c, line=line) for c in calls),
    )


class TestArrangeActAssert:
    def test_arrange_then_action_then_asserts(self) -> None:
        statements = (_stmt(1, ("Cart",)), _stmt(2, ("cart.checkout",)), _stmt(3))
        assert arrange_act_assert([False, False, True], statements)

    def test_needs_an_arrange_step(self) -> None:
        statements = (_stmt(1, ("cart.checkout",)), _stmt(2))
        assert not arrange_act_assert([False, True], statements)

    def test_interleaved_assertions_break_the_shape(self) -> None:
        statements = tuple(_stmt(i, ("f",)) for i in range(5))
        assert not arrange_act_assert([False, False, True, False, True], statements)

    def test_action_must_be_a_call(self) -> None:
        statements = (_stmt(1, ("Cart",)), _stmt(2), _stmt(3))
        assert not arrange_act_assert([False, False, True], statements)


# ---------------------------------------------------------------------------
# Patch targets
# ---------------------------------------------------------------------------


class TestPatchTarget:
    def test_string_target(self) -> None:
        call = CallInfo("patch", 1, ('"billing.invoice.fetch_rate"', "return_value=2"))
        assert _patch_target(call) == "billing.invoice.fetch_rate"

    def test_object_and_attribute(self) -> None:
        call = CallInfo("patch.object", 1, ("invoice", '"fetch_rate"'))
        assert _patch_target(call) == "invoice.fetch_rate"

    def test_monkeypatch_setattr(self) -> None:
        call = CallInfo("monkeypatch.setattr", 1, ("invoice", '"fetch_rate"', "lambda: 2"))
        assert _patch_target(call) == "invoice.fetch_rate"

    def test_no_arguments(self) -> None:
        assert _patch_target(CallInfo("patch", 1)) is None


# ---------------------------------------------------------------------------
# Extraction (Python)
# ---------------------------------------------------------------------------


class TestExtractPython:
    def test_real_computation_with_value_assertion(self) -> None:
        sheet = _sheet(
            """
            from billing.invoice import compute_total


            def test_compute_total_with_discount_returns_discounted_sum():
                assert compute_total([10, 20], discount=0.1) == 27
            """,
            production_files=("billing/invoice.py",),
        )
        assert [a.kind for a in sheet.assertions] == ["value-equality"]
        assert sheet.assertions[0].subject_is_real_computation
        assert [c.target for c in sheet.call_sites] == ["compute_total"]
        assert sheet.call_sites[0].is_system_under_test
        assert sheet.mock_ratio == 0.0
        assert sheet.modules == frozenset({"billing"})
        assert not sheet.incomplete

    def test_shape_only_assertions(self) -> None:
        sheet = _sheet(
            """
            from types import SimpleNamespace


            def test_checks_user_has_name_field():
                user = SimpleNamespace(name="ada")
                assert hasattr(user, "name")
                assert isinstance(user.name, str)
            """
        )
        assert [a.kind for a in sheet.assertions] == ["attribute-existence", "type-check"]
        assert sheet.shape_score == 1.0
        assert "user" in sheet.mocked_names
        assert not any(a.subject_is_real_computation for a in sheet.assertions)

    def test_boundary_patches_are_not_collaborators(self) -> None:
        sheet = _sheet(
            """
            from unittest.mock import patch

            from billing.invoice import compute_total


            @patch("billing.invoice.time.time", return_value=0)
            def test_compute_total_with_frozen_clock_returns_sum(mock_time, tmp_path):
                with patch("builtins.open"):
                    total = compute_total([10, 20])
                assert total == 30
            """,
            production_files=("billing/invoice.py",),
        )
        boundaries = {c.target for c in sheet.call_sites if c.is_boundary}
        assert boundaries == {"billing.invoice.time.time", "builtins.open"}
        assert [c.target for c in sheet.collaborators] == ["compute_total"]
        assert sheet.mock_ratio == 0.0
        assert "mock_time" in sheet.mocked_names
        assert sheet.assertions[0].subject_is_real_computation

    def test_mocked_collaborators_counted(self) -> None:
        sheet = _sheet(
            """
            from unittest.mock import Mock

            from billing.service import InvoiceService


            def test_send_invoice_when_due_sends_email():
                repo = Mock()
                mailer = Mock()
                service = InvoiceService(repo, mailer)
                repo.load("inv-1")
                repo.lock("inv-1")
                mailer.connect()
                mailer.send("ada@example.com")
                mailer.send.assert_called_once_with("ada@example.com")
            """,
            production_files=("billing/service.py",),
        )
        mocked = sorted(c.target for c in sheet.call_sites if c.is_mocked)
        assert mocked == ["mailer.connect", "mailer.send", "repo.load", "repo.lock"]
        assert sheet.mock_ratio == pytest.approx(0.8)
        assert {"repo", "mailer"} <= sheet.mocked_names
        assert sheet.modules == frozenset({"billing"})
        assert sheet.arrange_act_separated

    def test_patch_target_marks_imported_name_mocked(self) -> None:
        sheet = _sheet(
            """
            from unittest.mock import patch

            from billing.invoice import compute_total, fetch_rate


            def test_compute_total_with_patched_rate_returns_scaled_sum():
                with patch("billing.invoice.fetch_rate", return_value=2):
                    rate = fetch_rate()
                    total = compute_total([1, 2])
                assert total == 3 * rate
            """,
            production_files=("billing/invoice.py",),
        )
        mocked = {c.target for c in sheet.call_sites if c.is_mocked}
        assert mocked == {"billing.invoice.fetch_rate", "fetch_rate"}
        assert "fetch_rate" in sheet.mocked_names
        assert sheet.modules == frozenset({"billing"})

    def test_error_check_from_context_manager(self) -> None:
        sheet = _sheet(
            """
            import pytest

            from billing.parse import parse_amount


            def test_parse_amount_with_letters_raises_value_error():
                with pytest.raises(ValueError) as excinfo:
                    parse_amount("abc")
                assert str(excinfo.value) == "invalid amount: abc"
            """,
            production_files=("billing/parse.py",),
        )
        assert [a.kind for a in sheet.assertions] == ["error-check", "value-equality"]
        assert sheet.statement_count == 3

    def test_empty_body_is_incomplete(self) -> None:
        sheet = _sheet(
            """
            def test_placeholder():
                pass
            """
        )
        assert sheet.incomplete
        assert sheet.assertions == ()
        assert sheet.call_sites == ()

    def test_third_party_imports_do_not_count_as_modules(self) -> None:
        sheet = _sheet(
            """
            import json

            from billing.invoice import render


            def test_render_with_lines_returns_json():
                payload = render([1])
                assert json.loads(payload) == {"lines": [1]}
            """,
            production_files=("billing/invoice.py",),
        )
        assert sheet.modules == frozenset({"billing"})
        sut = [c.target for c in sheet.call_sites if c.is_system_under_test]
        assert sut == ["render"]


# ---------------------------------------------------------------------------
# Extraction (TypeScript, Go)
# ---------------------------------------------------------------------------


class TestExtractOtherLanguages:
    def test_typescript_expect_chain(self) -> None:
        sheet = _sheet(
            """
            import { computeTotal } from "../src/billing/invoice";

            describe("invoice", () => {
              it("computes total with discount returns sum", () => {
                const total = computeTotal([10, 20], 0.1);
                expect(total).toBe(27);
              });
            });
            """,
            "tests/invoice.test.ts",
            production_files=("src/billing/invoice.ts",),
        )
        assert [a.kind for a in sheet.assertions] == ["value-equality"]
        assert sheet.assertions[0].subject_is_real_computation
        assert [c.target for c in sheet.call_sites] == ["computeTotal"]
        assert sheet.modules == frozenset({"billing"})

    def test_typescript_jest_fn_is_mock(self) -> None:
        sheet = _sheet(
            """
            import { sendInvoice } from "../src/billing/send";

            it("sends invoice when due calls mailer", () => {
              const send = jest.fn();
              send("x");
              sendInvoice(send);
              expect(send).toHaveBeenCalled();
            });
            """,
            "tests/send.test.ts",
            production_files=("src/billing/send.ts",),
        )
        assert "send" in sheet.mocked_names
        mocked = [c.target for c in sheet.call_sites if c.is_mocked]
        assert mocked == ["send"]
        assert sheet.mock_ratio == pytest.approx(0.5)

    def test_go_guarded_error_call_is_assertion(self) -> None:
        sheet = _sheet(
            """
            package billing

            import "testing"

            func TestComputeTotalWithDiscountReturnsSum(t *testing.T) {
            	got := ComputeTotal([]int{10, 20}, 0.1)
            	if got != 27 {
            		t.Errorf("got %d", got)
            	}
            }
            """,
            "billing/invoice_test.go",
            production_files=("billing/invoice.go",),
        )
        assert [a.kind for a in sheet.assertions] == ["value-equality"]
        assert sheet.assertions[0].subject_is_real_computation
        assert [c.target for c in sheet.call_sites] == ["ComputeTotal"]

    def test_go_error_check(self) -> None:
        sheet = _sheet(
            """
            package billing

            import "testing"

            func TestParseAmountWithLettersReturnsError(t *testing.T) {
            	_, err := ParseAmount("abc")
            	if err == nil {
            		t.Fatal("expected error")
            	}
            }
            """,
            "billing/parse_test.go",
            production_files=("billing/parse.go",),
        )
        assert [a.kind for a in sheet.assertions] == ["error-check"]
