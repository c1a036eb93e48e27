"""Analysis domain: fact extraction, rule engine, docstring and placement checks."""

from goldtest.analysis.context import RepoContext, module_of_path
from goldtest.analysis.docstrings import CodeRef, Docstring, parse_docstring, validate
from goldtest.analysis.facts import Assertion, CallSite, FactSheet, extract
from goldtest.analysis.placement import check, e2e_tier
from goldtest.analysis.rule_engine import (
    RuleEvaluationError,
    UnitResult,
    evaluate_unit,
    register,
    registered_rules,
)

__all__ = [
    "Assertion",
    "CallSite",
    "CodeRef",
    "Docstring",
    "FactSheet",
    "RepoContext",
    "RuleEvaluationError",
    "UnitResult",
    "check",
    "e2e_tier",
    "evaluate_unit",
    "extract",
    "module_of_path",
    "parse_docstring",
    "register",
    "registered_rules",
    "validate",
]
