"""Tests for goldtest.infrastructure.config: load, validate and freeze .goldtest.yml."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

import pytest

from goldtest.findings import RULE_CATALOG
from goldtest.infrastructure.config import (
    CONFIG_FILENAME,
    ConfigError,
    EngineConfig,
    default_config,
    glob_match,
    load_config,
    parse_config,
)

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_default_config_has_all_languages(self) -> None:
        config = default_config()
        assert set(config.languages) == {"go", "python", "typescript"}

    def test_default_thresholds(self) -> None:
        config = default_config()
        assert config.thresholds.mock_ratio == 0.8
        assert config.thresholds.aaa_min_statements == 6

    def test_every_rule_enabled_by_default(self) -> None:
        config = default_config()
        assert all(config.is_enabled(rule_id) for rule_id in RULE_CATALOG)

    def test_language_for_by_extension(self) -> None:
        config = default_config()
        assert config.language_for("test_invoice.py").name == "python"
        assert config.language_for("invoice.test.tsx").name == "typescript"
        assert config.language_for("invoice_test.go").name == "go"
        assert config.language_for("README.md") is None

    def test_python_test_file_patterns_expose_stem(self) -> None:
        patterns = default_config().languages["python"]
        assert patterns.is_test_file("test_invoice.py")
        assert patterns.is_test_file("invoice_test.py")
        assert not patterns.is_test_file("invoice.py")
        assert patterns.test_stem("test_invoice.py") == "invoice"
        assert patterns.test_stem("invoice_test.py") == "invoice"

    def test_typescript_test_stem(self) -> None:
        patterns = default_config().languages["typescript"]
        assert patterns.test_stem("invoice.spec.ts") == "invoice"
        assert patterns.test_stem("invoice.ts") is None

    def test_config_is_frozen(self) -> None:
        config = default_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.jobs = 4  # type: ignore[misc]


# ---------------------------------------------------------------------------
# parse_config
# ---------------------------------------------------------------------------


class TestParseConfig:
    def test_none_gives_defaults(self) -> None:
        assert parse_config(None) == default_config()

    def test_rule_disabled_with_boolean(self) -> None:
        config = parse_config({"rules": {"naming-intent": False}})
        assert not config.is_enabled("naming-intent")
        assert config.is_enabled("shape-only-test")

    def test_rule_severity_override(self) -> None:
        config = parse_config({"rules": {"over-mocking": {"severity": "error"}}})
        setting = config.rule_setting("over-mocking")
        assert setting.enabled
        assert setting.severity_override == "error"

    def test_unknown_rule_id_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unknown rule id 'no-such-rule'"):
            parse_config({"rules": {"no-such-rule": True}})

    def test_invalid_severity_rejected(self) -> None:
        with pytest.raises(ConfigError, match="invalid severity"):
            parse_config({"rules": {"over-mocking": {"severity": "fatal"}}})

    @pytest.mark.parametrize(
        "setting",
        [False, {"enabled": False}, {"severity": "warning"}],
    )
    @pytest.mark.parametrize("rule_id", ["parse-failure", "parse-timeout"])
    def test_engine_rules_cannot_be_configured(self, rule_id: str, setting: object) -> None:
        with pytest.raises(ConfigError, match=f"rules.{rule_id} cannot be configured"):
            parse_config({"rules": {rule_id: setting}})

    def test_thresholds_parsed(self) -> None:
        config = parse_config({"thresholds": {"mock_ratio": 0.5, "aaa_min_statements": 10}})
        assert config.thresholds.mock_ratio == 0.5
        assert config.thresholds.aaa_min_statements == 10

    def test_mock_ratio_out_of_range(self) -> None:
        with pytest.raises(ConfigError, match="mock_ratio"):
            parse_config({"thresholds": {"mock_ratio": 1.5}})

    def test_non_numeric_threshold(self) -> None:
        with pytest.raises(ConfigError, match="thresholds"):
            parse_config({"thresholds": {"aaa_min_statements": "many"}})

    def test_unsupported_version(self) -> None:
        with pytest.raises(ConfigError, match="unsupported version 2"):
            parse_config({"version": 2})

    def test_unknown_top_level_key(self) -> None:
        with pytest.raises(ConfigError, match="unknown top-level key"):
            parse_config({"rule": {}})

    def test_non_mapping_document(self) -> None:
        with pytest.raises(ConfigError, match="YAML mapping"):
            parse_config(["rules"])

    def test_timeouts(self) -> None:
        config = parse_config({"timeouts": {"per_file": 5, "run": None}})
        assert config.per_file_timeout == 5.0
        assert config.run_timeout is None

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ConfigError, match="timeouts.per_file"):
            parse_config({"timeouts": {"per_file": -1}})

    def test_jobs_must_be_non_negative_int(self) -> None:
        assert parse_config({"jobs": 3}).jobs == 3
        with pytest.raises(ConfigError, match="jobs"):
            parse_config({"jobs": -2})

    def test_placement_globs(self) -> None:
        config = parse_config({"placement": {"e2e_project_globs": ["acceptance/**"]}})
        assert config.e2e_project_globs == ("acceptance/**",)

    def test_language_can_be_disabled(self) -> None:
        config = parse_config({"languages": {"go": False}})
        assert "go" not in config.languages
        assert config.language_for("invoice_test.go") is None

    def test_language_override_merges_with_defaults(self) -> None:
        config = parse_config(
            {"languages": {"python": {"colocation": ["tests/{dir}/test_{stem}{ext}"]}}}
        )
        python = config.languages["python"]
        assert python.colocation == ("tests/{dir}/test_{stem}{ext}",)
        assert python.discovery == "named"

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ConfigError, match="invalid regular expression"):
            parse_config({"languages": {"python": {"mock_patterns": ["(unclosed"]}}})

    def test_unknown_language_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unknown key"):
            parse_config({"languages": {"python": {"mock_pattern": ["x"]}}})

    def test_invalid_discovery_rejected(self) -> None:
        with pytest.raises(ConfigError, match="discovery"):
            parse_config({"languages": {"python": {"discovery": "magic"}}})

    def test_custom_language_claims_extensions_from_defaults(self) -> None:
        scripts = {"extensions": [".js", ".mjs"], "discovery": "call"}
        config = parse_config({"languages": {"scripts": scripts}})
        assert config.language_for("invoice.test.js").name == "scripts"
        assert config.language_for("invoice.test.ts").name == "typescript"
        assert ".js" not in config.languages["typescript"].extensions

    def test_explicit_default_extensions_are_kept(self) -> None:
        config = parse_config(
            {
                "languages": {
                    "scripts": {"extensions": [".js"]},
                    "typescript": {"extensions": [".ts", ".js"]},
                }
            }
        )
        assert ".js" in config.languages["typescript"].extensions


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_missing_default_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == default_config()

    def test_reads_config_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text(
            "version: 1\nrules:\n  naming-intent: false\nexempt_tags: [legacy]\n"
        )
        config = load_config(tmp_path)
        assert not config.is_enabled("naming-intent")
        assert config.exempt_tags == frozenset({"legacy"})

    def test_explicit_missing_path_is_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path, tmp_path / "nope.yml")

    def test_invalid_yaml_is_config_error(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("rules: [unclosed\n")
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path)

    def test_validation_error_names_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("version: 7\n")
        with pytest.raises(ConfigError, match=r"\.goldtest\.yml: unsupported version"):
            load_config(tmp_path)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestRestrictRules:
    def test_only_selected_rules_stay_enabled(self) -> None:
        config = default_config().restrict_rules(["shape-only-test"])
        assert config.is_enabled("shape-only-test")
        assert not config.is_enabled("naming-intent")

    def test_parse_failures_and_timeouts_stay_enabled(self) -> None:
        config = default_config().restrict_rules(["shape-only-test"])
        assert config.is_enabled("parse-failure")
        assert config.is_enabled("parse-timeout")

    def test_restrict_keeps_severity_override(self) -> None:
        base = parse_config({"rules": {"over-mocking": {"severity": "error"}}})
        config = base.restrict_rules(["over-mocking"])
        assert config.rule_setting("over-mocking").severity_override == "error"

    def test_unknown_id_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unknown rule id"):
            default_config().restrict_rules(["shape-only"])


class TestGlobMatch:
    def test_double_star_prefix_matches_root(self) -> None:
        assert glob_match("node_modules/x.js", "**/node_modules/**")
        assert glob_match("web/node_modules/x.js", "**/node_modules/**")

    def test_plain_pattern(self) -> None:
        assert glob_match("tests/e2e/test_flow.py", "tests/e2e/**")
        assert not glob_match("billing/e2e/test_flow.py", "tests/e2e/**")

    def test_excluded_paths(self) -> None:
        config = EngineConfig()
        assert config.is_excluded("web/node_modules/lib/a.test.ts")
        assert not config.is_excluded("billing/test_invoice.py")
