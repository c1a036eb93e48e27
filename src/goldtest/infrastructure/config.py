"""Configuration resolver: parse .goldtest.yml, validate, and freeze it for the run."""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from goldtest.findings import ENGINE_RULES, RULE_CATALOG, SEVERITIES

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".goldtest.yml"
SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})


class ConfigError(ValueError):
    """Raised when the rule configuration is missing, unreadable or malformed."""


# ---------------------------------------------------------------------------
# Default pattern sets (one per language)
# ---------------------------------------------------------------------------

# Shared <behavior>_<condition>_<expected> shape, applied to the snake_case
# form of a test name after its framework prefix is stripped.
DEFAULT_NAMING_PATTERN = (
    r"^(?P<behavior>[a-z0-9]+(?:_[a-z0-9]+)*?)"
    r"_(?P<condition>(?:when|with|without|given|if|on|for|after|before|under|during|from|"
    r"while|unless|once)(?:_[a-z0-9]+)+?)"
    r"_(?P<expected>(?:returns?|raises?|is|are|has|have|yields?|should|produces?|rejects?|"
    r"accepts?|creates?|emits?|fails?|succeeds?|equals?|keeps?|skips?|sets?|gives?|throws?|"
    r"errors?|stays?|becomes?|matches|contains?|includes?|excludes?|stores?|sends?|logs?|"
    r"ignores?|preserves?|updates?|removes?|adds?|does|not|never|only|reports?|"
    r"computes?|allows?|denies|blocks?)(?:_[a-z0-9]+)*)$"
)

_PYTHON_DEFAULTS: dict[str, Any] = {
    "extensions": [".py"],
    "discovery": "named",
    "docstring_style": "body-string",
    "test_function_pattern": r"^test",
    "test_class_pattern": r"^Test",
    "test_call_names": [],
    "suite_call_names": [],
    "name_prefix_pattern": r"^test_?",
    "marker_pattern": r"^pytest\.mark\.(\w+)",
    "naming_pattern": DEFAULT_NAMING_PATTERN,
    "assertion_call_patterns": [
        r"^self\.assert\w*$",
        r"^self\.fail$",
        r"^pytest\.(raises|warns|fail)$",
        r"(^|\.)assert_\w+$",
    ],
    "error_check_patterns": [
        r"\bpytest\.raises\(",
        r"\bassertRaises\w*\(",
        r"\bpytest\.warns\(",
    ],
    "type_check_patterns": [
        r"\bisinstance\([^)]*\)",
        r"\bissubclass\([^)]*\)",
        r"\btype\([^)]*\)\s*(?:is|==)\s*[\w.]+",
        r"\bassert(?:Not)?IsInstance\([^)]*\)",
        r"\bcallable\([^)]*\)",
    ],
    "attribute_check_patterns": [
        r"\bhasattr\([^)]*\)",
        r"\bis not None\b",
        r"\bassertIsNotNone\(",
        r"\bin\s+(?:dir|vars)\(",
    ],
    "value_check_patterns": [
        r"(?<![=!<>])==(?!=)",
        r"!=",
        r"\bassert\w*Equal\w*\(",
        r"\bapprox\(",
        r"(^|\.)assert_\w*equal\w*\(",
    ],
    "brittle_patterns": [
        r"\bstr\((?:exc|err|error|e|ex|excinfo|cm)(?:\.value|\.exception)?\)\s*==",
        r"==\s*str\((?:exc|err|error|e|ex|excinfo|cm)(?:\.value|\.exception)?\)",
        r"\bassertEqual\(\s*str\(",
        r"\.(?:message|msg)\s*==",
        r"\bassertRaisesRegex\(",
        r"\bmatch\s*=\s*[rR]?[\"'][^\"']{12,}[\"']",
        r"\b(?:out|err|stdout|stderr|output|captured)\s*==\s*[rRfF]?[\"']",
        r"readouterr\(\)\.(?:out|err)\s*==",
    ],
    "mock_patterns": [
        r"(^|\.)(Mock|MagicMock|AsyncMock|NonCallableMock|NonCallableMagicMock|PropertyMock)$",
        r"(^|\.)(create_autospec|SimpleNamespace)$",
        r"(^|\.)patch(\.object|\.dict|\.multiple)?$",
        r"^mocker\.(patch(\.object|\.dict)?|Mock|MagicMock|AsyncMock|stub|spy)$",
        r"^monkeypatch\.(setattr|setitem|setenv)$",
        r"(^|\.)(Fake|Stub|Dummy|Mock)[A-Z]\w*$",
    ],
    "patch_patterns": [
        r"(^|\.)patch(\.object|\.dict|\.multiple)?$",
        r"^mocker\.patch(\.object|\.dict)?$",
        r"^monkeypatch\.setattr$",
    ],
    "mock_name_patterns": [r"^(mock|fake|stub)(_|$)", r"_(mock|fake|stub)$"],
    "boundary_patterns": [
        r"(^|\.)(os|shutil|subprocess|socket|requests|httpx|urllib|tempfile|random|secrets|"
        r"uuid|time|datetime|pathlib|glob|io|sys)(\.|$)",
        r"(^|\.)(open|Path|sleep|now|utcnow|today|urlopen)$",
        r"\.(read_text|write_text|read_bytes|write_bytes|mkdir|exists)$",
    ],
    "helper_calls": [
        r"^(len|isinstance|issubclass|hasattr|getattr|setattr|str|int|float|bool|list|dict|set|"
        r"tuple|frozenset|type|sorted|reversed|repr|print|range|any|all|sum|min|max|dir|vars|"
        r"callable|iter|next|enumerate|zip|round|abs|id|bytes|super|object)$",
        r"^pytest\.(approx|param|fixture|skip|importorskip|mark\.\w+)$",
        r"^self\.(subTest|addCleanup|skipTest)$",
    ],
    "test_file_patterns": [r"^test_(?P<stem>.+)\.py$", r"^(?P<stem>.+)_test\.py$"],
    "colocation": ["{dir}/test_{stem}{ext}", "{dir}/{stem}_test{ext}"],
}

_TYPESCRIPT_DEFAULTS: dict[str, Any] = {
    "extensions": [".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"],
    "discovery": "call",
    "docstring_style": "leading-comment",
    "test_function_pattern": r"^$",
    "test_class_pattern": r"^$",
    "test_call_names": ["it", "test"],
    "suite_call_names": ["describe", "suite", "context"],
    "name_prefix_pattern": r"^(test|it)_",
    "marker_pattern": r"^$",
    "naming_pattern": DEFAULT_NAMING_PATTERN,
    "assertion_call_patterns": [
        r"^expect(\(\))?$",
        r"^expect\(\)\.",
        r"^assert(\.\w+)?$",
        r"\.should\.",
    ],
    "error_check_patterns": [
        r"\.toThrow\w*\(",
        r"\.rejects\.",
        r"\bassert\.(throws|rejects|doesNotThrow)\(",
    ],
    "type_check_patterns": [
        r"\bexpect\(\s*typeof\b[^)]*\)\.to(?:Be|Equal|StrictEqual)\([^)]*\)",
        r"\.toBeInstanceOf\([^)]*\)",
        r"\binstanceof\s+[\w.]+",
        r"\bArray\.isArray\([^)]*\)",
    ],
    "attribute_check_patterns": [
        r"\.toHaveProperty\(\s*[\"'`][^\"'`]+[\"'`]\s*\)",
        r"\.toBeDefined\(\)",
        r"\.not\.toBe(?:Undefined|Null)\(\)",
        r"\.toBeTruthy\(\)",
    ],
    "value_check_patterns": [
        r"\.(?:toBe|toEqual|toStrictEqual|toBeCloseTo|toMatchObject|toHaveLength)\(",
        r"\.toContainEqual\(",
        r"\.toHaveProperty\([^,)]+,",
        r"\bassert\.(?:equal|strictEqual|deepEqual|deepStrictEqual|notEqual)\(",
        r"===|!==",
    ],
    "brittle_patterns": [
        r"\.toThrow(?:Error)?\(\s*[\"'`]",
        r"\.message\)\.to(?:Be|Equal)\(",
        r"\.to(?:Match|MatchInline)Snapshot\(",
    ],
    "mock_patterns": [
        r"^(jest|vi)\.(fn|mock|spyOn|createMockFromModule)$",
        r"^sinon\.(stub|mock|fake|spy|createStubInstance)$",
        r"(^|\.)(mock|createMock|mockDeep)$",
        r"(^|\.)(Fake|Stub|Mock)[A-Z]\w*$",
    ],
    "patch_patterns": [r"^(jest|vi)\.(mock|spyOn)$", r"^sinon\.stub$"],
    "mock_name_patterns": [r"^(mock|fake|stub)([A-Z_]|$)", r"(Mock|Fake|Stub)$"],
    "boundary_patterns": [
        r"^(fs|path|os|http|https|net|child_process|crypto|process)(\.|$)",
        r"^Date(\.now)?$",
        r"^Math\.random$",
        r"^(fetch|setTimeout|setInterval|axios)(\.|$)",
        r"^performance\.now$",
    ],
    "helper_calls": [
        r"^console\.",
        r"^JSON\.",
        r"^(String|Number|Boolean|Array\.isArray|Object\.(keys|values|entries)|parseInt)$",
        r"^(describe|it|test|beforeEach|afterEach|beforeAll|afterAll)$",
    ],
    "test_file_patterns": [r"^(?P<stem>.+)\.(?:test|spec)\.[cm]?[jt]sx?$"],
    "colocation": [
        "{dir}/{stem}.test{ext}",
        "{dir}/{stem}.spec{ext}",
        "{dir}/__tests__/{stem}.test{ext}",
    ],
}

_GO_DEFAULTS: dict[str, Any] = {
    "extensions": [".go"],
    "discovery": "named",
    "docstring_style": "leading-comment",
    "test_function_pattern": r"^Test[A-Z_]",
    "test_class_pattern": r"^$",
    "test_call_names": [],
    "suite_call_names": [],
    "name_prefix_pattern": r"^Test_?",
    "marker_pattern": r"^$",
    "naming_pattern": DEFAULT_NAMING_PATTERN,
    "assertion_call_patterns": [
        r"^t\.(Error|Errorf|Fatal|Fatalf|Fail|FailNow)$",
        r"^(assert|require)\.\w+$",
    ],
    "error_check_patterns": [
        r"\b(?:assert|require)\.(?:Error|NoError|ErrorIs|ErrorAs|Panics|NotPanics|EqualError)\(",
        r"\berr\s*(?:!=|==)\s*nil\b",
        r"\berrors\.(?:Is|As)\(",
    ],
    "type_check_patterns": [
        r"\b(?:assert|require)\.(?:IsType|Implements)\([^)]*\)",
        r"\breflect\.TypeOf\([^)]*\)",
        r"\.\(type\)",
        r",\s*ok\s*:?=\s*[\w.]+\.\([\w.*]+\)",
    ],
    "attribute_check_patterns": [
        r"\b(?:assert|require)\.(?:NotNil|NotEmpty|NotZero)\(",
        r"\b\w+\s*[!=]=\s*nil\b",
    ],
    "value_check_patterns": [
        r"\b(?:assert|require)\.(?:Equal|EqualValues|NotEqual|InDelta|Len|Exactly)\(",
        r"\b(?:assert|require)\.ElementsMatch\(",
        r"\breflect\.DeepEqual\(",
        r"\bcmp\.Diff\(",
        r"[!=]=",
    ],
    "brittle_patterns": [
        r"\b(?:assert|require)\.EqualError\(",
        r"\.Error\(\)\s*[!=]=\s*\"",
        r"\.String\(\)\s*[!=]=\s*\"",
    ],
    "mock_patterns": [
        r"^gomock\.NewController$",
        r"(^|\.)NewMock\w+$",
        r"\.EXPECT\(\)",
        r"(^|\.)New(Fake|Stub)\w*$",
    ],
    "patch_patterns": [],
    "mock_name_patterns": [r"^(mock|fake|stub)([A-Z_]|$)"],
    "boundary_patterns": [
        r"^(os|io|ioutil|net|http|time|rand|filepath|exec|bufio|url|httptest)\.",
    ],
    "helper_calls": [
        r"^(len|make|append|new|cap|panic|string|int|copy|delete|float64|byte)$",
        r"^(fmt|strings|strconv|context)\.",
        r"^errors\.New$",
        r"^t\.(Run|Helper|Parallel|Log|Logf|Cleanup|Skip|Skipf|TempDir|Setenv)$",
    ],
    "test_file_patterns": [r"^(?P<stem>.+)_test\.go$"],
    "colocation": ["{dir}/{stem}_test{ext}"],
}

DEFAULT_LANGUAGES: dict[str, dict[str, Any]] = {
    "python": _PYTHON_DEFAULTS,
    "typescript": _TYPESCRIPT_DEFAULTS,
    "go": _GO_DEFAULTS,
}

DEFAULT_EXCLUDE: tuple[str, ...] = (
    ".git/**",
    "**/node_modules/**",
    "**/.venv/**",
    "**/venv/**",
    "**/__pycache__/**",
    "**/build/**",
    "**/dist/**",
    "**/vendor/**",
)
DEFAULT_SOURCE_ROOTS: tuple[str, ...] = ("src", "lib", "pkg")
DEFAULT_E2E_PROJECT_GLOBS: tuple[str, ...] = ("e2e/**", "tests/e2e/**", "test/e2e/**")
DEFAULT_E2E_MODULE_GLOBS: tuple[str, ...] = ("**/e2e/**",)
DEFAULT_EXEMPT_TAGS: tuple[str, ...] = ("shape-exempt", "shape_exempt")
DEFAULT_CONTRACT_TAGS: tuple[str, ...] = ("contract",)

_PATTERN_LIST_KEYS: tuple[str, ...] = (
    "assertion_call_patterns",
    "error_check_patterns",
    "type_check_patterns",
    "attribute_check_patterns",
    "value_check_patterns",
    "brittle_patterns",
    "mock_patterns",
    "patch_patterns",
    "mock_name_patterns",
    "boundary_patterns",
    "helper_calls",
    "test_file_patterns",
)
_PATTERN_KEYS: tuple[str, ...] = (
    "test_function_pattern",
    "test_class_pattern",
    "name_prefix_pattern",
    "marker_pattern",
    "naming_pattern",
)
_STRING_LIST_KEYS: tuple[str, ...] = (
    "extensions",
    "test_call_names",
    "suite_call_names",
    "colocation",
)
_VALID_DISCOVERY: frozenset[str] = frozenset({"named", "call"})
_VALID_DOCSTRING_STYLES: frozenset[str] = frozenset({"body-string", "leading-comment"})
_TOP_LEVEL_KEYS: frozenset[str] = frozenset(
    {
        "version",
        "rules",
        "thresholds",
        "exempt_tags",
        "contract_tags",
        "include",
        "exclude",
        "source_roots",
        "jobs",
        "timeouts",
        "placement",
        "languages",
    }
)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleSetting:
    """Per-rule switch and optional severity override."""

    enabled: bool = True
    severity_override: str | None = None


@dataclass(frozen=True)
class Thresholds:
    """Numeric cut-offs for the heuristic rules."""

    mock_ratio: float = 0.8
    aaa_min_statements: int = 6


@dataclass(frozen=True)
class LanguagePatterns:
    """Recognition policy for one language: discovery, naming, and fact patterns."""

    name: str
    extensions: tuple[str, ...]
    discovery: str  # named | call
    docstring_style: str  # body-string | leading-comment
    test_function_pattern: re.Pattern[str]
    test_class_pattern: re.Pattern[str]
    test_call_names: tuple[str, ...]
    suite_call_names: tuple[str, ...]
    name_prefix_pattern: re.Pattern[str]
    marker_pattern: re.Pattern[str]
    naming_pattern: re.Pattern[str]
    assertion_call_patterns: tuple[re.Pattern[str], ...]
    error_check_patterns: tuple[re.Pattern[str], ...]
    type_check_patterns: tuple[re.Pattern[str], ...]
    attribute_check_patterns: tuple[re.Pattern[str], ...]
    value_check_patterns: tuple[re.Pattern[str], ...]
    brittle_patterns: tuple[re.Pattern[str], ...]
    mock_patterns: tuple[re.Pattern[str], ...]
    patch_patterns: tuple[re.Pattern[str], ...]
    mock_name_patterns: tuple[re.Pattern[str], ...]
    boundary_patterns: tuple[re.Pattern[str], ...]
    helper_calls: tuple[re.Pattern[str], ...]
    test_file_patterns: tuple[re.Pattern[str], ...]
    colocation: tuple[str, ...]

    def is_test_file(self, file_name: str) -> bool:
        return any(p.search(file_name) for p in self.test_file_patterns)

    def test_stem(self, file_name: str) -> str | None:
        """Return the production stem a test file name refers to, if any."""
        for pattern in self.test_file_patterns:
            match = pattern.search(file_name)
            if match is not None and "stem" in match.groupdict():
                return match.group("stem")
        return None


@dataclass(frozen=True)
class EngineConfig:
    """Resolved, read-only configuration for one run."""

    rules: dict[str, RuleSetting] = field(default_factory=dict)
    thresholds: Thresholds = field(default_factory=Thresholds)
    exempt_tags: frozenset[str] = frozenset(DEFAULT_EXEMPT_TAGS)
    contract_tags: frozenset[str] = frozenset(DEFAULT_CONTRACT_TAGS)
    include: tuple[str, ...] = ("**",)
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    source_roots: tuple[str, ...] = DEFAULT_SOURCE_ROOTS
    e2e_module_globs: tuple[str, ...] = DEFAULT_E2E_MODULE_GLOBS
    e2e_project_globs: tuple[str, ...] = DEFAULT_E2E_PROJECT_GLOBS
    languages: dict[str, LanguagePatterns] = field(default_factory=dict)
    jobs: int = 0  # 0 = one worker per CPU
    per_file_timeout: float | None = 30.0
    run_timeout: float | None = None

    def rule_setting(self, rule_id: str) -> RuleSetting:
        return self.rules.get(rule_id, RuleSetting())

    def is_enabled(self, rule_id: str) -> bool:
        return self.rule_setting(rule_id).enabled

    def language_for(self, file_name: str) -> LanguagePatterns | None:
        """Return the pattern set whose extensions cover *file_name*."""
        for patterns in self.languages.values():
            if any(file_name.endswith(ext) for ext in patterns.extensions):
                return patterns
        return None

    def is_excluded(self, rel_path: str) -> bool:
        if not any(glob_match(rel_path, pattern) for pattern in self.include):
            return True
        return any(glob_match(rel_path, pattern) for pattern in self.exclude)

    def worker_count(self) -> int:
        return self.jobs if self.jobs > 0 else (os.cpu_count() or 1)

    def restrict_rules(self, rule_ids: Iterable[str]) -> EngineConfig:
        """Return a copy where only *rule_ids* stay enabled.

        Parse failures and timeouts are reported whatever the selection.
        """
        wanted = set(rule_ids)
        unknown = sorted(wanted - RULE_CATALOG.keys())
        if unknown:
            msg = f"unknown rule id(s): {', '.join(unknown)}"
            raise ConfigError(msg)
        rules = {
            rule_id: dataclasses.replace(
                self.rule_setting(rule_id),
                enabled=rule_id in wanted or rule_id in ENGINE_RULES,
            )
            for rule_id in RULE_CATALOG
        }
        return dataclasses.replace(self, rules=rules)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def glob_match(rel_path: str, pattern: str) -> bool:
    """fnmatch with a leading ``**/`` also matching zero directories."""
    if fnmatch.fnmatchcase(rel_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:])


def _compile(pattern: object, context: str) -> re.Pattern[str]:
    if not isinstance(pattern, str):
        msg = f"{context}: pattern must be a string, got {type(pattern).__name__}"
        raise ConfigError(msg)
    try:
        return re.compile(pattern)
    except re.error as exc:
        msg = f"{context}: invalid regular expression {pattern!r}: {exc}"
        raise ConfigError(msg) from exc


def _string_list(value: object, context: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"{context} must be a list of strings"
        raise ConfigError(msg)
    return tuple(value)


def _build_language(name: str, data: dict[str, Any]) -> LanguagePatterns:
    context = f"languages.{name}"
    unknown = sorted(
        set(data)
        - set(_PATTERN_LIST_KEYS)
        - set(_PATTERN_KEYS)
        - set(_STRING_LIST_KEYS)
        - {"discovery", "docstring_style"}
    )
    if unknown:
        msg = f"{context}: unknown key(s) {unknown}"
        raise ConfigError(msg)

    discovery = str(data.get("discovery", "named"))
    if discovery not in _VALID_DISCOVERY:
        msg = f"{context}.discovery must be one of {sorted(_VALID_DISCOVERY)}"
        raise ConfigError(msg)
    docstring_style = str(data.get("docstring_style", "leading-comment"))
    if docstring_style not in _VALID_DOCSTRING_STYLES:
        msg = f"{context}.docstring_style must be one of {sorted(_VALID_DOCSTRING_STYLES)}"
        raise ConfigError(msg)

    kwargs: dict[str, Any] = {
        "name": name,
        "discovery": discovery,
        "docstring_style": docstring_style,
    }
    for key in _STRING_LIST_KEYS:
        kwargs[key] = _string_list(data.get(key, []), f"{context}.{key}")
    for key in _PATTERN_KEYS:
        kwargs[key] = _compile(data.get(key, r"^$"), f"{context}.{key}")
    for key in _PATTERN_LIST_KEYS:
        raw = _string_list(data.get(key, []), f"{context}.{key}")
        kwargs[key] = tuple(_compile(p, f"{context}.{key}") for p in raw)

    if not kwargs["extensions"]:
        msg = f"{context}.extensions must not be empty"
        raise ConfigError(msg)
    return LanguagePatterns(**kwargs)


def _parse_rules(data: object) -> dict[str, RuleSetting]:
    if not isinstance(data, dict):
        msg = "'rules' must be a mapping of rule id to settings"
        raise ConfigError(msg)

    settings: dict[str, RuleSetting] = {}
    for rule_id, raw in data.items():
        if rule_id not in RULE_CATALOG:
            msg = f"rules: unknown rule id '{rule_id}', must be one of {sorted(RULE_CATALOG)}"
            raise ConfigError(msg)
        if rule_id in ENGINE_RULES:
            msg = f"rules.{rule_id} cannot be configured: it is always reported as an error"
            raise ConfigError(msg)
        if isinstance(raw, bool):
            settings[rule_id] = RuleSetting(enabled=raw)
            continue
        if not isinstance(raw, dict):
            msg = f"rules.{rule_id} must be a boolean or a mapping"
            raise ConfigError(msg)
        enabled = raw.get("enabled", True)
        if not isinstance(enabled, bool):
            msg = f"rules.{rule_id}.enabled must be a boolean"
            raise ConfigError(msg)
        severity = raw.get("severity")
        if severity is not None and severity not in SEVERITIES:
            msg = (
                f"rules.{rule_id} has invalid severity '{severity}', "
                f"must be one of {list(SEVERITIES)}"
            )
            raise ConfigError(msg)
        settings[rule_id] = RuleSetting(enabled=enabled, severity_override=severity)
    return settings


def _parse_thresholds(data: object) -> Thresholds:
    if not isinstance(data, dict):
        msg = "'thresholds' must be a mapping"
        raise ConfigError(msg)
    defaults = Thresholds()
    try:
        mock_ratio = float(data.get("mock_ratio", defaults.mock_ratio))
        aaa_min = int(data.get("aaa_min_statements", defaults.aaa_min_statements))
    except (TypeError, ValueError) as exc:
        msg = f"thresholds: {exc}"
        raise ConfigError(msg) from exc
    if not 0.0 <= mock_ratio <= 1.0:
        msg = "thresholds.mock_ratio must be between 0.0 and 1.0"
        raise ConfigError(msg)
    if aaa_min < 0:
        msg = "thresholds.aaa_min_statements must be non-negative"
        raise ConfigError(msg)
    return Thresholds(mock_ratio=mock_ratio, aaa_min_statements=aaa_min)


def _parse_timeout(data: dict[str, Any], key: str, default: float | None) -> float | None:
    if key not in data:
        return default
    value = data[key]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        msg = f"timeouts.{key} must be a positive number or null"
        raise ConfigError(msg)
    return float(value)


def _parse_languages(data: object) -> dict[str, LanguagePatterns]:
    overrides: dict[str, Any] = {}
    if data is not None:
        if not isinstance(data, dict):
            msg = "'languages' must be a mapping"
            raise ConfigError(msg)
        overrides = data

    # Extensions of user-defined pattern sets are taken away from the built-in ones.
    claimed = {
        ext
        for name, override in overrides.items()
        if name not in DEFAULT_LANGUAGES and isinstance(override, dict)
        for ext in override.get("extensions") or []
        if isinstance(ext, str)
    }

    languages: dict[str, LanguagePatterns] = {}
    for name in sorted(set(DEFAULT_LANGUAGES) | set(overrides)):
        override = overrides.get(name, {})
        if override is None:
            override = {}
        if override is False:
            continue
        if not isinstance(override, dict):
            msg = f"languages.{name} must be a mapping or false"
            raise ConfigError(msg)
        merged = {**DEFAULT_LANGUAGES.get(name, {}), **override}
        if name in DEFAULT_LANGUAGES and "extensions" not in override:
            merged["extensions"] = [e for e in merged["extensions"] if e not in claimed]
            if not merged["extensions"]:
                logger.debug("languages.%s: every extension is claimed elsewhere", name)
                continue
        languages[name] = _build_language(name, merged)
    return languages


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def default_config() -> EngineConfig:
    """Configuration used when the repository has no config file."""
    return EngineConfig(languages=_parse_languages(None))


def parse_config(data: object) -> EngineConfig:
    """Validate an already-loaded YAML document and build an :class:`EngineConfig`."""
    if data is None:
        return default_config()
    if not isinstance(data, dict):
        msg = "config must be a YAML mapping"
        raise ConfigError(msg)

    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        msg = f"unknown top-level key(s): {unknown}"
        raise ConfigError(msg)

    version = data.get("version", 1)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"unsupported version {version}, expected one of {expected}"
        raise ConfigError(msg)

    timeouts = data.get("timeouts", {})
    if not isinstance(timeouts, dict):
        msg = "'timeouts' must be a mapping"
        raise ConfigError(msg)

    placement = data.get("placement", {})
    if not isinstance(placement, dict):
        msg = "'placement' must be a mapping"
        raise ConfigError(msg)

    jobs = data.get("jobs", 0)
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 0:
        msg = "'jobs' must be a non-negative integer"
        raise ConfigError(msg)

    defaults = EngineConfig()
    return EngineConfig(
        rules=_parse_rules(data.get("rules", {})),
        thresholds=_parse_thresholds(data.get("thresholds", {})),
        exempt_tags=frozenset(
            _string_list(data.get("exempt_tags", list(DEFAULT_EXEMPT_TAGS)), "exempt_tags")
        ),
        contract_tags=frozenset(
            _string_list(data.get("contract_tags", list(DEFAULT_CONTRACT_TAGS)), "contract_tags")
        ),
        include=_string_list(data.get("include", list(defaults.include)), "include"),
        exclude=_string_list(data.get("exclude", list(DEFAULT_EXCLUDE)), "exclude"),
        source_roots=_string_list(
            data.get("source_roots", list(DEFAULT_SOURCE_ROOTS)), "source_roots"
        ),
        e2e_module_globs=_string_list(
            placement.get("e2e_module_globs", list(DEFAULT_E2E_MODULE_GLOBS)),
            "placement.e2e_module_globs",
        ),
        e2e_project_globs=_string_list(
            placement.get("e2e_project_globs", list(DEFAULT_E2E_PROJECT_GLOBS)),
            "placement.e2e_project_globs",
        ),
        languages=_parse_languages(data.get("languages")),
        jobs=jobs,
        per_file_timeout=_parse_timeout(timeouts, "per_file", defaults.per_file_timeout),
        run_timeout=_parse_timeout(timeouts, "run", defaults.run_timeout),
    )


def load_config(root: Path, config_path: Path | None = None) -> EngineConfig:
    """Load the configuration for a repository rooted at *root*.

    Parameters
    ----------
    root:
        Repository root; ``<root>/.goldtest.yml`` is used when present.
    config_path:
        Explicit config file.  Unlike the default location, an explicit
        path that does not exist is an error.

    Raises
    ------
    ConfigError
        When the file cannot be read, is not valid YAML, or fails validation.
    """
    explicit = config_path is not None
    path = config_path if config_path is not None else root / CONFIG_FILENAME

    if not path.is_file():
        if explicit:
            msg = f"config file not found: {path}"
            raise ConfigError(msg)
        logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, root)
        return default_config()

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        msg = f"cannot read {path}: {exc}"
        raise ConfigError(msg) from exc

    try:
        return parse_config(data)
    except ConfigError as exc:
        msg = f"{path.name}: {exc}"
        raise ConfigError(msg) from exc
