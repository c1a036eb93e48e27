"""Docstring validator: parse test docstrings against the standard and regression templates."""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from goldtest.adapters.languages import get_lang_config
from goldtest.adapters.syntax import list_symbols
from goldtest.findings import make_finding

if TYPE_CHECKING:
    from pathlib import Path

    from goldtest.adapters.syntax import TestUnit
    from goldtest.analysis.context import RepoContext
    from goldtest.findings import Finding

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------

# Field label -> key.  Labels are matched case-insensitively at line start.
FIELD_LABELS: dict[str, str] = {
    "validates": "validates",
    "code": "code",
    "asserts": "asserts",
    "method": "method",
    "related": "related",
    "regression": "regression",
    "reference": "reference",
}
STANDARD_FIELDS: tuple[str, ...] = ("validates", "code", "asserts", "method")
REGRESSION_FIELDS: tuple[str, ...] = ("regression", "reference", "code", "asserts")
_REGRESSION_MARKERS: frozenset[str] = frozenset({"regression", "reference"})

_FIELD_RE = re.compile(r"^(?P<label>[A-Za-z]+)\s*:(?:\s+(?P<value>.*))?$")
_BULLET_RE = re.compile(r"^(?:[-*]|\d+[.)])\s+")
CODE_REF_RE = re.compile(
    r"^(?P<path>[^\s:]+)::(?P<symbol>[A-Za-z_][\w.]*)"
    r"(?::L?(?P<start>\d+)(?:-L?(?P<end>\d+))?)?$"
)

# ---------------------------------------------------------------------------
# Style heuristics
# ---------------------------------------------------------------------------

_EMOJI_RE = re.compile(
    "["
    "\U0001f000-\U0001faff"  # pictographs, emoticons, transport, supplemental symbols
    "\u2600-\u27bf"  # misc symbols, dingbats
    "\u2b00-\u2bff"  # arrows and stars
    "\ufe0f\u200d"  # variation selector-16, zero width joiner
    "]"
)
_EMOJI_JOINERS = "\ufe0f\u200d"
_WORD_RE = re.compile(r"[^\W\d_]+")
ENGLISH_FUNCTION_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "if", "in",
        "is", "it", "not", "of", "on", "or", "should", "that", "the", "then", "this",
        "to", "when", "with", "without", "returns", "raises",
    }
)  # fmt: skip
NON_ASCII_LIMIT = 0.3


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeRef:
    """``path::Symbol`` with an optional ``:start-end`` line range."""

    path: str
    symbol: str
    line_start: int | None = None
    line_end: int | None = None

    @classmethod
    def parse(cls, text: str) -> CodeRef | None:
        """Parse one reference; ``None`` when the text is not well-formed."""
        match = CODE_REF_RE.match(text.strip().strip("`"))
        if match is None:
            return None
        start = int(match.group("start")) if match.group("start") else None
        end = int(match.group("end")) if match.group("end") else start
        return cls(match.group("path"), match.group("symbol"), start, end)

    def __str__(self) -> str:
        if self.line_start is None:
            return f"{self.path}::{self.symbol}"
        if self.line_end is None or self.line_end == self.line_start:
            return f"{self.path}::{self.symbol}:L{self.line_start}"
        return f"{self.path}::{self.symbol}:L{self.line_start}-L{self.line_end}"


@dataclass(frozen=True)
class Docstring:
    """A parsed test docstring."""

    summary: str
    fields: dict[str, tuple[str, ...]] = field(default_factory=dict)
    field_lines: dict[str, int] = field(default_factory=dict)  # 0-based offset in the text
    item_lines: dict[str, tuple[int, ...]] = field(default_factory=dict)  # per item, same base

    @property
    def template(self) -> str:
        return "regression" if _REGRESSION_MARKERS & self.fields.keys() else "standard"

    @property
    def required_fields(self) -> tuple[str, ...]:
        return REGRESSION_FIELDS if self.template == "regression" else STANDARD_FIELDS

    def missing_fields(self) -> list[str]:
        missing = [] if self.summary else ["summary"]
        missing.extend(key for key in self.required_fields if not self.fields.get(key))
        return missing

    @property
    def code_refs(self) -> tuple[str, ...]:
        return self.fields.get("code", ())

    @property
    def validates(self) -> str:
        return " ".join(self.fields.get("validates", ()))

    @property
    def assertion(self) -> str:
        return " ".join(self.fields.get("asserts", ()))

    @property
    def method_steps(self) -> tuple[str, ...]:
        return self.fields.get("method", ())

    @property
    def related(self) -> tuple[str, ...]:
        return self.fields.get("related", ())


def parse_docstring(text: str) -> Docstring:
    """Split *text* into a summary paragraph and ``Key: value`` fields.

    Lines after a field label belong to that field until the next label;
    bullets (``-``, ``*``) and numbered items (``1.``) become list items,
    other lines are kept as they are.  Unknown labels are plain text.
    """
    summary_lines: list[str] = []
    fields: dict[str, list[str]] = {}
    field_lines: dict[str, int] = {}
    item_lines: dict[str, list[int]] = {}
    current: str | None = None

    for offset, raw in enumerate(text.splitlines()):
        line = raw.strip()
        match = _FIELD_RE.match(line)
        key = FIELD_LABELS.get(match.group("label").lower()) if match else None
        if match is not None and key is not None:
            current = key
            field_lines.setdefault(key, offset)
            items = fields.setdefault(key, [])
            lines = item_lines.setdefault(key, [])
            value = (match.group("value") or "").strip()
            if value:
                items.append(value)
                lines.append(offset)
            continue
        if current is None:
            summary_lines.append(line)
            continue
        if line:
            fields[current].append(_BULLET_RE.sub("", line))
            item_lines[current].append(offset)

    summary = " ".join(part for part in summary_lines if part).strip()
    return Docstring(
        summary=summary,
        fields={key: tuple(items) for key, items in fields.items()},
        field_lines=field_lines,
        item_lines={key: tuple(lines) for key, lines in item_lines.items()},
    )


def render_docstring(doc: Docstring) -> str:
    """Render *doc* back into template text, fields in template order."""
    optional = [k for k in FIELD_LABELS.values() if k not in doc.required_fields]
    order = [*doc.required_fields, *optional]
    lines = [doc.summary, ""]
    for key in order:
        items = doc.fields.get(key)
        if not items:
            continue
        label = key.capitalize()
        if len(items) == 1 and key not in ("code", "method"):
            lines.append(f"{label}: {items[0]}")
            continue
        lines.append(f"{label}:")
        for index, item in enumerate(items, start=1):
            bullet = f"{index}." if key == "method" else "-"
            lines.append(f"    {bullet} {item}")
    return "\n".join(lines).rstrip() + "\n"


# ---------------------------------------------------------------------------
# Code reference resolution
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=512)
def _file_symbols(path: Path, mtime_ns: int) -> tuple[int, dict[str, tuple[int, int]]]:
    """Line count and symbols of *path*; keyed on mtime so edits invalidate."""
    text = path.read_text(encoding="utf-8", errors="replace")
    return len(text.splitlines()), list_symbols(text, path.name)


def resolve_code_ref(ref: CodeRef, root: Path) -> str | None:
    """Return why *ref* does not resolve under *root*, or ``None`` when it does."""
    target = root / ref.path
    try:
        if not target.is_file():
            return f"file '{ref.path}' does not exist"
        line_count, symbols = _file_symbols(target, target.stat().st_mtime_ns)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", target, exc)
        return f"cannot read '{ref.path}': {exc.strerror or exc}"

    if get_lang_config(target.suffix) is None:
        return (
            f"symbol '{ref.symbol}' cannot be checked: no grammar for "
            f"'{target.suffix or target.name}' files"
        )
    if ref.symbol not in symbols:
        return f"symbol '{ref.symbol}' not found in '{ref.path}'"
    if ref.line_start is not None:
        end = ref.line_end if ref.line_end is not None else ref.line_start
        if ref.line_start < 1 or end < ref.line_start or end > line_count:
            return (
                f"line range {ref.line_start}-{end} is outside '{ref.path}' "
                f"({line_count} lines)"
            )
    return None


def clear_symbol_cache() -> None:
    _file_symbols.cache_clear()


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def find_emoji(text: str) -> list[str]:
    found = {m.group() for m in _EMOJI_RE.finditer(text)}
    return sorted(found - set(_EMOJI_JOINERS))


def looks_non_english(text: str) -> bool:
    """Non-ASCII-heavy text with no recognized English function words."""
    letters = [c for c in text if c.isalpha()]
    if not letters:
        return False
    non_ascii = sum(1 for c in letters if not c.isascii())
    if non_ascii / len(letters) <= NON_ASCII_LIMIT:
        return False
    words = {w.lower() for w in _WORD_RE.findall(text)}
    return not (words & ENGLISH_FUNCTION_WORDS)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate(docstring: str | None, unit: TestUnit, ctx: RepoContext) -> list[Finding]:
    """Check one test's docstring against the templates.

    Parameters
    ----------
    docstring:
        Raw docstring text, or ``None`` when the test has none.
    unit:
        The test the docstring belongs to; provides location and name.
    ctx:
        Repository context; code references resolve against ``ctx.root``.

    Returns
    -------
    list[Finding]
        Template, code reference, style and language findings.
    """
    config = ctx.config
    findings: list[Finding | None] = []
    span = (unit.line_start, unit.line_end)

    if docstring is None or not docstring.strip():
        findings.append(
            make_finding(
                config,
                "docstring-missing-required-fields",
                unit.file_path,
                span,
                f"'{unit.qualified_name}' has no docstring",
                [f"required (standard): {', '.join(STANDARD_FIELDS)}"],
            )
        )
        return [f for f in findings if f is not None]

    doc = parse_docstring(docstring)
    base = unit.docstring_line or unit.line_start

    def line_of(key: str, index: int | None = None) -> tuple[int, int]:
        offsets = doc.item_lines.get(key, ())
        if index is not None and index < len(offsets):
            line = base + offsets[index]
        else:
            line = base + doc.field_lines.get(key, 0)
        return (line, line)

    missing = doc.missing_fields()
    if missing:
        findings.append(
            make_finding(
                config,
                "docstring-missing-required-fields",
                unit.file_path,
                span,
                f"'{unit.qualified_name}' docstring ({doc.template} template) "
                f"is missing: {', '.join(missing)}",
                [f"present: {', '.join(sorted(doc.fields)) or 'none'}"],
            )
        )

    for index, raw in enumerate(doc.code_refs):
        ref = CodeRef.parse(raw)
        if ref is None:
            findings.append(
                make_finding(
                    config,
                    "docstring-missing-required-fields",
                    unit.file_path,
                    line_of("code", index),
                    f"malformed code reference '{raw}' in '{unit.qualified_name}'",
                    ["expected path::Symbol or path::Symbol:L10-L20"],
                )
            )
            continue
        reason = resolve_code_ref(ref, ctx.root)
        if reason is not None:
            findings.append(
                make_finding(
                    config,
                    "codeRef-unresolved",
                    unit.file_path,
                    line_of("code", index),
                    f"code reference '{ref}' does not resolve",
                    [reason],
                )
            )

    emoji = find_emoji(docstring)
    if emoji:
        findings.append(
            make_finding(
                config,
                "style-violation",
                unit.file_path,
                span,
                f"docstring of '{unit.qualified_name}' contains emoji",
                [f"characters: {' '.join(emoji)}"],
            )
        )

    if looks_non_english(docstring):
        findings.append(
            make_finding(
                config,
                "language-violation",
                unit.file_path,
                span,
                f"docstring of '{unit.qualified_name}' does not appear to be English",
                [
                    f"more than {NON_ASCII_LIMIT:.0%} non-ASCII letters "
                    "and no English function words"
                ],
            )
        )

    return [f for f in findings if f is not None]
