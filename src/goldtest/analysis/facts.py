"""Fact extraction: turn a test unit's statements into a structured FactSheet."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from goldtest.adapters.syntax import string_value

if TYPE_CHECKING:
    from collections.abc import Iterable

    from goldtest.adapters.syntax import CallInfo, Statement, TestUnit
    from goldtest.analysis.context import RepoContext
    from goldtest.infrastructure.config import LanguagePatterns

ASSERTION_KINDS: tuple[str, ...] = (
    "value-equality",
    "state-check",
    "error-check",
    "type-check",
    "attribute-existence",
)
SHAPE_KINDS: frozenset[str] = frozenset({"type-check", "attribute-existence"})

_QUALIFIER_RE = re.compile(r"^[\w.$]+$")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Assertion:
    """One assertion made by a test."""

    kind: str  # one of ASSERTION_KINDS
    subject_is_real_computation: bool
    line: int
    text: str = ""


@dataclass(frozen=True)
class CallSite:
    """A call from a test to a collaborator."""

    target: str
    line: int
    is_mocked: bool
    is_system_under_test: bool
    is_boundary: bool = False  # clock, filesystem, network, randomness, process
    module: str | None = None  # production module reached, when known


@dataclass(frozen=True)
class FactSheet:
    """Structured summary of one test unit.  Built once, never mutated."""

    unit_name: str
    assertions: tuple[Assertion, ...] = ()
    call_sites: tuple[CallSite, ...] = ()
    arrange_act_separated: bool = False
    statement_count: int = 0
    incomplete: bool = False
    mocked_names: frozenset[str] = field(default_factory=frozenset)

    @property
    def shape_score(self) -> float:
        """Fraction of assertions that only check types or attribute presence."""
        if not self.assertions:
            return 0.0
        shape = sum(1 for a in self.assertions if a.kind in SHAPE_KINDS)
        return shape / len(self.assertions)

    @property
    def collaborators(self) -> tuple[CallSite, ...]:
        """Call sites that are not infrastructure boundaries."""
        return tuple(c for c in self.call_sites if not c.is_boundary)

    @property
    def mock_ratio(self) -> float:
        collaborators = self.collaborators
        if not collaborators:
            return 0.0
        return sum(1 for c in collaborators if c.is_mocked) / len(collaborators)

    @property
    def modules(self) -> frozenset[str]:
        """Production modules the test actually reaches through real calls."""
        return frozenset(
            c.module for c in self.call_sites if c.module is not None and not c.is_mocked
        )

    def summary(self) -> str:
        aaa = "yes" if self.arrange_act_separated else "no"
        return (
            f"assertions={len(self.assertions)} shape-score={self.shape_score:.2f} "
            f"mock-ratio={self.mock_ratio:.2f} arrange-act-assert={aaa}"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _matches(patterns: Iterable[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def _root(target: str) -> str:
    return re.split(r"[.(\[]", target, maxsplit=1)[0]


def _refers_to(target: str, names: Iterable[str]) -> bool:
    """True when *target* is one of *names* or reached through one of them."""
    for name in names:
        if target == name or target.startswith((f"{name}.", f"{name}(", f"{name}[")):
            return True
    return False


def _patch_target(call: CallInfo) -> str | None:
    """Dotted name a patch call replaces: ``patch("a.b")`` or ``patch.object(A, "b")``."""
    for index, arg in enumerate(call.args):
        value = string_value(arg)
        if not value:
            continue
        if index > 0 and _QUALIFIER_RE.match(call.args[index - 1]):
            return f"{call.args[index - 1]}.{value}"
        return value
    if call.args and _QUALIFIER_RE.match(call.args[0]):
        return call.args[0]
    return None


def classify_assertion(text: str, patterns: LanguagePatterns) -> str:
    """Assign an assertion kind from its source text.

    Error checks win outright.  Type and attribute checks are then removed
    from the text so that ``type(x) == Foo`` is not mistaken for a value
    comparison; whatever comparison remains makes it a value check.
    """
    if _matches(patterns.error_check_patterns, text):
        return "error-check"

    remainder = text
    type_hit = False
    for pattern in patterns.type_check_patterns:
        if pattern.search(remainder):
            type_hit = True
            remainder = pattern.sub(" ", remainder)
    attribute_hit = False
    for pattern in patterns.attribute_check_patterns:
        if pattern.search(remainder):
            attribute_hit = True
            remainder = pattern.sub(" ", remainder)

    if _matches(patterns.value_check_patterns, remainder):
        return "value-equality"
    if type_hit:
        return "type-check"
    if attribute_hit:
        return "attribute-existence"
    return "state-check"


def is_assertion_statement(statement: Statement, patterns: LanguagePatterns) -> bool:
    if statement.kind == "assert":
        return True
    return any(_matches(patterns.assertion_call_patterns, c.target) for c in statement.calls)


def arrange_act_assert(flags: list[bool], statements: tuple[Statement, ...]) -> bool:
    """Detect an arrange block, then one action call, then only assertions.

    *flags* marks which statements are assertions.
    """
    trailing = 0
    for flag in reversed(flags):
        if not flag:
            break
        trailing += 1
    head = len(flags) - trailing
    if trailing == 0 or head < 2:
        return False
    if any(flags[:head]):
        return False
    return bool(statements[head - 1].calls)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


@dataclass
class _State:
    """Mutable bookkeeping while walking one test body."""

    patterns: LanguagePatterns
    ctx: RepoContext
    imports: dict[str, str]
    production_imports: frozenset[str]
    mocked: set[str] = field(default_factory=set)
    boundary_mocks: set[str] = field(default_factory=set)
    real_bound: dict[str, str | None] = field(default_factory=dict)
    call_sites: list[CallSite] = field(default_factory=list)

    def mock_module(self, target: str) -> None:
        """Mark every imported name that resolves to a module-level patch target."""
        if "/" in target or target.startswith("."):
            resolved = target
            if target.startswith("."):
                base = posixpath.dirname(self.ctx.file_path)
                resolved = posixpath.normpath(posixpath.join(base, target))
            for local, module in self.imports.items():
                if module in (resolved, target):
                    self.mocked.add(local)
            return
        self.mocked.add(target.rsplit(".", 1)[-1])
        dotted = target.replace(".", "/")
        for local, module in self.imports.items():
            if module == dotted:
                self.mocked.add(local)

    def record_patch(self, call: CallInfo, bound_to: Iterable[str] = ()) -> bool:
        target = _patch_target(call)
        if target is None:
            return False
        boundary = _matches(self.patterns.boundary_patterns, target)
        self.call_sites.append(
            CallSite(
                target=target,
                line=call.line,
                is_mocked=True,
                is_system_under_test=False,
                is_boundary=boundary,
            )
        )
        self.mock_module(target)
        for name in bound_to:
            self.mocked.add(name)
            if boundary:
                self.boundary_mocks.add(name)
        return boundary

    def module_of(self, root: str) -> str | None:
        if root in self.imports:
            return self.ctx.top_module(self.imports[root])
        return self.real_bound.get(root)

    def record_call(self, call: CallInfo) -> tuple[bool, str | None]:
        """Record a collaborator call; return ``(is_real, module)``."""
        target = call.target
        root = _root(target)
        mocked = _refers_to(target, self.mocked)
        boundary = _matches(self.patterns.boundary_patterns, target) or _refers_to(
            target, self.boundary_mocks
        )
        module = None if mocked else self.module_of(root)
        if self.production_imports:
            reaches_production = root in self.production_imports or (
                root in self.real_bound and self.real_bound[root] is not None
            )
        else:
            reaches_production = True
        sut = not mocked and not boundary and reaches_production
        self.call_sites.append(
            CallSite(
                target=target,
                line=call.line,
                is_mocked=mocked,
                is_system_under_test=sut,
                is_boundary=boundary,
                module=module if sut else None,
            )
        )
        return not mocked and not boundary, module


def _subject_is_real(statement: Statement, has_real_call: bool, real_bound: Iterable[str]) -> bool:
    if has_real_call:
        return True
    text = f"{statement.guard} {statement.text}"
    return any(re.search(rf"(?<![\w.]){re.escape(name)}\b", text) for name in real_bound)


def extract(unit: TestUnit, ctx: RepoContext) -> FactSheet:
    """Build the :class:`FactSheet` for one test unit.

    Never raises for a parsed unit.  A body with neither assertions nor
    collaborator calls yields a sheet flagged ``incomplete``, which the
    rule engine reports instead of guessing.

    Parameters
    ----------
    unit:
        Test unit produced by the language adapter.
    ctx:
        Context already narrowed to the unit's file.
    """
    patterns = ctx.patterns
    imports = {imp.local: imp.module for imp in ctx.imports}
    production_imports = frozenset(
        local for local, module in imports.items() if ctx.top_module(module) is not None
    )
    state = _State(
        patterns=patterns,
        ctx=ctx,
        imports=imports,
        production_imports=production_imports,
    )
    state.mocked.update(
        p for p in unit.parameters if _matches(patterns.mock_name_patterns, p)
    )

    # Stacked patch decorators inject their mocks bottom-up into the leading parameters.
    patch_decorators = [
        c for c in unit.decorator_calls if _matches(patterns.patch_patterns, c.target)
    ]
    for call, param in zip(reversed(patch_decorators), unit.parameters):
        state.record_patch(call, bound_to=(param,))
    for call in patch_decorators[: max(len(patch_decorators) - len(unit.parameters), 0)]:
        state.record_patch(call)

    assertions: list[Assertion] = []
    flags: list[bool] = []
    for statement in unit.statements:
        is_assertion = is_assertion_statement(statement, patterns)
        flags.append(is_assertion)

        has_real_call = False
        mock_calls: list[CallInfo] = []
        modules: list[str | None] = []
        for call in statement.calls:
            target = call.target
            if not target:
                continue
            if _matches(patterns.assertion_call_patterns, target) or _matches(
                patterns.helper_calls, target
            ):
                continue
            if _matches(patterns.mock_patterns, target):
                mock_calls.append(call)
                continue
            real, module = state.record_call(call)
            if real:
                has_real_call = True
                modules.append(module)

        boundary_patch = False
        for call in mock_calls:
            if _matches(patterns.patch_patterns, call.target):
                boundary_patch = state.record_patch(call) or boundary_patch

        for name in statement.bound_names:
            if mock_calls:
                state.mocked.add(name)
                if boundary_patch:
                    state.boundary_mocks.add(name)
                state.real_bound.pop(name, None)
            elif has_real_call:
                state.real_bound[name] = next((m for m in modules if m is not None), None)
                state.mocked.discard(name)

        if is_assertion:
            text = f"{statement.guard} {statement.text}".strip()
            assertions.append(
                Assertion(
                    kind=classify_assertion(text, patterns),
                    subject_is_real_computation=_subject_is_real(
                        statement, has_real_call, state.real_bound
                    ),
                    line=statement.line,
                    text=statement.text,
                )
            )

    return FactSheet(
        unit_name=unit.qualified_name,
        assertions=tuple(assertions),
        call_sites=tuple(state.call_sites),
        arrange_act_separated=arrange_act_assert(flags, unit.statements),
        statement_count=len(unit.statements),
        incomplete=not assertions and not state.call_sites,
        mocked_names=frozenset(state.mocked),
    )
