"""
Trace verifier for the dospec system.

The verifier replays every trace of a program against a fresh run of a
procedure and asserts that the run requests exactly the scripted effects, in
order, with deep-equal arguments, and terminates the way the trace says.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dospec._vendor import Err, Ok, Result
from dospec.effects import EffectCall, EffectRequest
from dospec.equality import deep_equal, render, render_args
from dospec.errors import (
    ArgumentMismatchError,
    EffectNameMismatchError,
    MissingTerminationError,
    PrematureTerminationError,
    ReturnValueMismatchError,
    TerminalKindMismatchError,
    ThrownErrorMismatchError,
    UndeclaredEffectError,
    VerificationError,
)
from dospec.procedure import Completed, Failed, Procedure, Run, RunState, Suspended, as_procedure
from dospec.program import Program
from dospec.trace import Return, Throw, Trace
from dospec.utils import format_context

logger = logging.getLogger(__name__)


def errors_match(expected: BaseException, actual: BaseException) -> bool:
    """Errors match by identity, or by type and deep-equal ``args``."""

    return actual is expected or deep_equal(expected, actual)


def _declared_at(call: EffectCall) -> str:
    if call.created_at is None:
        return ""
    return f"\n  expected step declared at {format_context(call.created_at)}"


def _requested_at(request: EffectRequest) -> str:
    if request.created_at is None:
        return ""
    return f"\n  requested at {format_context(request.created_at)}"


@dataclass(frozen=True)
class TraceReport:
    """Outcome of verifying one trace: ``Ok(None)`` or ``Err(VerificationError)``."""

    index: int
    trace: Trace
    result: Result[None]

    @property
    def passed(self) -> bool:
        return self.result.is_ok()

    @property
    def error(self) -> VerificationError | None:
        return self.result.err()  # type: ignore[return-value]


class TraceVerification:
    """Drives a single run of a procedure against a single trace."""

    def __init__(self, program: Program, index: int, trace: Trace, run: Run[Any]) -> None:
        self.program = program
        self.index = index
        self.trace = trace
        self.run = run
        self.cursor = 0

    def execute(self) -> None:
        state = self.run.start()
        try:
            while True:
                if isinstance(state, Suspended):
                    state = self._on_suspended(state)
                elif isinstance(state, Completed):
                    self._on_completed(state)
                    return
                else:
                    self._on_failed(state)
                    return
        finally:
            self.run.close()

    def _fail(self, error: VerificationError) -> VerificationError:
        logger.debug("trace %d diverged: %s", self.index, error.detail)
        return error.at(trace_index=self.index, step_index=self.cursor)

    def _on_suspended(self, state: Suspended) -> RunState:
        request = state.request
        steps = self.trace.steps
        logger.debug("trace %d step %d: effect %s", self.index, self.cursor, request)

        if request.name not in self.program.effect_names:
            expected_name = steps[self.cursor].name if self.cursor < len(steps) else None
            raise self._fail(
                UndeclaredEffectError(
                    request.name, self.program.effect_names, expected=expected_name
                )
            )

        if self.cursor >= len(steps):
            raise self._fail(
                MissingTerminationError(
                    f"expected to {self.trace.terminal.kind} but didn't: "
                    f"got effect {request}{_requested_at(request)}"
                )
            )

        expected = steps[self.cursor]
        if request.name != expected.name:
            raise self._fail(
                EffectNameMismatchError(
                    expected.name,
                    request.name,
                    f"expected effect but got {request.name!r} (expected {expected.name!r})"
                    f"{_declared_at(expected)}{_requested_at(request)}",
                )
            )

        if not deep_equal(expected.args, request.args):
            raise self._fail(
                ArgumentMismatchError(
                    f"expected {render_args(expected.args)} but got {render_args(request.args)}"
                    f" for effect {request.name!r}{_declared_at(expected)}{_requested_at(request)}"
                )
            )

        self.cursor += 1
        outcome = expected.outcome
        if isinstance(outcome, Err):
            return self.run.throw_into(copy.deepcopy(outcome.error))
        return self.run.resume(copy.deepcopy(outcome.value))

    def _on_completed(self, state: Completed[Any]) -> None:
        logger.debug("trace %d returned %s", self.index, render(state.value))
        terminal = self.trace.terminal
        if self.cursor < len(self.trace.steps):
            pending = self.trace.steps[self.cursor]
            raise self._fail(
                PrematureTerminationError(
                    f"expected to yield but returned {render(state.value)}: "
                    f"next expected step is {pending}{_declared_at(pending)}"
                )
            )
        if isinstance(terminal, Throw):
            raise self._fail(
                TerminalKindMismatchError(
                    f"expected to throw but didn't: expected {render(terminal.error)}, "
                    f"returned {render(state.value)}"
                )
            )
        if not deep_equal(terminal.value, state.value):
            raise self._fail(
                ReturnValueMismatchError(
                    f"expected {render(terminal.value)} but got {render(state.value)}"
                )
            )

    def _on_failed(self, state: Failed) -> None:
        error = state.error
        logger.debug("trace %d raised %r", self.index, error)
        if isinstance(error, UndeclaredEffectError):
            raise self._fail(error)

        terminal = self.trace.terminal
        if self.cursor < len(self.trace.steps):
            pending = self.trace.steps[self.cursor]
            raise self._fail(
                PrematureTerminationError(
                    f"expected to yield but threw {render(error)}: "
                    f"next expected step is {pending}{_declared_at(pending)}"
                )
            ) from error
        if isinstance(terminal, Return):
            raise self._fail(
                TerminalKindMismatchError(
                    f"expected to return but didn't: expected {render(terminal.value)}, "
                    f"raised {render(error)}"
                )
            ) from error
        if not errors_match(terminal.error, error):
            raise self._fail(
                ThrownErrorMismatchError(
                    f"expected {render(terminal.error)} but got {render(error)}"
                )
            ) from error


class Verifier:
    """Checks procedures against every trace of one program.

    The verifier only holds the read-only program; each trace gets its own
    run, so one failing trace never affects another.
    """

    def __init__(self, program: Program) -> None:
        if not isinstance(program, Program):
            raise TypeError(f"Verifier needs a Program, got {type(program).__name__}")
        self.program = program

    def verify_trace(self, index: int, trace: Trace, subject: Procedure[Any]) -> None:
        """Raise ``VerificationError`` if ``subject`` diverges from ``trace``."""

        TraceVerification(self.program, index, trace, subject.start()).execute()

    def check(self, subject: Procedure[Any] | Callable[[], Any]) -> tuple[TraceReport, ...]:
        """Verify every trace and report each outcome without raising."""

        proc = as_procedure(subject)
        reports = []
        for index, item in enumerate(self.program):
            try:
                self.verify_trace(index, item, proc)
            except VerificationError as exc:
                reports.append(TraceReport(index, item, Err(exc)))
            else:
                reports.append(TraceReport(index, item, Ok(None)))
        return tuple(reports)

    def verify(self, subject: Procedure[Any] | Callable[[], Any]) -> None:
        """Raise the first failing trace's ``VerificationError``, if any."""

        proc = as_procedure(subject)
        for index, item in enumerate(self.program):
            self.verify_trace(index, item, proc)
        logger.debug("%s verified against %d traces", proc.name, len(self.program))


def verify(program: Program, subject: Procedure[Any] | Callable[[], Any]) -> None:
    """Assert that ``subject`` follows every trace of ``program``."""

    Verifier(program).verify(subject)


def check(
    program: Program, subject: Procedure[Any] | Callable[[], Any]
) -> tuple[TraceReport, ...]:
    """Verify every trace of ``program`` and return one report per trace."""

    return Verifier(program).check(subject)


__all__ = [
    "TraceReport",
    "TraceVerification",
    "Verifier",
    "check",
    "errors_match",
    "verify",
]
