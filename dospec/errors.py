from __future__ import annotations

from typing import Any


class DospecError(Exception):
    """Base class for every error raised by dospec itself."""


class InvalidTraceError(DospecError, ValueError):
    """Raised when a trace or program declaration is malformed."""


class ProcedureStateError(DospecError, RuntimeError):
    """Raised when a run is stepped in a state that does not allow it."""


class VerificationError(DospecError, AssertionError):
    """A procedure diverged from one of its scripted traces.

    ``trace_index`` names the trace and ``step_index`` the expectation that
    failed; terminal expectations use ``len(trace.steps)`` as their index.
    """

    def __init__(
        self,
        detail: str,
        *,
        trace_index: int | None = None,
        step_index: int | None = None,
    ) -> None:
        self.detail = detail
        self.trace_index = trace_index
        self.step_index = step_index
        super().__init__(self._format())

    def _format(self) -> str:
        if self.trace_index is None and self.step_index is None:
            return self.detail
        location = []
        if self.trace_index is not None:
            location.append(f"trace {self.trace_index}")
        if self.step_index is not None:
            location.append(f"step {self.step_index}")
        return f"{', '.join(location)}: {self.detail}"

    def at(self, *, trace_index: int, step_index: int) -> VerificationError:
        """Attach a location and return ``self``."""

        self.trace_index = trace_index
        self.step_index = step_index
        self.args = (self._format(),)
        return self

    def __str__(self) -> str:
        return self._format()


class EffectNameMismatchError(VerificationError):
    """The procedure requested a different effect than the trace expected."""

    def __init__(
        self,
        expected: str | None,
        actual: str,
        detail: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(detail or f"expected effect but got {actual!r} (expected {expected!r})", **kwargs)


class UndeclaredEffectError(EffectNameMismatchError):
    """The procedure requested an effect no trace of the program declares."""

    def __init__(
        self,
        actual: str,
        declared: frozenset[str] | None = None,
        *,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.declared = declared or frozenset()
        known = ", ".join(sorted(self.declared)) or "none"
        if expected is None:
            detail = f"effect {actual!r} is not declared by the program"
        else:
            detail = f"expected effect but got {actual!r} (expected {expected!r}), which is not declared"
        detail += f" (declared effects: {known})"
        super().__init__(expected, actual, detail, **kwargs)


class ArgumentMismatchError(VerificationError):
    """The requested effect matched by name but its arguments differed."""


class MissingTerminationError(VerificationError):
    """The procedure kept requesting effects after the last scripted step."""


class PrematureTerminationError(VerificationError):
    """The procedure finished while scripted steps were still pending."""


class TerminalKindMismatchError(VerificationError):
    """The procedure returned where it should throw, or the other way round."""


class ReturnValueMismatchError(VerificationError):
    """The procedure returned a value that differs from the expected one."""


class ThrownErrorMismatchError(VerificationError):
    """The procedure raised an error that differs from the expected one."""


class MissingHandlerError(DospecError, LookupError):
    """Raised when the executor has no handler for a requested effect."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"No handler registered for effect: {name!r}\n"
            f"Hint: Provide it via `handlers={{'{name}': handler}}`"
        )


__all__ = [
    "ArgumentMismatchError",
    "DospecError",
    "EffectNameMismatchError",
    "InvalidTraceError",
    "MissingHandlerError",
    "MissingTerminationError",
    "PrematureTerminationError",
    "ProcedureStateError",
    "ReturnValueMismatchError",
    "TerminalKindMismatchError",
    "ThrownErrorMismatchError",
    "UndeclaredEffectError",
    "VerificationError",
]
