"""
dospec - Specify, verify and run effectful procedures.

A procedure is a generator that yields named effect requests. The same
procedure is verified against scripted traces and executed against real
handlers.

Example:
    >>> from dospec import declare, handle, program, returns, trace, verify, yields
    >>>
    >>> random = declare("random")
    >>> spec = program([
    ...     trace([yields(random.takes().returns(42)), returns(42)]),
    ... ])
    >>>
    >>> def roll():
    ...     value = yield random()
    ...     return value
    >>>
    >>> verify(spec, roll)
"""

from dospec._vendor import Err, FrozenDict, Ok, Result
from dospec.effects import (
    EffectCall,
    EffectDescriptor,
    EffectRequest,
    Expectation,
    declare,
    fn,
    perform,
)
from dospec.equality import deep_equal, render, render_args
from dospec.errors import (
    ArgumentMismatchError,
    DospecError,
    EffectNameMismatchError,
    InvalidTraceError,
    MissingHandlerError,
    MissingTerminationError,
    PrematureTerminationError,
    ProcedureStateError,
    ReturnValueMismatchError,
    TerminalKindMismatchError,
    ThrownErrorMismatchError,
    UndeclaredEffectError,
    VerificationError,
)
from dospec.executor import Executor, handle, run
from dospec.hooks import Hooks, LoggingHooks, RecordingHooks
from dospec.procedure import (
    Completed,
    Effects,
    Failed,
    Procedure,
    ProcedureGenerator,
    Run,
    RunState,
    Suspended,
    implementation,
    procedure,
)
from dospec.program import Program, program
from dospec.trace import Return, Throw, Trace, Yield, returns, throws, trace, yields
from dospec.verifier import TraceReport, Verifier, check, verify

__version__ = "0.1.0"

__all__ = [  # noqa: RUF022
    # Declaration surface
    "declare",
    "fn",
    "perform",
    "yields",
    "returns",
    "throws",
    "trace",
    "program",
    "EffectCall",
    "EffectDescriptor",
    "EffectRequest",
    "Expectation",
    "Program",
    "Return",
    "Throw",
    "Trace",
    "Yield",
    # Procedures
    "procedure",
    "implementation",
    "Procedure",
    "ProcedureGenerator",
    "Effects",
    "Run",
    "RunState",
    "Suspended",
    "Completed",
    "Failed",
    # Verification
    "verify",
    "check",
    "Verifier",
    "TraceReport",
    # Execution
    "handle",
    "run",
    "Executor",
    "Hooks",
    "LoggingHooks",
    "RecordingHooks",
    # Equality
    "deep_equal",
    "render",
    "render_args",
    # Vendored types
    "Ok",
    "Err",
    "Result",
    "FrozenDict",
    # Errors
    "DospecError",
    "InvalidTraceError",
    "ProcedureStateError",
    "VerificationError",
    "EffectNameMismatchError",
    "UndeclaredEffectError",
    "ArgumentMismatchError",
    "MissingTerminationError",
    "PrematureTerminationError",
    "TerminalKindMismatchError",
    "ReturnValueMismatchError",
    "ThrownErrorMismatchError",
    "MissingHandlerError",
]
