"""
Traces: one scripted scenario of a procedure.

A trace is an ordered list of expected effect calls followed by exactly one
terminal expectation::

    trace([
        yields(random.takes().returns(42)),
        returns(42),
    ])
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

from dospec.effects import EffectCall
from dospec.equality import render
from dospec.errors import InvalidTraceError


@dataclass(frozen=True)
class Yield:
    """Marks an ``EffectCall`` as the next expected suspension point."""

    call: EffectCall


@dataclass(frozen=True)
class Return:
    """Terminal expectation: the procedure returns ``value``."""

    value: Any = None

    kind = "return"

    def __str__(self) -> str:
        return f"return {render(self.value)}"


@dataclass(frozen=True)
class Throw:
    """Terminal expectation: the procedure raises ``error``."""

    error: Exception

    kind = "throw"

    def __str__(self) -> str:
        return f"raise {render(self.error)}"


Terminal: TypeAlias = Return | Throw


@dataclass(frozen=True)
class Trace:
    steps: tuple[EffectCall, ...]
    terminal: Terminal

    @property
    def effect_names(self) -> frozenset[str]:
        return frozenset(step.name for step in self.steps)

    def __str__(self) -> str:
        lines = [f"  yield {step}" for step in self.steps]
        lines.append(f"  {self.terminal}")
        return "trace:\n" + "\n".join(lines)


def yields(call: EffectCall) -> Yield:
    if not isinstance(call, EffectCall):
        raise InvalidTraceError(
            f"yields() expects an EffectCall built with .returns() or .throws(), "
            f"got {type(call).__name__}"
        )
    return Yield(call)


def returns(value: Any = None) -> Return:
    return Return(value)


def throws(error: Exception) -> Throw:
    if not isinstance(error, Exception):
        raise InvalidTraceError(
            f"throws() expects an Exception instance, got {type(error).__name__}"
        )
    return Throw(error)


def trace(items: Iterable[Yield | EffectCall | Terminal]) -> Trace:
    """Build a trace from step markers followed by one terminal.

    Bare ``EffectCall`` items are accepted as steps. The terminal must be the
    last item; a trace without one is rejected.
    """

    items = list(items)
    if not items or not isinstance(items[-1], (Return, Throw)):
        raise InvalidTraceError(
            "trace must end with returns(...) or throws(...); termination must be declared"
        )

    steps: list[EffectCall] = []
    for index, item in enumerate(items[:-1]):
        if isinstance(item, Yield):
            steps.append(item.call)
        elif isinstance(item, EffectCall):
            steps.append(item)
        elif isinstance(item, (Return, Throw)):
            raise InvalidTraceError(
                f"trace item {index} is a terminal ({item}); only the last item may terminate"
            )
        else:
            raise InvalidTraceError(
                f"trace item {index} must be yields(...), returns(...) or throws(...), "
                f"got {type(item).__name__}"
            )
    return Trace(tuple(steps), items[-1])


__all__ = [
    "Return",
    "Terminal",
    "Throw",
    "Trace",
    "Yield",
    "returns",
    "throws",
    "trace",
    "yields",
]
