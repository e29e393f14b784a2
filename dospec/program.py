"""
Program class for the dospec system.

A Program is the full behavioural specification of a procedure: a collection
of independent traces. Traces share nothing and are verified one by one.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from functools import cached_property

from dospec.errors import InvalidTraceError
from dospec.trace import Trace


def _ensure_traces(traces: Iterable[Trace]) -> tuple[Trace, ...]:
    collected = tuple(traces)
    for index, item in enumerate(collected):
        if not isinstance(item, Trace):
            raise InvalidTraceError(
                f"program item {index} must be a Trace built with trace([...]), "
                f"got {type(item).__name__}"
            )
    return collected


@dataclass(frozen=True)
class Program:
    traces: tuple[Trace, ...] = ()

    @cached_property
    def effect_names(self) -> frozenset[str]:
        """Every effect name any trace of the program scripts."""

        names: set[str] = set()
        for item in self.traces:
            names.update(item.effect_names)
        return frozenset(names)

    def extend(self, traces: Iterable[Trace]) -> Program:
        """Return a new program with ``traces`` appended."""

        return Program(self.traces + _ensure_traces(traces))

    def __iter__(self) -> Iterator[Trace]:
        return iter(self.traces)

    def __len__(self) -> int:
        return len(self.traces)


def program(traces: Iterable[Trace] = ()) -> Program:
    return Program(_ensure_traces(traces))


__all__ = ["Program", "program"]
