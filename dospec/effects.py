"""
Effect descriptors.

A descriptor names an effect. Calling it inside a procedure builds the
``EffectRequest`` the procedure yields at a suspension point; ``takes`` /
``returns`` / ``throws`` build the ``EffectCall`` a trace scripts for that
suspension point.

Example:
    >>> random = declare("random")
    >>> step = random.takes().returns(42)
    >>> request = random()
    >>> (request.name, request.args)
    ('random', ())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dospec._vendor import Err, Ok, Result
from dospec.equality import render, render_args
from dospec.utils import CreationContext, capture_creation_context


def _ensure_name(name: object) -> str:
    if not isinstance(name, str):
        raise TypeError(f"effect name must be str, got {type(name).__name__}")
    if not name:
        raise ValueError("effect name must not be empty")
    return name


@dataclass(frozen=True)
class EffectRequest:
    """A procedure asking for one effect with an ordered argument list."""

    name: str
    args: tuple[Any, ...] = ()
    created_at: CreationContext | None = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return f"{self.name}({render_args(self.args)[1:-1]})"


@dataclass(frozen=True)
class EffectCall:
    """One scripted effect call: name, expected arguments and outcome.

    ``outcome`` is ``Ok(value)`` when the suspension point resumes with a value
    and ``Err(error)`` when the error is injected into it.
    """

    name: str
    args: tuple[Any, ...]
    outcome: Result[Any]
    created_at: CreationContext | None = field(default=None, compare=False, repr=False)

    @property
    def raises(self) -> bool:
        return isinstance(self.outcome, Err)

    def __str__(self) -> str:
        call = f"{self.name}({render_args(self.args)[1:-1]})"
        if isinstance(self.outcome, Err):
            return f"{call} -> raise {render(self.outcome.error)}"
        return f"{call} -> {render(self.outcome.value)}"


class Expectation:
    """An effect name bound to arguments, waiting for its outcome."""

    __slots__ = ("name", "args")

    def __init__(self, name: str, args: tuple[Any, ...]) -> None:
        self.name = name
        self.args = args

    def returns(self, value: Any = None) -> EffectCall:
        """Script the suspension point to resume with ``value``."""
        return self._build(Ok(value), skip_frames=3)

    def throws(self, error: Exception) -> EffectCall:
        """Script the suspension point to resume by raising ``error``."""
        return self._build(_ensure_error(error), skip_frames=3)

    def _build(self, outcome: Result[Any], *, skip_frames: int) -> EffectCall:
        return EffectCall(
            name=self.name,
            args=self.args,
            outcome=outcome,
            created_at=capture_creation_context(skip_frames=skip_frames),
        )

    def __repr__(self) -> str:
        return f"Expectation({self.name}({render_args(self.args)[1:-1]}))"


def _ensure_error(error: object) -> Err:
    if not isinstance(error, Exception):
        raise TypeError(f"throws() needs an Exception instance, got {type(error).__name__}")
    return Err(error)


class EffectDescriptor:
    """A declared effect name."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = _ensure_name(name)

    def __call__(self, *args: Any) -> EffectRequest:
        return EffectRequest(self.name, args, capture_creation_context(skip_frames=2))

    def takes(self, *args: Any) -> Expectation:
        return Expectation(self.name, args)

    def returns(self, value: Any = None) -> EffectCall:
        """Shorthand for ``takes().returns(value)``."""
        return Expectation(self.name, ())._build(Ok(value), skip_frames=3)

    def throws(self, error: Exception) -> EffectCall:
        """Shorthand for ``takes().throws(error)``."""
        return Expectation(self.name, ())._build(_ensure_error(error), skip_frames=3)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, EffectDescriptor) and other.name == self.name

    def __hash__(self) -> int:
        return hash((EffectDescriptor, self.name))

    def __repr__(self) -> str:
        return f"declare({self.name!r})"


def declare(name: str) -> EffectDescriptor:
    """Declare an effect by name."""

    return EffectDescriptor(name)


fn = declare


def perform(name: str, *args: Any) -> EffectRequest:
    """Request effect ``name`` without declaring a descriptor first."""

    return EffectRequest(_ensure_name(name), args, capture_creation_context(skip_frames=2))


__all__ = [
    "EffectCall",
    "EffectDescriptor",
    "EffectRequest",
    "Expectation",
    "declare",
    "fn",
    "perform",
]
