"""
Procedures and their step/resume contract.

A procedure is a generator function that yields ``EffectRequest`` objects and
receives each effect's result back at the yield::

    @procedure
    def roll():
        value = yield random()
        return value

Neither the verifier nor the executor touches the generator directly. Both
drive a ``Run``: an explicit state object whose ``start`` / ``resume`` /
``throw_into`` each return one of ``Suspended``, ``Completed`` or ``Failed``.
Every ``Procedure.start()`` builds a fresh generator, so runs never share
state.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator, Iterable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Generic, ParamSpec, TypeAlias, TypeVar, overload

from dospec.effects import EffectDescriptor, EffectRequest
from dospec.errors import ProcedureStateError, UndeclaredEffectError
from dospec.program import Program

P = ParamSpec("P")
T = TypeVar("T")

ProcedureGenerator: TypeAlias = Generator[EffectRequest, Any, T]


@dataclass(frozen=True)
class Suspended:
    """The run is waiting at a suspension point for one resume value."""

    request: EffectRequest

    @property
    def name(self) -> str:
        return self.request.name

    @property
    def args(self) -> tuple[Any, ...]:
        return self.request.args


@dataclass(frozen=True)
class Completed(Generic[T]):
    """Terminal: the run returned ``value``."""

    value: T


@dataclass(frozen=True)
class Failed:
    """Terminal: the run raised ``error``."""

    error: Exception


RunState: TypeAlias = Suspended | Completed[Any] | Failed


class Run(Generic[T]):
    """One independent execution of a procedure."""

    def __init__(self, factory: Callable[[], Any]) -> None:
        self._factory = factory
        self._gen: Generator[Any, Any, T] | None = None
        self._state: RunState | None = None

    @property
    def state(self) -> RunState | None:
        """The last state reported, ``None`` before ``start()``."""

        return self._state

    @property
    def finished(self) -> bool:
        return isinstance(self._state, (Completed, Failed))

    def start(self) -> RunState:
        """Run the procedure up to its first suspension point."""

        if self._state is not None:
            raise ProcedureStateError("run already started")
        try:
            gen_or_value = self._factory()
        except Exception as exc:
            return self._finish(Failed(exc))

        if not inspect.isgenerator(gen_or_value):
            return self._finish(Completed(gen_or_value))

        self._gen = gen_or_value
        return self._advance(lambda: next(gen_or_value))

    def resume(self, value: Any = None) -> RunState:
        """Resume the pending suspension point with ``value``."""

        gen = self._suspended_generator("resume")
        return self._advance(lambda: gen.send(value))

    def throw_into(self, error: BaseException) -> RunState:
        """Resume the pending suspension point by raising ``error`` there."""

        gen = self._suspended_generator("throw_into")
        return self._advance(lambda: gen.throw(error))

    def close(self) -> None:
        """Abandon the run; the generator's ``finally`` blocks execute."""

        if self._gen is not None:
            self._gen.close()

    def _suspended_generator(self, operation: str) -> Generator[Any, Any, T]:
        if not isinstance(self._state, Suspended) or self._gen is None:
            if self._state is None:
                raise ProcedureStateError(f"{operation}() called before start()")
            raise ProcedureStateError(f"{operation}() called on a finished run")
        return self._gen

    def _advance(self, step: Callable[[], Any]) -> RunState:
        try:
            yielded = step()
        except StopIteration as stop_exc:
            return self._finish(Completed(stop_exc.value))
        except Exception as exc:
            return self._finish(Failed(exc))

        if not isinstance(yielded, EffectRequest):
            self.close()
            return self._finish(
                Failed(
                    TypeError(
                        f"procedure yielded {type(yielded).__name__}; "
                        "only effect requests may be yielded"
                    )
                )
            )
        self._state = Suspended(yielded)
        return self._state

    def _finish(self, state: Completed[Any] | Failed) -> RunState:
        self._state = state
        self._gen = None
        return state


class Procedure(Generic[T]):
    """A procedure definition bound to its arguments.

    The definition is reusable: ``start()`` may be called any number of times
    and every call yields an independent ``Run``.
    """

    def __init__(
        self,
        func: Callable[..., ProcedureGenerator[T] | T],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        if not callable(func):
            raise TypeError(f"procedure must be callable, got {type(func).__name__}")
        self.func = func
        self.args = args
        self.kwargs = kwargs

    @property
    def name(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))

    def start(self) -> Run[T]:
        return Run(lambda: self.func(*self.args, **self.kwargs))

    def __repr__(self) -> str:
        return f"Procedure({self.name})"


def procedure(func: Callable[P, ProcedureGenerator[T]]) -> Callable[P, Procedure[T]]:
    """
    Decorator that turns a generator function into a procedure factory.

    Calling the decorated function does not run it; it binds the arguments and
    returns a ``Procedure`` ready to be verified or executed.

    Usage:
        @procedure
        def greet(user_id):
            user = yield fetch_user(user_id)
            return f"hello {user['name']}"

        verify(spec, greet(1))
    """

    @wraps(func)
    def bind(*args: P.args, **kwargs: P.kwargs) -> Procedure[T]:
        return Procedure(func, *args, **kwargs)

    return bind


class Effects:
    """Attribute namespace handed to ``implementation`` functions.

    ``fx.env("HOME")`` requests effect ``env`` with argument ``"HOME"``. In
    strict mode only names declared by the program resolve.
    """

    __slots__ = ("_declared", "_strict")

    def __init__(self, declared: Iterable[str] = (), *, strict: bool = False) -> None:
        self._declared = frozenset(declared)
        self._strict = strict

    def __getattr__(self, name: str) -> EffectDescriptor:
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        if self._strict and name not in self._declared:
            raise UndeclaredEffectError(name, self._declared)
        return EffectDescriptor(name)

    def __getitem__(self, name: str) -> EffectDescriptor:
        return self.__getattr__(name)

    def __repr__(self) -> str:
        return f"Effects({sorted(self._declared)!r}, strict={self._strict})"


@overload
def implementation(
    spec: Program,
    func: None = None,
    *,
    strict: bool = False,
) -> Callable[[Callable[..., ProcedureGenerator[T]]], Procedure[T]]: ...


@overload
def implementation(
    spec: Program,
    func: Callable[..., ProcedureGenerator[T]],
    *,
    strict: bool = False,
) -> Procedure[T]: ...


def implementation(spec, func=None, *, strict=False):
    """Bind a generator function to the effects a program declares.

    The function receives an ``Effects`` namespace as its only argument. Works
    both as a call, ``implementation(spec, func)``, and as a decorator,
    ``@implementation(spec)``.
    """

    if not isinstance(spec, Program):
        raise TypeError(f"implementation() needs a Program, got {type(spec).__name__}")

    def bind(f: Callable[..., ProcedureGenerator[T]]) -> Procedure[T]:
        return Procedure(f, Effects(spec.effect_names, strict=strict))

    if func is None:
        return bind
    return bind(func)


def as_procedure(value: Procedure[T] | Callable[[], Any]) -> Procedure[T]:
    """Accept a ``Procedure`` or a zero-argument callable."""

    if isinstance(value, Procedure):
        return value
    if callable(value):
        try:
            inspect.signature(value).bind()
        except TypeError as exc:
            raise TypeError("procedure callable must accept no required arguments") from exc
        return Procedure(value)
    raise TypeError(f"expected Procedure or zero-argument callable, got {type(value).__name__}")


__all__ = [
    "Completed",
    "Effects",
    "Failed",
    "Procedure",
    "ProcedureGenerator",
    "Run",
    "RunState",
    "Suspended",
    "as_procedure",
    "implementation",
    "procedure",
]
