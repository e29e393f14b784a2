"""
Executor for the dospec system.

The executor drives one run of a procedure against a table of real effect
handlers. Each suspension point is resolved by looking the effect up by name,
calling the handler with the request's arguments and awaiting the result when
it is awaitable, so sync and async handlers share one asynchronous contract.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from dospec._vendor import Err, FrozenDict, Ok, Result
from dospec.effects import EffectRequest
from dospec.errors import MissingHandlerError
from dospec.hooks import Hooks
from dospec.procedure import Completed, Failed, Procedure, Run, as_procedure

T = TypeVar("T")

logger = logging.getLogger(__name__)

HandlerTable = Mapping[str, Callable[..., Any]]


def _ensure_handlers(handlers: HandlerTable) -> FrozenDict:
    if not isinstance(handlers, Mapping):
        raise TypeError(f"handlers must be a mapping, got {type(handlers).__name__}")
    for name, handler in handlers.items():
        if not isinstance(name, str):
            raise TypeError(f"handler names must be str, got {type(name).__name__}")
        if not callable(handler):
            raise TypeError(f"handler {name!r} must be callable, got {type(handler).__name__}")
    return FrozenDict(handlers)


class Executor:
    """
    Engine that runs procedures against real effect handlers.

    The handler table is frozen at construction; the executor itself keeps no
    per-run state, so one instance may drive many runs, concurrently if needed.
    """

    def __init__(self, handlers: HandlerTable, hooks: Any = None) -> None:
        """Initialize the executor.

        Args:
            handlers: Mapping from effect name to a callable taking that
                      effect's arguments. It may return a value or an awaitable.
            hooks: Optional ``Hooks``, mapping or object providing
                   ``enter(name, args)`` and/or ``leave(name, result)``.
        """
        self.handlers = _ensure_handlers(handlers)
        self.hooks = Hooks.coerce(hooks)

    def run(self, subject: Procedure[T] | Callable[[], Any]) -> Result[T]:
        """
        Run a procedure (synchronous interface).

        Note: This method uses asyncio.run(); inside an event loop use
        run_async() instead.
        """
        return asyncio.run(self.run_async(subject))

    async def run_async(self, subject: Procedure[T] | Callable[[], Any]) -> Result[T]:
        """
        Run a procedure (async interface).

        Returns ``Ok(value)`` when the procedure returns and ``Err(error)``
        when it raises, when a handler is missing, or when a hook fails.
        """
        proc = as_procedure(subject)
        run = proc.start()
        try:
            return await self._execute_run_loop(run)
        except Exception as exc:
            return Err(exc)
        finally:
            run.close()

    async def _execute_run_loop(self, run: Run[T]) -> Result[T]:
        state = run.start()
        while True:
            if isinstance(state, Completed):
                logger.debug("procedure returned")
                return Ok(state.value)
            if isinstance(state, Failed):
                logger.debug("procedure raised %r", state.error)
                return Err(state.error)

            outcome = await self._dispatch(state.request)
            if isinstance(outcome, Err):
                state = run.throw_into(outcome.error)
            else:
                state = run.resume(outcome.value)

    async def _dispatch(self, request: EffectRequest) -> Result[Any]:
        """Resolve one request; a handler error comes back as ``Err`` for injection."""

        logger.debug(f"effect: {request}")
        handler = self.handlers.get(request.name)
        if handler is None:
            raise MissingHandlerError(request.name)

        await self.hooks.on_enter(request.name, request.args)
        try:
            result = handler(*request.args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.debug("handler %s raised %r", request.name, exc)
            return Err(exc)

        await self.hooks.on_leave(request.name, result)
        return Ok(result)


async def handle(
    subject: Procedure[T] | Callable[[], Any],
    handlers: HandlerTable,
    hooks: Any = None,
) -> T:
    """Run ``subject`` against ``handlers`` and return its value or raise its error."""

    result = await Executor(handlers, hooks).run_async(subject)
    return result.unwrap()


def run(
    subject: Procedure[T] | Callable[[], Any],
    handlers: HandlerTable,
    hooks: Any = None,
) -> T:
    """Synchronous counterpart of :func:`handle`."""

    return Executor(handlers, hooks).run(subject).unwrap()


__all__ = ["Executor", "HandlerTable", "handle", "run"]
