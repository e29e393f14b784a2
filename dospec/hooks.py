"""
Instrumentation hooks for the executor.

Hooks observe dispatch: ``enter(name, args)`` runs before a handler is
invoked, ``leave(name, result)`` after it succeeded. Each hook gets its own deep
copy of the arguments or result, so it cannot change what the handler or the
procedure sees. A hook that raises ends the run with that error.
"""

from __future__ import annotations

import copy
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

EnterHook = Callable[[str, tuple[Any, ...]], Any]
LeaveHook = Callable[[str, Any], Any]


@dataclass(frozen=True)
class Hooks:
    """Optional ``enter`` / ``leave`` observers.

    An exception raised by a hook is not swallowed: it aborts the run, so a
    failing ``enter`` also keeps the handler from being called, and the
    executor reports it as the run's error.
    """

    enter: EnterHook | None = None
    leave: LeaveHook | None = None

    @classmethod
    def coerce(cls, hooks: Any) -> Hooks:
        """Accept ``None``, a ``Hooks``, a mapping or any object with hook attributes."""

        if hooks is None:
            return cls()
        if isinstance(hooks, Hooks):
            return hooks
        if isinstance(hooks, Mapping):
            unknown = set(hooks) - {"enter", "leave"}
            if unknown:
                raise TypeError(f"unknown hook names: {sorted(unknown)!r}")
            enter, leave = hooks.get("enter"), hooks.get("leave")
        else:
            enter, leave = getattr(hooks, "enter", None), getattr(hooks, "leave", None)
        for name, hook in (("enter", enter), ("leave", leave)):
            if hook is not None and not callable(hook):
                raise TypeError(f"hook {name} must be callable or None, got {type(hook).__name__}")
        return cls(enter=enter, leave=leave)

    async def on_enter(self, name: str, args: tuple[Any, ...]) -> None:
        if self.enter is not None:
            await _settle(self.enter(name, copy.deepcopy(args)))

    async def on_leave(self, name: str, result: Any) -> None:
        if self.leave is not None:
            await _settle(self.leave(name, copy.deepcopy(result)))


async def _settle(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


@dataclass
class RecordingHooks:
    """Records every hook call as ``(event, name, payload)``."""

    calls: list[tuple[str, str, Any]] = field(default_factory=list)

    def enter(self, name: str, args: tuple[Any, ...]) -> None:
        self.calls.append(("enter", name, args))

    def leave(self, name: str, result: Any) -> None:
        self.calls.append(("leave", name, result))


class LoggingHooks:
    """Reports each dispatch through loguru."""

    def __init__(self, level: str = "DEBUG", **extra: Any) -> None:
        self.level = level
        self._logger = logger.bind(component="dospec", **extra)

    def enter(self, name: str, args: tuple[Any, ...]) -> None:
        self._logger.log(self.level, "enter {} args={!r}", name, args)

    def leave(self, name: str, result: Any) -> None:
        self._logger.log(self.level, "leave {} result={!r}", name, result)


__all__ = ["EnterHook", "Hooks", "LeaveHook", "LoggingHooks", "RecordingHooks"]
