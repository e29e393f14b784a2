"""
Structural equality over plain data.

Scripted arguments, results and terminal values are compared by shape and
content, never by identity: sequences element-wise, mappings key-wise.
"""

from __future__ import annotations

import dataclasses
import reprlib
from collections.abc import Mapping, Sequence, Set
from typing import Any

_SCALAR_TEXT = (str, bytes, bytearray)

_repr = reprlib.Repr()
_repr.maxstring = 120
_repr.maxother = 120
_repr.maxlist = 20
_repr.maxtuple = 20
_repr.maxdict = 20
_repr.maxlevel = 6


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, _SCALAR_TEXT)


def _is_dataclass_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def deep_equal(left: Any, right: Any) -> bool:
    """Return ``True`` when ``left`` and ``right`` are structurally equal.

    Lists and tuples compare element-wise regardless of their concrete type,
    ``bool`` never equals a number, and exceptions compare by type and ``args``.
    Cyclic structures are equated: a pair already under comparison is assumed
    equal when it is reached again.
    """

    return _deep_equal(left, right, set())


def _deep_equal(left: Any, right: Any, active: set[tuple[int, int]]) -> bool:  # noqa: PLR0911
    if left is right:
        return True

    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right

    if left is None or right is None:
        return False

    if isinstance(left, _SCALAR_TEXT) or isinstance(right, _SCALAR_TEXT):
        return type(left) is type(right) and left == right

    key = (id(left), id(right))
    if key in active:
        return True

    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if len(left) != len(right) or any(k not in right for k in left):
            return False
        active.add(key)
        try:
            return all(_deep_equal(left[k], right[k], active) for k in left)
        finally:
            active.discard(key)

    if _is_sequence(left) or _is_sequence(right):
        if not (_is_sequence(left) and _is_sequence(right)):
            return False
        if len(left) != len(right):
            return False
        active.add(key)
        try:
            return all(_deep_equal(a, b, active) for a, b in zip(left, right))
        finally:
            active.discard(key)

    if isinstance(left, Set) or isinstance(right, Set):
        return isinstance(left, Set) and isinstance(right, Set) and left == right

    if isinstance(left, BaseException) or isinstance(right, BaseException):
        if type(left) is not type(right):
            return False
        active.add(key)
        try:
            return _deep_equal(left.args, right.args, active)
        finally:
            active.discard(key)

    if _is_dataclass_instance(left) or _is_dataclass_instance(right):
        if type(left) is not type(right):
            return False
        active.add(key)
        try:
            return all(
                _deep_equal(getattr(left, f.name), getattr(right, f.name), active)
                for f in dataclasses.fields(left)
                if f.compare
            )
        finally:
            active.discard(key)

    return bool(left == right)


def render(value: Any) -> str:
    """Format a value for a mismatch message."""

    return _repr.repr(value)


def render_args(args: Sequence[Any]) -> str:
    """Format an argument sequence the way it was passed, as a list."""

    return _repr.repr(list(args))


__all__ = ["deep_equal", "render", "render_args"]
