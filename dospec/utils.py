"""
Utility functions for the dospec library.
"""

from __future__ import annotations

import linecache
import os
import sys
from dataclasses import dataclass, field
from typing import Any


def _is_site_package(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    return "/site-packages/" in normalized


_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


def _is_dospec_internal(path: str) -> bool:
    return os.path.abspath(path).startswith(_PACKAGE_DIR)


def _is_user_frame(path: str) -> bool:
    if path.startswith("<"):
        return True
    return not (_is_site_package(path) or _is_dospec_internal(path))


# Environment variable to control debug mode
DEBUG_EFFECTS = os.environ.get("DOSPEC_DEBUG", "").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class CreationContext:
    """Where an effect request or a trace step was created."""

    filename: str
    line: int
    function: str
    code: str | None = None
    stack_trace: tuple[dict[str, Any], ...] = field(default=(), compare=False)

    def format_location(self) -> str:
        return f"{self.filename}:{self.line} in {self.function}"

    def format_full(self) -> str:
        lines = [self.format_location()]
        if self.code:
            lines.append(f"    {self.code}")
        for frame in self.stack_trace:
            lines.append(
                f'  File "{frame["filename"]}", line {frame["line"]}, in {frame["function"]}'
            )
            if frame.get("code"):
                lines.append(f"    {frame['code']}")
        return "\n".join(lines)


def format_context(context: CreationContext) -> str:
    """Render ``context`` for an error message; the full stack under ``DOSPEC_DEBUG``."""

    if DEBUG_EFFECTS:
        return context.format_full()
    return context.format_location()


def capture_creation_context(skip_frames: int = 2) -> CreationContext | None:
    """
    Capture the current stack context for debugging.

    Args:
        skip_frames: Number of frames to skip (default 2 to skip this function and caller)

    Returns:
        CreationContext for the first frame outside dospec; the outer stack is
        only collected when ``DOSPEC_DEBUG`` is set.
    """
    try:
        frame = sys._getframe(skip_frames)
    except ValueError:
        return None

    while frame.f_back is not None and not _is_user_frame(frame.f_code.co_filename):
        frame = frame.f_back

    filename = frame.f_code.co_filename
    line = frame.f_lineno
    code = linecache.getline(filename, line).strip() or None

    stack_data: list[dict[str, Any]] = []
    if DEBUG_EFFECTS:
        current = frame.f_back
        while current is not None and len(stack_data) < 12:
            frame_data: dict[str, Any] = {
                "filename": current.f_code.co_filename,
                "line": current.f_lineno,
                "function": current.f_code.co_name,
            }
            code_line = linecache.getline(current.f_code.co_filename, current.f_lineno)
            if code_line:
                frame_data["code"] = code_line.strip()
            stack_data.append(frame_data)
            current = current.f_back

    return CreationContext(
        filename=filename,
        line=line,
        function=frame.f_code.co_name,
        code=code,
        stack_trace=tuple(stack_data),
    )


__all__ = [
    "DEBUG_EFFECTS",
    "CreationContext",
    "capture_creation_context",
    "format_context",
]
