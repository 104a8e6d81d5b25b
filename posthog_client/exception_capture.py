"""Conversion of Python exceptions into PostHog's ``$exception_list``.

PostHog uses the Sentry exception interface
(https://develop.sentry.dev/sdk/data-model/event-payloads/exception/), so each
exception in the chain becomes one entry with a mechanism and a raw stacktrace.
"""

from __future__ import annotations

import linecache
import os
import traceback
from types import TracebackType
from typing import Any, Dict, List, Optional

STACKTRACE_FRAME_LIMIT = 100
CONTEXT_LINES = 5


def exception_chain(exc: BaseException) -> List[BaseException]:
    """Return ``exc`` followed by its causes, following ``__cause__`` then ``__context__``."""
    chain: List[BaseException] = []
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    return chain


def build_exception_list(exc: BaseException) -> List[Dict[str, Any]]:
    exception_list = []
    parent_id = -1
    for item in exception_chain(exc):
        exception_list.append(_build_exception_interface(item, parent_id))
        parent_id += 1
    return exception_list


def exception_message(exc: BaseException) -> Optional[str]:
    message = str(exc)
    return message or None


def _build_exception_interface(exc: BaseException, parent_id: int) -> Dict[str, Any]:
    mechanism: Dict[str, Any] = {
        "type": "generic",
        "handled": True,
        "exception_id": parent_id + 1,
    }
    if parent_id != -1:
        mechanism["type"] = "chained"
        mechanism["parent_id"] = parent_id

    return {
        "type": type(exc).__name__,
        "module": type(exc).__module__,
        "value": exception_message(exc),
        "mechanism": mechanism,
        "stacktrace": {
            "type": "raw",
            "frames": _stack_frames(exc.__traceback__),
        },
    }


def _stack_frames(tb: Optional[TracebackType]) -> List[Dict[str, Any]]:
    frames = []
    # walk_tb yields the outermost frame first
    for frame, lineno in traceback.walk_tb(tb):
        if len(frames) >= STACKTRACE_FRAME_LIMIT:
            break
        code = frame.f_code
        abs_path = code.co_filename
        pre_context, context_line, post_context = _source_context(abs_path, lineno, frame.f_globals)
        frames.append(
            {
                "platform": "python",
                "filename": os.path.basename(abs_path),
                "abs_path": abs_path,
                "module": frame.f_globals.get("__name__"),
                "function": code.co_name,
                "lineno": lineno,
                "pre_context": pre_context,
                "context_line": context_line,
                "post_context": post_context,
                "in_app": True,
            }
        )
    return frames


def _source_context(filename: str, lineno: Optional[int], module_globals: Dict[str, Any]):
    if lineno is None or lineno <= 0:
        return [], None, []
    lines = linecache.getlines(filename, module_globals)
    if not lines or lineno > len(lines):
        return [], None, []

    index = lineno - 1
    pre_context = [line.rstrip("\n") for line in lines[max(index - CONTEXT_LINES, 0) : index]]
    context_line = lines[index].rstrip("\n")
    post_context = [line.rstrip("\n") for line in lines[index + 1 : index + 1 + CONTEXT_LINES]]
    return pre_context, context_line, post_context
