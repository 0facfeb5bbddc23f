"""Cause-chain unwrapping for failure notifications."""

from __future__ import annotations

from silentspy.models.events import FailureCause

MAX_CAUSE_DEPTH = 5


def detail_message(cause: FailureCause | None, max_depth: int = MAX_CAUSE_DEPTH) -> str | None:
    """Most specific diagnostic text carried by *cause*.

    Walks at most *max_depth* links and returns the first non-empty
    ``long_message``; otherwise the top-level ``message``.
    """
    link = cause
    depth = 0
    while link is not None and depth < max_depth:
        if link.long_message:
            return link.long_message
        link = link.cause
        depth += 1
    if cause is None:
        return None
    return cause.message or None


def summary_line(cause: FailureCause | None) -> str:
    """``TypeName: message`` for the top of the chain."""
    if cause is None:
        return ""
    if cause.message:
        return f"{cause.type_name}: {cause.message}"
    return cause.type_name
