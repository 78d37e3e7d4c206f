"""Logging setup and structured events for a collection run.

Every record logged inside a ``run_context`` block carries the run id and the
capture task being worked on, both in the text format and in the JSON payload
of ``structured_log`` events.
"""
from __future__ import annotations

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

CONTEXT_FIELDS: tuple[str, ...] = ("run_id", "task")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [run=%(run_id)s task=%(task)s] %(message)s"

# never mutated in place; run_context swaps in a new dict
_context: contextvars.ContextVar[dict[str, str]] = contextvars.ContextVar("techdump_log_context", default={})


@contextmanager
def run_context(**fields: Any) -> Iterator[dict[str, str]]:
    """Bind run_id and/or task for the duration of the block; blocks nest."""
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"unknown log context field(s): {', '.join(unknown)}")
    bound = {**_context.get(), **{k: str(v) for k, v in fields.items() if v is not None}}
    token = _context.set(bound)
    try:
        yield bound
    finally:
        _context.reset(token)


def current_context() -> dict[str, str]:
    return dict(_context.get())


class RunContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _context.get()
        for name in CONTEXT_FIELDS:
            setattr(record, name, ctx.get(name, "-"))
        return True


def configure_logging(level_name: str = "INFO") -> None:
    """Install a stderr handler if none exists and attach the context filter to every handler."""
    root = logging.getLogger()
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, RunContextFilter) for f in handler.filters):
            handler.addFilter(RunContextFilter())


def structured_log(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **current_context(), **fields}
    logger.log(level, json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))
