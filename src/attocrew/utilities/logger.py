"""Crew logging: one structlog renderer for every log line.

Library modules log through ``logging.getLogger(__name__)``.  The root
handler installed here formats those records with the same structlog
processor chain as events from ``crew_logger``, so stdlib lines and
structured lines read the same in the console or as JSON.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

# Transport and driver chatter that drowns out crew events at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def setup_logging(*, debug: bool = False, json_output: bool = False) -> logging.Handler:
    """Route stdlib and structlog output through one stderr handler.

    Replaces any handler a previous call installed, so reopening a
    runtime does not duplicate lines.  Returns the installed handler.
    """
    level = logging.DEBUG if debug else logging.INFO

    final: list[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if json_output:
        final.append(structlog.processors.format_exc_info)
        final.append(structlog.processors.JSONRenderer())
    else:
        final.append(structlog.dev.ConsoleRenderer())

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name("attocrew")
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(foreign_pre_chain=_shared_processors(), processors=final)
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "attocrew":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return handler


def crew_logger(
    name: str = "attocrew",
    *,
    project_id: int | None = None,
    agent_id: int | None = None,
    task_id: int | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """Structured logger bound to whichever crew identifiers are known."""
    ids = {"project_id": project_id, "agent_id": agent_id, "task_id": task_id}
    bound = {k: v for k, v in ids.items() if v is not None}
    bound.update(context)
    return structlog.get_logger(name).bind(**bound)
