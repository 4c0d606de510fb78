# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Logging configuration for Press Ledger using structlog.

JSON lines in production, console output in development. Ledger writes run
inside press_context() so every entry they emit, including the ones from
helpers that know nothing about the press, carries press_number and
actor_id.

Assumptions:
- structlog outputs JSON by default (LOG_JSON)
- Log level comes from LOG_LEVEL
- Context lives in contextvars, so it is per thread and per request
"""
import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor

from pressledger.config import settings


def add_log_level(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the upper-case level name as "level"."""
    event_dict["level"] = method_name.upper()
    return event_dict


def drop_empty_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Remove press/actor keys bound as None (unmounted tools, system writes)."""
    for key in ("press_number", "actor_id"):
        if key in event_dict and event_dict[key] is None:
            del event_dict[key]
    return event_dict


def configure_logging(
    log_level: Optional[str] = None,
    json_output: Optional[bool] = None
) -> None:
    """Configure structlog for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; if False, pretty print

    Assumptions:
    - Defaults come from settings (LOG_LEVEL, LOG_JSON)
    - Safe to call more than once; the last call wins
    """
    level = log_level or settings.log_level
    use_json = json_output if json_output is not None else settings.log_json

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
        force=True,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        drop_empty_context,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance (typically for __name__)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Replace the bound context (request_id, ...) for subsequent entries."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def press_context(press_number: Optional[int] = None, actor: Any = None) -> Iterator[None]:
    """Bind press_number and actor_id to every entry logged inside the block.

    Args:
        press_number: Press the write concerns (None if it has none)
        actor: Actor performing the write; its id is bound as actor_id

    Assumptions:
    - Nests: an inner block overrides the press and restores the outer
      value on exit
    - Unrelated context (request_id, ...) is left alone
    """
    context = {"press_number": press_number}
    if actor is not None:
        context["actor_id"] = actor.id
    with structlog.contextvars.bound_contextvars(**context):
        yield


# Configure logging on module import
configure_logging()
