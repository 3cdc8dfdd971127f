"""structlog setup for the assistant and its console channel.

Modules log snake_case events with keyword fields (tool_invoked,
tool_server_connect_failed, route_search). Credentials never appear in
event fields; only their presence does. The console channel calls
setup_logging() once, from CLI flags or LOG_* settings.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog: JSON or console rendering, filtered at log_level.

    Logs go to stderr; stdout belongs to the chat transcript.
    Raises ValueError for a level name the logging module does not know.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # ConsoleRenderer formats exc_info itself
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
