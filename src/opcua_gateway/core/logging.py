"""Structured logging configuration using structlog.

Call configure_logging() once at process startup (before any log calls).
Logs must never reach stdout: stdout carries the framed command channel, so
the handler is bound to stderr unless another stream is passed explicitly.

Supports two output formats controlled by OPCUA_GATEWAY_LOG_FORMAT:
  - "console" (default): human-readable output, colored on a terminal
  - "json": one JSON object per line, for the host to collect
"""

import logging
import sys
from typing import TextIO

import structlog

# asyncua logs every socket hiccup; keep only what matters to the host
_QUIET_LOGGERS = {
    "asyncua": logging.WARNING,
    "asyncua.client.ua_client.UASocketProtocol": logging.ERROR,
    "asyncua.common.subscription": logging.ERROR,
}


def configure_logging(
    log_format: str = "console",
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and stdlib logging integration.

    Args:
        log_format: "console" for dev-friendly output, "json" for the host.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        stream: Output stream, stderr by default.
    """
    stream = stream or sys.stderr

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # asyncua and asyncio log through stdlib; give them the same rendering
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
