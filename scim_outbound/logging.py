"""
Structured logging configuration using structlog.

Informational records go to stdout and errors to stderr, every line
timestamped and tagged with ``component="scim-outbound"``.  Callers bind a
``subsystem`` (``HTTP``, ``SCIM``, ``membership``) and, where relevant, the
``target`` name.

Usage:
    from scim_outbound.logging import get_logger

    logger = get_logger(__name__).bind(subsystem="SCIM", target="passbolt")
    logger.info("user_patched", user_name="jdoe", outcome="patched")
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor

COMPONENT = "scim-outbound"


def _add_component(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("component", COMPONENT)
    return event_dict


class _BelowLevel(logging.Filter):
    """Pass only records strictly below ``level`` (keeps errors off stdout)."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def configure_logging(json_format: bool = False, log_level: str = "INFO") -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        json_format: If True, render JSON lines. If False, key=value console output.
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _add_component,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.setFormatter(formatter)
    out_handler.addFilter(_BelowLevel(logging.ERROR))

    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setFormatter(formatter)
    err_handler.setLevel(logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(out_handler)
    root_logger.addHandler(err_handler)
    root_logger.setLevel(log_level_int)

    # requests/urllib3 connection chatter is noise at INFO
    logging.getLogger("urllib3").setLevel(max(log_level_int, logging.WARNING))


def get_logger(name: Optional[str] = None, **initial_values: Any) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
        **initial_values: Context bound to every record of this logger.
    """
    return structlog.get_logger(name, **initial_values)
