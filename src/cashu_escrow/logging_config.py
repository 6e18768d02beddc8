"""Structured logging configuration using structlog.

Colored console output by default, JSON lines when ``LOG_JSON`` is set.
Level and format come from Settings unless passed explicitly. Trade context
(escrow id, trade mode, phase) is bound through structlog contextvars by the
driver, so every entry of a trade flow carries it.

Escrow tokens are bearer instruments: whoever holds the encoded string can
spend it. Any logged value that looks like an encoded token is cut down to a
short preview before rendering.

Usage:
    from cashu_escrow.logging_config import setup_logging, get_logger
    setup_logging()
    logger = get_logger(__name__)
    logger.info("escrow.registered", escrow_id="abc123")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from cashu_escrow.config import get_settings
from cashu_escrow.schemas.token import TOKEN_PREFIX

PREVIEW_LENGTH = 24


def preview(value: str, length: int = PREVIEW_LENGTH) -> str:
    """Shorten a bearer value for log output."""
    if len(value) <= length:
        return value
    return value[:length] + "..."


def redact_bearer_tokens(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor: replace encoded tokens in the event with previews."""
    for key, value in event_dict.items():
        if isinstance(value, str) and value.startswith(TOKEN_PREFIX):
            event_dict[key] = preview(value)
    return event_dict


def setup_logging(log_level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Standard level name. Defaults to ``Settings.app_log_level``.
        json_logs: Render JSON lines. Defaults to ``Settings.log_json``.
    """
    settings = get_settings()
    level_name = (log_level or settings.app_log_level).upper()
    as_json = settings.log_json if json_logs is None else json_logs

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_bearer_tokens,
    ]

    renderer: structlog.types.Processor
    if as_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Quiet noisy third-party loggers
    for noisy_logger in ("asyncio", "statemachine"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to ``name``."""
    return structlog.get_logger(name)
