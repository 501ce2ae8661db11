"""
Logging configuration for the API.

Usage:
    # In routers, use the contextual logger so the request ID is included:
    from middleware.logging_middleware import get_logger
    logger = get_logger(__name__)

    logger.info("Cropping image")  # Logged as "[a1b2c3d4] Cropping image"

    # Services use standard logging:
    import logging
    logger = logging.getLogger(__name__)

    # Slow steps record their duration on the current request; the request
    # middleware adds them to its "request_end" record:
    record_timing("locator_ms", elapsed_ms)

Pipeline loggers (smart crop, locator, framing, compositing) can run at their
own level via PIPELINE_LOG_LEVEL, e.g. DEBUG to see every crop rectangle
without turning on DEBUG for the whole process.
"""
import logging
import sys
from contextvars import ContextVar, Token
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import structlog

from core.config import settings

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "httpcore", "google_genai", "PIL")

PIPELINE_LOGGERS = (
    "services.smart_crop_service",
    "services.object_locator",
    "services.camera_framing_service",
    "services.image_compositing_service",
)

# Shared dict so timings recorded inside the endpoint task reach the middleware
_request_timings: ContextVar[Optional[Dict[str, float]]] = ContextVar("request_timings", default=None)


def start_request_timings() -> Token:
    """Begin collecting step timings for the current request."""
    return _request_timings.set({})


def reset_request_timings(token: Token):
    _request_timings.reset(token)


def record_timing(name: str, elapsed_ms: float):
    """Add ``elapsed_ms`` to the named timing of the current request (no-op outside a request)."""
    timings = _request_timings.get()
    if timings is not None:
        timings[name] = timings.get(name, 0.0) + elapsed_ms


def get_request_timings() -> Dict[str, float]:
    return dict(_request_timings.get() or {})


def setup_logging():
    """Configure logging for the application."""

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=shared_processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.log_format == "json":
        console_format = "%(message)s"
    else:
        console_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    if settings.environment == "production":
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir / "api.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        root_logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            log_dir / "api_errors.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        root_logger.addHandler(error_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    pipeline_level = getattr(logging, (settings.pipeline_log_level or settings.log_level).upper(), log_level)
    for name in PIPELINE_LOGGERS:
        logging.getLogger(name).setLevel(pipeline_level)
    if pipeline_level < log_level:
        # Let the more verbose pipeline records through the shared handlers
        for handler in root_logger.handlers:
            if handler.level == log_level:
                handler.setLevel(pipeline_level)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={settings.log_level}, format={settings.log_format}, "
        f"pipeline={logging.getLevelName(pipeline_level)}, env={settings.environment}"
    )
