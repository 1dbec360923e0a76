"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.
Payment secrets and webhook signatures are masked before rendering.
"""

import logging
import sys
import structlog
from structlog.typing import EventDict, WrappedLogger

from tourbook.core.config import get_settings

SENSITIVE_KEYS = ("secret", "signature", "api_key", "authorization", "password")


def mask_sensitive_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace values of secret-looking keys so they never reach the log sink."""
    for key in list(event_dict.keys()):
        if any(marker in key.lower() for marker in SENSITIVE_KEYS) and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        mask_sensitive_values,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # Avoid stacking handlers when the app is started more than once (tests, reload)
    root_logger.handlers = [h for h in root_logger.handlers if not isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)]
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
