"""
Structured logging configuration using structlog.

JSON lines in production, console output everywhere else. Every event
carries the service name and environment; request ids arrive through
contextvars bound by RequestLoggingMiddleware. Registration outcomes are
logged by the engine as `registration_created`, `registration_deleted`,
`bulk_registration_completed` and `registration_rolled_back`.
"""

import logging
import sys
import structlog
from eventease.core.config import Settings, get_settings

_HANDLER_NAME = "eventease"

# Driver chatter that drowns the registration events at INFO
_QUIET_LOGGERS = ("uvicorn.access", "aiosqlite", "asyncpg", "redis")


def _service_context(settings: Settings):
    service = {"service": settings.APP_NAME, "env": settings.ENVIRONMENT}

    def add_service_context(logger, method_name, event_dict):
        for key, value in service.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def setup_logging(settings: Settings = None) -> None:
    settings = settings or get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(_service_context(settings))
        shared_processors.append(structlog.processors.format_exc_info)
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

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    # Lifespan may run more than once per process (tests, reloads)
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # DEBUG logs every SQL statement through this handler instead of engine echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
