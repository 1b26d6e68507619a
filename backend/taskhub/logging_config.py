"""structlog setup shared by the API process and the Celery worker."""

import logging

import structlog

from taskhub.config import Settings


def configure_logging(settings: Settings) -> None:
    """Route structlog output through one renderer at the configured level.

    Production emits JSON lines; other environments get the console renderer.
    """
    renderer: structlog.typing.Processor
    if settings.environment == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        cache_logger_on_first_use=True,
    )
