"""structlog configuration shared by the API and the retry worker."""

import logging

import structlog

from learnloop.config import Settings

# SQLAlchemy and arq log every statement and job at INFO.
NOISY_LOGGERS = ("sqlalchemy.engine", "arq.jobs")


def setup_logging(settings: Settings) -> None:
    """Render JSON in deployments, colored key=value lines locally.

    Every event carries the service name and environment so API and worker
    lines can be told apart once shipped.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    static_context = {"service": "learnloop", "environment": settings.environment}

    def add_static_context(_logger: object, _method: str, event_dict: dict) -> dict:
        for key, value in static_context.items():
            event_dict.setdefault(key, value)
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_static_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
