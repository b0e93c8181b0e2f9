"""Structured logging: structlog events and stdlib engine loggers share one renderer."""

import logging

import structlog

from objective_engine.config import Settings

SERVICE_NAME = "objective-engine"
HANDLER_NAME = "objective_engine"


def _service_context(season_code: str) -> structlog.types.Processor:
    def add_service_context(_logger: object, _method: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("season", season_code)
        return event_dict

    return add_service_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog and route ``logging.getLogger`` records through the same chain.

    The engine modules log with the stdlib; resync and the HTTP layer emit
    structlog events. Both end up as JSON (or console) lines carrying the
    request id, service name and season.
    """
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _service_context(settings.season_code),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                renderer,
            ],
        )
    )

    # Replace our handler on repeated app creation, leave foreign handlers alone
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
