"""Middleware registration."""

from fastapi import FastAPI

from objective_engine.config import Settings
from objective_engine.middleware.error_handler import setup_error_handlers
from objective_engine.middleware.logging import setup_logging
from objective_engine.middleware.request_context import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and request context propagation."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestContextMiddleware)
