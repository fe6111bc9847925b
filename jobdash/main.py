"""
FastAPI application entrypoint for the job dashboard integrations service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobdash.api.routes import error_response
from jobdash.api.routes import router as api_router
from jobdash.core.config import get_settings, resolve_integrations
from jobdash.core.errors import ConfigurationError
from jobdash.core.logging import configure_logging

logger = logging.getLogger(__name__)


def _check_integrations(require_all: bool) -> None:
    settings = get_settings()
    availability = resolve_integrations(settings)
    for feature, problem in availability.problems.items():
        logger.warning("Integration %s disabled: %s", feature, problem)
    if require_all and availability.problems:
        missing = tuple(
            name for problem in availability.problems.values() for name in problem.missing
        )
        raise ConfigurationError(
            "Required integrations are not configured.", missing=missing
        )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)
    _check_integrations(settings.require_integrations)

    app = FastAPI(
        title="Job Dashboard Integrations",
        version="0.1.0",
        description="Google Calendar and Telegram credential lifecycle API.",
    )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException):
        response = error_response(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_: Request, exc: RequestValidationError):
        fields = sorted(
            {
                ".".join(str(part) for part in error.get("loc", ())[1:])
                for error in exc.errors()
            }
        )
        return error_response(
            HTTPStatus.BAD_REQUEST, "Invalid request payload.", fields=fields
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error.")

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
