"""
FastAPI application factory for the analysis service.

Creates the app with:
- Lifespan management (fetcher construction/disposal)
- API routes (JSON, /sql-analyzer/v1/*)
- Exception handlers mapping request errors to 400 and anything else to a
  JSON 500

Fetchers can be injected directly (tests, embedding) or built from
ApiSettings at startup: a live database when ``database_url`` is set,
otherwise a recorded fixture from ``fixture_path``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sqlanalyzer import __version__
from sqlanalyzer.api.settings import ApiSettings, get_api_settings
from sqlanalyzer.config import Config
from sqlanalyzer.db.fetchers import PlanFetcher, SchemaFetcher, StaticFetcher
from sqlanalyzer.db.mysql import SQLAlchemyFetcher
from sqlanalyzer.engine import AnalysisService
from sqlanalyzer.exceptions import ConfigurationError, InvalidRequestError
from sqlanalyzer.output.schema import ErrorResponse

logger = logging.getLogger(__name__)


def build_fetcher(settings: ApiSettings) -> SQLAlchemyFetcher | StaticFetcher:
    """
    Fetcher for both plans and schema, chosen from settings.

    Raises:
        ConfigurationError: If neither a database URL nor a fixture is configured
    """
    if settings.database_url:
        logger.info("Using live database %s", settings.database_url.split("@")[-1])
        return SQLAlchemyFetcher.from_url(settings.database_url)
    if settings.fixture_path:
        logger.info("Using recorded fixture %s", settings.fixture_path)
        return StaticFetcher.from_file(settings.fixture_path)
    raise ConfigurationError(
        "No plan source configured: set SQLANALYZER_API_DATABASE_URL "
        "or SQLANALYZER_API_FIXTURE_PATH",
        config_key="database_url",
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


def create_app(
    plan_fetcher: PlanFetcher | None = None,
    schema_fetcher: SchemaFetcher | None = None,
    settings: ApiSettings | None = None,
    config: Config | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        plan_fetcher: Plan source (built from settings at startup if None)
        schema_fetcher: Schema source (defaults to plan_fetcher)
        settings: Optional settings override (uses env vars if None)
        config: Analysis configuration (uses get_config() if None)
        clock: Report timestamp source

    Returns:
        Configured FastAPI app.
    """
    resolved_settings = settings or get_api_settings()

    def make_service(plans: PlanFetcher, schemas: SchemaFetcher | None) -> AnalysisService:
        return AnalysisService(
            plans,
            schemas or plans,  # type: ignore[arg-type]
            config=config,
            clock=clock,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = None
        if getattr(app.state, "service", None) is None:
            owned = build_fetcher(resolved_settings)
            app.state.service = make_service(owned, owned)

        logger.info("sqlanalyzer API started on %s:%s", resolved_settings.host, resolved_settings.port)

        yield

        if isinstance(owned, SQLAlchemyFetcher):
            owned.close()
        if owned is not None:
            app.state.service = None
        logger.info("sqlanalyzer API shut down")

    app = FastAPI(
        title="sqlanalyzer",
        description="Safety-checked EXPLAIN analysis for batches of MySQL queries.",
        version=__version__,
        debug=resolved_settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = resolved_settings
    app.state.service = None
    if plan_fetcher is not None:
        app.state.service = make_service(plan_fetcher, schema_fetcher)

    # ── API routes ──────────────────────────────────────────────────────
    from sqlanalyzer.api.routes import api_router

    app.include_router(api_router)

    # ── Exception handlers ──────────────────────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {location}: {first.get('msg')}" if location else first.get("msg")
        else:
            message = "Invalid request"
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return app
