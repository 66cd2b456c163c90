"""
CRM Calendar API - FastAPI Application

Entry point for the calendar REST API. The scheduling coordinator, event
store and directory are created in the lifespan and kept on ``app.state``.

Usage:
    uvicorn crm_calendar.api.main:app --host 127.0.0.1 --port 8080 --reload

    Or through the CLI:
    crm-calendar serve --port 8080
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

# Load .env file before anything else
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crm_calendar import get_connection
from crm_calendar.api import api_router
from crm_calendar.config import CalendarConfig, load_config
from crm_calendar.logging_config import setup_logging
from crm_calendar.scheduling.coordinator import SchedulingCoordinator
from crm_calendar.store.directory import SQLiteDirectory
from crm_calendar.store.sqlite_store import SQLiteEventStore

logger = logging.getLogger(__name__)


def create_app(config: CalendarConfig | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Calendar configuration (loaded from args/calendar.yaml when omitted)
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_path = config.storage.resolved_db_path()
        get_connection(db_path).close()

        app.state.config = config
        app.state.directory = SQLiteDirectory(db_path)
        app.state.coordinator = SchedulingCoordinator(
            SQLiteEventStore(db_path),
            app.state.directory,
            config,
        )
        app.state.started_at = datetime.now()
        logger.info(f"Calendar API started with database {db_path}")

        yield

        logger.info("Calendar API shutting down")

    app = FastAPI(
        title="CRM Calendar API",
        description="Scheduling and conflict checks for staff and team calendars",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies and parameters are validation errors like any other."""
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid request",
                "error_code": "validation_error",
                "details": {"code": "validation_error", "errors": jsonable_errors(exc)},
            },
        )

    @app.get("/api/health")
    async def health():
        started_at = getattr(app.state, "started_at", None)
        uptime = (datetime.now() - started_at).total_seconds() if started_at else 0
        return {"status": "healthy", "uptime_seconds": int(uptime)}

    app.include_router(api_router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


settings = load_config()
setup_logging(settings.logging)
app = create_app(settings)
