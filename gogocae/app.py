from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gogocae.application import build_services, configure_services
from gogocae.core.errors import DeskError, ValidationError
from gogocae.core.settings import Settings, configure_logging
from gogocae.routes import catalog, notifications, reports, requests

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    configure_services(build_services(settings))

    app = FastAPI(title="GOGOCAE Analysis Request API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DeskError)
    async def handle_desk_error(_: Request, exc: DeskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s: %s", exc.kind, exc.message)
        body: dict[str, object] = {"error": exc.kind, "detail": exc.message, "retryable": exc.retryable}
        if isinstance(exc, ValidationError) and exc.details:
            body["fields"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=body)

    app.include_router(catalog.router, prefix="/api")
    app.include_router(requests.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")
    app.include_router(reports.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "GOGOCAE Analysis Request API",
                "docs": "/docs",
                "health": "/api/vehicles",
            }
        )

    return app


app = create_app()
