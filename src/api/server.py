"""FastAPI application factory and uvicorn entry point for the admin API."""

from __future__ import annotations

import logging
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.routes import CommitmentServices, router
from commitments.notifications import CommitmentNotifier
from commitments.repository import CommitmentNotFoundError, InvalidCommitmentError
from config import settings
from logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    *,
    session_factory: Callable[[], Session] | None = None,
    notifier: CommitmentNotifier | None = None,
    title: str = "support-commitments",
    version: str = "0.1.0",
) -> FastAPI:
    """Create the admin API app bound to a session factory."""
    if session_factory is None:
        from services.database import get_sync_session

        session_factory = get_sync_session
    app = FastAPI(title=title, version=version)
    app.state.commitment_services = CommitmentServices.build(session_factory, notifier=notifier)
    app.include_router(router)
    app.add_exception_handler(CommitmentNotFoundError, _not_found_handler)
    app.add_exception_handler(InvalidCommitmentError, _invalid_input_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


async def _not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_input_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.info("rejected commitment request: path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def run_app(
    app: FastAPI,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    log_level: str = "info",
) -> None:
    """Run one FastAPI app through uvicorn."""
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def main() -> None:
    """Configure logging, apply migrations, and serve the admin API."""
    from services.database import run_migrations

    configure_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        service="commitments-api",
    )
    run_migrations()
    run_app(
        create_app(),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
