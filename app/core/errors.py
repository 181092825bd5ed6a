"""Domain exceptions raised by the services and their JSON error responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LeagueError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LeagueError):
    status_code = 400


class PermissionDeniedError(LeagueError):
    status_code = 403


class NotFoundError(LeagueError):
    status_code = 404


class ConsistencyError(LeagueError):
    """Stored data contradicts a league invariant (duplicate submission, two active picks...)."""
    status_code = 409


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LeagueError)
    async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
        if exc.status_code == 409:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
