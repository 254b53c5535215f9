"""
Error taxonomy for the reservation core and its mapping onto HTTP responses.

Services raise these; routes stay thin and let the handlers registered in
main.py translate them. Store failures are wrapped as TransientStoreError so
callers can tell a retryable outage from a rejected request.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError


class ReservationError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(ReservationError):
    """A required field is missing or carries an invalid value."""

    status_code = 422


class NotFoundError(ReservationError):
    status_code = status.HTTP_404_NOT_FOUND


class AdmissionRejected(ReservationError):
    """The location cannot take the reservation (hours or capacity)."""

    status_code = status.HTTP_409_CONFLICT


class TransientStoreError(ReservationError):
    """Connection or timeout failure from the database; safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated


@asynccontextmanager
async def store_errors() -> AsyncIterator[None]:
    """Re-raise connection-level database failures as TransientStoreError."""
    try:
        yield
    except DBAPIError as exc:
        if _is_transient(exc):
            raise TransientStoreError("Database unavailable") from exc
        raise


async def _reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, _reservation_error_handler)
