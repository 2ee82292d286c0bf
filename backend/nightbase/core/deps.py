from __future__ import annotations

from fastapi import HTTPException, status

from .db import SessionLocal
from .errors import (
    BillSettingsMissing,
    FloorError,
    InvalidInput,
    InvalidTransition,
    NotFound,
    SessionStateError,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_STATUS_BY_ERROR: list[tuple[type[FloorError], int]] = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_400_BAD_REQUEST),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (SessionStateError, status.HTTP_409_CONFLICT),
    (BillSettingsMissing, status.HTTP_409_CONFLICT),
]


def http_error(exc: FloorError) -> HTTPException:
    """Translate a service error into the HTTP error a router should raise."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
