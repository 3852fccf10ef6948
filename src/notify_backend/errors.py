from __future__ import annotations

from fastapi import HTTPException, status


class InvalidParameterError(HTTPException):
    """Malformed listing or update input, rejected before any query runs."""

    def __init__(self, message: str) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class NotFoundError(HTTPException):
    def __init__(self, message: str, *, missing_ids: list[str] | None = None) -> None:
        detail: object = message
        if missing_ids:
            # Convention: {'message': str, 'details': object}
            detail = {"message": message, "details": {"ids": missing_ids}}
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class StorageError(RuntimeError):
    """A transaction or query failed; the request gets no partial result."""
