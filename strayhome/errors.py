"""Domain errors raised by the service layer.

Each error is an :class:`fastapi.HTTPException`, so it propagates out of
services and route handlers unchanged and is rendered by FastAPI as
``{"detail": "..."}`` with the matching status code.
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """The requested entity does not exist."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthorizationError(HTTPException):
    """The caller is not the owner required by the operation."""

    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationError(HTTPException):
    """A required field is missing or malformed."""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    """A business rule rejects the operation in the current state."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class SelfReferenceError(ConflictError):
    """A poster tried to act as the adopter of their own listing."""


class DuplicateError(ConflictError):
    """The same interest or request was already recorded."""


class InvalidTransitionError(ConflictError):
    """An adoption request cannot move to the requested status."""
