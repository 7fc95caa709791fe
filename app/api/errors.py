"""
Translation of domain errors into HTTP errors.
"""

from fastapi import HTTPException, status

from app.exceptions import (
    AuthenticationError,
    LoanTrackerError,
    NotFoundError,
    PermissionDeniedError,
)


def http_error(error: LoanTrackerError) -> HTTPException:
    if isinstance(error, AuthenticationError):
        code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(error, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=error.message)
