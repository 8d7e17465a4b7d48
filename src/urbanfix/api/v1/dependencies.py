"""Shared API dependencies for authentication and error translation."""

from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from urbanfix.core.errors import (
    Conflict,
    Forbidden,
    NotFound,
    RateLimited,
    TransientStorageError,
    UrbanFixError,
    ValidationError,
)
from urbanfix.core.security import Principal, decode_principal
from urbanfix.db.session import get_db

# HTTP Bearer scheme for identity-provider JWTs
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

_STATUS_BY_ERROR: tuple[tuple[type[UrbanFixError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (Conflict, status.HTTP_409_CONFLICT),
    (TransientStorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def raise_http_error(exc: UrbanFixError) -> NoReturn:
    """Translate a core error into the matching ``HTTPException``.

    Args:
        exc: Error raised by a service

    Raises:
        HTTPException: Always
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    elif isinstance(exc, TransientStorageError):
        headers = {"Retry-After": "1"}
    raise HTTPException(status_code=status_code, detail=exc.message, headers=headers) from exc


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> Principal:
    """Get the acting principal from the identity provider's JWT.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        Principal carrying user id, role and email

    Raises:
        HTTPException: If the token is invalid or its claims are unusable
    """
    try:
        return decode_principal(credentials.credentials)
    except (JWTError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


# Type alias for current principal dependency
CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]
