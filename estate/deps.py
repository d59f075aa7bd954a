# estate/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models.user import User, UserRole
from .services.errors import (
    Forbidden, InvalidTransition, ListingError, NotFound, PriceCeilingExceeded, QuotaExceeded,
)
from .services.users import ensure_user_from_identity
from .utils.security import identity_from_token


# ------------------ identity ------------------

def _token_from_request(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.cookies.get(settings.COOKIE_NAME)


def get_optional_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> dict | None:
    token = _token_from_request(request, authorization)
    if not token:
        return None
    identity = identity_from_token(token)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return identity


def get_current_identity(identity: dict | None = Depends(get_optional_identity)) -> dict:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You need to be logged in",
        )
    return identity


def get_current_user(
    identity: dict = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    return ensure_user_from_identity(db, identity)


def require_roles(*roles: UserRole):
    allowed = {r.value for r in roles}

    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission",
            )
        return user

    return _guard


# ------------------ errors ------------------

_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (QuotaExceeded, status.HTTP_403_FORBIDDEN),
    (PriceCeilingExceeded, status.HTTP_400_BAD_REQUEST),
    (InvalidTransition, status.HTTP_409_CONFLICT),
)


def http_error(e: Exception) -> HTTPException:
    """Translate a service error into the HTTPException the routers raise."""
    if isinstance(e, ListingError):
        for cls, code in _STATUS_BY_ERROR:
            if isinstance(e, cls):
                return HTTPException(status_code=code, detail=e.detail())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
