import time

from jose import jwt, JWTError

from ..config import settings
from ..models.user import UserRole

_ROLES = {r.value for r in UserRole}


def create_jwt(payload: dict) -> str:
    exp = int(time.time()) + settings.JWT_TTL_SEC
    return jwt.encode({**payload, "exp": exp}, settings.SECRET_KEY, algorithm=settings.JWT_ALG)


def decode_jwt(token: str):
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None


def identity_from_token(token: str) -> dict | None:
    """Verified ``{id, role, username, email}`` from an access token, or None."""
    claims = decode_jwt(token)
    if not claims or not claims.get("id"):
        return None
    role = str(claims.get("role") or UserRole.USER.value).lower()
    if role not in _ROLES:
        return None
    return {
        "id": str(claims["id"]),
        "role": role,
        "username": claims.get("username"),
        "email": claims.get("email"),
    }
