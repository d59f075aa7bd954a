# estate/admin/security.py
from fastapi import Depends, HTTPException, status

from ..deps import get_current_user
from ..models.user import User
from ..services.policy import capabilities_for


def is_admin_user(user) -> bool:
    """Admin is whoever holds the moderation capability for their role."""
    role = (getattr(user, "role", "") or "").lower()
    try:
        return capabilities_for(role).can_moderate
    except ValueError:
        return False


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not is_admin_user(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin only")
    return user
