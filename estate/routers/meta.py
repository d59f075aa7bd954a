# estate/routers/meta.py
from fastapi import APIRouter, Depends

from ..admin.security import is_admin_user
from ..deps import get_current_user
from ..models.user import User
from ..services.policy import capabilities_for

router = APIRouter(tags=["meta"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/me")
def api_me(user: User = Depends(get_current_user)):
    caps = capabilities_for(user.role)
    return {
        "ok": True,
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "is_admin": bool(is_admin_user(user)),
        "capabilities": {
            "has_quota": caps.has_quota,
            "has_price_ceiling": caps.has_price_ceiling,
            "can_moderate": caps.can_moderate,
        },
    }
