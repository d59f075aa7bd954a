from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_roles
from ..models.user import User, UserRole
from ..services.listings import manager_stats

router = APIRouter(prefix="/api/listing/manager", tags=["manager"])


@router.get("/stats")
def api_manager_stats(
    user: User = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    return {"ok": True, **manager_stats(db, user.id)}
