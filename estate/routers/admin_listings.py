from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ..admin.security import require_admin
from ..db import get_db
from ..deps import http_error
from ..models.listing import ListingStatus
from ..models.user import User
from ..services import listings as svc
from ..services.notify import send_templated

router = APIRouter(tags=["listings-admin"])


@router.get("/api/listing/pending")
def api_pending(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    rows = svc.admin_list_pending(db)
    items = []
    for it in rows:
        item = it.to_dict()
        item["owner"] = {"id": it.user_id, "username": it.owner.username, "email": it.owner.email} if it.owner else None
        items.append(item)
    return {"ok": True, "items": items}


@router.put("/api/listing/review/{listing_id}")
def api_review(
    listing_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Approve or reject a pending listing: body {"status": "approved" | "rejected"}."""
    try:
        listing = svc.review(db, listing_id, admin.id, admin.role, payload.get("status"))
    except (LookupError, PermissionError, ValueError) as e:
        raise http_error(e)

    template = "listing_approved" if listing.status == ListingStatus.APPROVED else "listing_rejected"
    owner = listing.owner
    background_tasks.add_task(
        send_templated,
        owner.email if owner else None,
        template,
        {"listing_id": listing.id, "name": listing.name, "username": owner.display_name if owner else None},
    )
    return {"ok": True, "id": listing.id, "status": listing.status.value}


@router.get("/api/listing/all")
def api_all_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search_term: str | None = Query(None, alias="searchTerm"),
    type: str | None = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    res = svc.admin_list_all(db, page=page, limit=limit, search_term=search_term, listing_type=type)
    return {"ok": True, "total": res["total"], "pages": res["pages"], "items": [x.to_dict() for x in res["items"]]}


@router.get("/api/admin/actions")
def api_admin_actions(
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"ok": True, "items": [a.to_dict() for a in svc.list_admin_actions(db, limit=limit)]}
