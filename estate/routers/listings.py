# estate/routers/listings.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_user, get_optional_identity, http_error
from ..models.user import User
from ..services import listings as svc
from ..services.views import record_view

router = APIRouter(prefix="/api/listing", tags=["listings"])


def _flag(value) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _high_value(payload: dict) -> bool:
    snake, camel = payload.pop("high_value", None), payload.pop("highValue", None)
    return _flag(snake) or _flag(camel)


# ---------- create ----------
@router.post("/check")
def api_check_creation(payload: dict, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Dry run of the quota / price-ceiling gate, for the create form."""
    payload = dict(payload)
    high_value = _high_value(payload)
    try:
        decision = svc.check_creation(db, user.id, user.role, payload, high_value=high_value)
    except ValueError as e:
        raise http_error(e)
    return {"ok": True, **decision.to_dict()}


@router.post("/create", status_code=201)
def api_create_listing(payload: dict, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payload = dict(payload)
    high_value = _high_value(payload)
    try:
        listing, decision = svc.create_listing(db, user.id, user.role, payload, high_value=high_value)
    except ValueError as e:
        raise http_error(e)
    return {"ok": True, "listing": listing.to_dict(), **decision.to_dict()}


# ---------- public ----------
@router.get("/get")
def api_search(
    search_term: str | None = Query(None, alias="searchTerm"),
    type: str | None = None,
    offer: bool = False,
    furnished: bool = False,
    parking: bool = False,
    min_price: float | None = Query(None, alias="minPrice"),
    max_price: float | None = Query(None, alias="maxPrice"),
    sort: str = "created_at",
    order: str = "desc",
    limit: int = Query(9, ge=1, le=100),
    start_index: int = Query(0, ge=0, alias="startIndex"),
    db: Session = Depends(get_db),
):
    filters = {
        "search_term": search_term,
        "type": type,
        "offer": offer,
        "furnished": furnished,
        "parking": parking,
        "min_price": min_price,
        "max_price": max_price,
    }
    rows = svc.list_public(db, filters=filters, sort=sort, order=order, limit=limit, start_index=start_index)
    return {"ok": True, "items": [x.to_dict() for x in rows]}


@router.get("/top-viewed")
def api_top_viewed(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return {"ok": True, "items": [x.to_dict() for x in svc.top_viewed(db, limit=limit)]}


@router.get("/get/{listing_id}")
def api_get_listing(
    listing_id: int,
    identity: dict | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    try:
        listing = svc.get_listing_for(
            db, listing_id,
            viewer_id=identity["id"] if identity else None,
            viewer_role=identity["role"] if identity else None,
        )
    except LookupError as e:
        raise http_error(e)
    return listing.to_dict()


@router.post("/view/{listing_id}")
def api_record_view(listing_id: int, payload: dict, db: Session = Depends(get_db)):
    device_id = payload.get("device_id") or payload.get("deviceId")
    try:
        result = record_view(db, listing_id, device_id)
    except (LookupError, ValueError) as e:
        raise http_error(e)
    return {"ok": True, **result.to_dict()}


# ---------- owner ----------
@router.get("/mine")
def api_my_listings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"ok": True, "items": [x.to_dict() for x in svc.list_my(db, user.id)]}


@router.post("/update/{listing_id}")
def api_update_listing(
    listing_id: int,
    payload: dict,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        listing = svc.update_listing(db, listing_id, user.id, user.role, payload)
    except (LookupError, PermissionError, ValueError) as e:
        raise http_error(e)
    return listing.to_dict()


@router.post("/withdraw/{listing_id}")
def api_withdraw_listing(listing_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        listing = svc.withdraw(db, listing_id, user.id, user.role)
    except (LookupError, PermissionError, ValueError) as e:
        raise http_error(e)
    return {"ok": True, "id": listing.id, "status": listing.status.value}


@router.delete("/delete/{listing_id}")
def api_delete_listing(listing_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        svc.soft_delete(db, listing_id, user.id, user.role)
    except (LookupError, PermissionError, ValueError) as e:
        raise http_error(e)
    return {"ok": True, "deleted": listing_id}
