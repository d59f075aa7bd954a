# estate/services/listings.py
from __future__ import annotations

import datetime as dt
import math
from typing import Any, Dict, List

from sqlalchemy import and_, func, not_, select, true, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models.admin_action import AdminAction, AdminActionType
from ..models.listing import Listing, ListingStatus
from ..models.user import User, UserRole
from ..utils.log import get_logger
from .errors import Forbidden, InvalidTransition, NotFound, PriceCeilingExceeded
from .policy import (
    CreationDecision, capabilities_for, check_creation_allowed, commission_for, to_reference,
)
from .transitions import Transition, resolve

log = get_logger(__name__)

PUBLIC_STATUSES = (ListingStatus.ACTIVE, ListingStatus.APPROVED)
MODERATED_STATUSES = (ListingStatus.PENDING, ListingStatus.REJECTED)
LISTING_TYPES = ("sale", "rent", "lease")
SORTABLE = {
    "created_at": Listing.created_at,
    "regular_price": Listing.regular_price,
    "views": Listing.views,
    "name": Listing.name,
}

_ADMIN_ACTIONS = {
    Transition.APPROVE: AdminActionType.APPROVE,
    Transition.REJECT: AdminActionType.REJECT,
    Transition.DELETE: AdminActionType.DELETE,
}


# ---------- utils ----------

def _listing_by_id(db: Session, listing_id: int) -> Listing | None:
    return db.get(Listing, listing_id)


def _live_listing(db: Session, listing_id: int) -> Listing:
    # deleted listings are hidden from everyone
    l = _listing_by_id(db, listing_id)
    if not l or l.status == ListingStatus.DELETED:
        raise NotFound()
    return l


def _ensure_owner_or_admin(l: Listing, actor_id: str, actor_role, action: str):
    if l.user_id != actor_id and not capabilities_for(actor_role).can_moderate:
        raise Forbidden(f"You can only {action} your own listings")


def _text(payload: Dict[str, Any], key: str, limit: int) -> str | None:
    value = (payload.get(key) or "")
    value = str(value).strip()
    return value[:limit] or None


def _number(value, name: str, cast=float):
    if value in (None, ""):
        return None
    try:
        out = cast(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{name} must be a number")
    if not math.isfinite(out):
        raise ValueError(f"{name} must be a finite number")
    if out < 0:
        raise ValueError(f"{name} must not be negative")
    return out


def _code(payload: Dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key) or default
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value.strip()


def _clean_fields(payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Normalize user-editable listing fields; status/views/owner are never taken from input."""
    out: Dict[str, Any] = {}

    if not partial or "name" in payload:
        name = _text(payload, "name", 200)
        if not name:
            raise ValueError("Name is required")
        out["name"] = name
    for key, limit in (("description", 4000), ("address", 400)):
        if key in payload:
            out[key] = _text(payload, key, limit)

    if not partial or "regular_price" in payload:
        price = _number(payload.get("regular_price"), "regular_price")
        if price is None:
            raise ValueError("regular_price is required")
        out["regular_price"] = price
    if "discount_price" in payload:
        out["discount_price"] = _number(payload.get("discount_price"), "discount_price")

    if not partial or "currency" in payload:
        currency = _code(payload, "currency", settings.REFERENCE_CURRENCY).upper()
        if currency not in settings.CURRENCY_RATES:
            raise ValueError(f"Unsupported currency: {currency}")
        out["currency"] = currency

    if not partial or "type" in payload:
        kind = _code(payload, "type", "sale").lower()
        if kind not in LISTING_TYPES:
            raise ValueError(f"type must be one of {', '.join(LISTING_TYPES)}")
        out["type"] = kind

    for key in ("bedrooms", "bathrooms"):
        if key in payload:
            out[key] = _number(payload.get(key), key, cast=int)
    for key in ("offer", "furnished", "parking"):
        if key in payload:
            out[key] = bool(payload.get(key))
    if "image_urls" in payload:
        urls = payload.get("image_urls") or []
        if not isinstance(urls, list):
            raise ValueError("image_urls must be a list")
        out["image_urls"] = [str(u) for u in urls]
    return out


# ---------- visibility ----------

def is_publicly_visible(listing: Listing) -> bool:
    status = ListingStatus(listing.status)
    hidden_manager_submission = (
        status in MODERATED_STATUSES and listing.owner_role == UserRole.MANAGER.value
    )
    return status in PUBLIC_STATUSES and not hidden_manager_submission


def public_clause():
    """SQL form of is_publicly_visible; the query must join Listing.owner."""
    return and_(
        Listing.status.in_(PUBLIC_STATUSES),
        not_(and_(Listing.status.in_(MODERATED_STATUSES), User.role == UserRole.MANAGER.value)),
    )


def _public_query():
    return select(Listing).join(User, Listing.owner).where(public_clause())


# ---------- creation ----------

def count_lifetime_listings(db: Session, owner_id: str) -> int:
    # every status counts, soft-deleted rows included
    return db.execute(
        select(func.count(Listing.id)).where(Listing.user_id == owner_id)
    ).scalar_one()


def _gate(db: Session, owner_id: str, owner_role, fields: Dict[str, Any],
          high_value: bool) -> CreationDecision:
    return check_creation_allowed(
        owner_role,
        count_lifetime_listings(db, owner_id),
        fields["regular_price"],
        fields["currency"],
        high_value=high_value,
    )


def check_creation(db: Session, owner_id: str, owner_role, payload: Dict[str, Any],
                   high_value: bool = False) -> CreationDecision:
    """Dry run of create_listing's gate; nothing is written."""
    return _gate(db, owner_id, owner_role, _clean_fields(payload), high_value)


def create_listing(db: Session, owner_id: str, owner_role, payload: Dict[str, Any],
                   high_value: bool = False) -> tuple[Listing, CreationDecision]:
    """
    Create a listing after the quota/price gate.

    Count and insert are not serialized per user: two concurrent requests at
    the quota boundary can both pass, leaving the user one listing over.
    """
    fields = _clean_fields(payload)
    decision = _gate(db, owner_id, owner_role, fields, high_value)

    l = Listing(user_id=owner_id, status=decision.initial_status, views=0, **fields)
    db.add(l)
    db.commit()
    db.refresh(l)
    log.info("listing %s created by %s (%s) status=%s", l.id, owner_id, owner_role, l.status.value)
    return l, decision


# ---------- status transitions ----------

def transition_status(db: Session, listing_id: int, actor_id: str, actor_role, transition) -> Listing:
    """
    Apply ``transition`` with compare-and-swap on the status that was validated.

    If another request changed the status in between, nothing is written and
    InvalidTransition names the status that is actually stored.
    """
    transition = Transition(transition)
    l = _listing_by_id(db, listing_id)
    if not l:
        raise NotFound()
    current = ListingStatus(l.status)
    next_status = resolve(current, transition, actor_role, is_owner=(l.user_id == actor_id))

    res = db.execute(
        update(Listing)
        .where(Listing.id == l.id, Listing.status == current)
        .values(status=next_status, updated_at=dt.datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        stored = ListingStatus(
            db.execute(select(Listing.status).where(Listing.id == listing_id)).scalar_one()
        )
        log.warning("stale transition on listing %s: expected %s, found %s",
                    listing_id, current.value, stored.value)
        raise InvalidTransition(stored.value, transition.value, stale=True)

    if transition in _ADMIN_ACTIONS and capabilities_for(actor_role).can_moderate:
        db.add(AdminAction(
            admin_id=actor_id,
            action_type=_ADMIN_ACTIONS[transition],
            listing_id=l.id,
            details={"name": l.name, "from": current.value, "to": next_status.value},
        ))
    db.commit()
    db.refresh(l)
    log.info("listing %s: %s -> %s by %s (%s)",
             l.id, current.value, next_status.value, actor_id, actor_role)
    return l


def soft_delete(db: Session, listing_id: int, actor_id: str, actor_role) -> Listing:
    l = _live_listing(db, listing_id)
    _ensure_owner_or_admin(l, actor_id, actor_role, "delete")
    return transition_status(db, listing_id, actor_id, actor_role, Transition.DELETE)


def withdraw(db: Session, listing_id: int, actor_id: str, actor_role) -> Listing:
    _live_listing(db, listing_id)
    return transition_status(db, listing_id, actor_id, actor_role, Transition.WITHDRAW)


def review(db: Session, listing_id: int, actor_id: str, actor_role, target_status: str) -> Listing:
    transition = Transition.for_target(target_status)
    if transition not in (Transition.APPROVE, Transition.REJECT):
        raise ValueError("Review status must be 'approved' or 'rejected'")
    return transition_status(db, listing_id, actor_id, actor_role, transition)


# ---------- edits ----------

def update_listing(db: Session, listing_id: int, actor_id: str, actor_role,
                   payload: Dict[str, Any]) -> Listing:
    l = _live_listing(db, listing_id)
    _ensure_owner_or_admin(l, actor_id, actor_role, "update")
    fields = _clean_fields(payload, partial=True)

    price_changed = "regular_price" in fields or "currency" in fields
    owner_caps = capabilities_for(l.owner_role or UserRole.USER.value)
    if price_changed and owner_caps.has_price_ceiling and l.status != ListingStatus.PENDING:
        price = fields.get("regular_price", l.regular_price)
        reference_price = to_reference(price, fields.get("currency", l.currency))
        if reference_price > settings.USER_PRICE_CEILING:
            raise PriceCeilingExceeded(
                price=float(price),
                reference_price=reference_price,
                ceiling=settings.USER_PRICE_CEILING,
                reference_currency=settings.REFERENCE_CURRENCY,
                commission=commission_for(price),
            )

    for k, v in fields.items():
        setattr(l, k, v)
    db.commit()
    db.refresh(l)
    return l


# ---------- reads ----------

def get_listing_for(db: Session, listing_id: int, viewer_id: str | None = None,
                    viewer_role=None) -> Listing:
    """Public listings for anyone; hidden ones only for their owner or an admin."""
    l = _live_listing(db, listing_id)
    if is_publicly_visible(l):
        return l
    if viewer_id is not None and (l.user_id == viewer_id or capabilities_for(viewer_role).can_moderate):
        return l
    raise NotFound()


def list_public(db: Session, filters: Dict[str, Any] | None = None, sort: str = "created_at",
                order: str = "desc", limit: int = 9, start_index: int = 0) -> List[Listing]:
    q = _public_query()
    filters = filters or {}
    if filters.get("search_term"):
        q = q.where(Listing.name.ilike(f"%{filters['search_term']}%"))
    if filters.get("type") and filters["type"] != "all":
        q = q.where(Listing.type == filters["type"])
    for flag in ("offer", "furnished", "parking"):
        if filters.get(flag):
            q = q.where(getattr(Listing, flag).is_(True))
    if filters.get("min_price") is not None:
        q = q.where(Listing.regular_price >= filters["min_price"])
    if filters.get("max_price") is not None:
        q = q.where(Listing.regular_price <= filters["max_price"])

    column = SORTABLE.get(sort, Listing.created_at)
    q = q.order_by(column.asc() if order == "asc" else column.desc(), Listing.id.desc())
    return db.execute(q.offset(start_index).limit(limit)).scalars().all()


def top_viewed(db: Session, limit: int = 5) -> List[Listing]:
    q = _public_query().order_by(Listing.views.desc(), Listing.id.desc()).limit(limit)
    return db.execute(q).scalars().all()


def list_my(db: Session, owner_id: str) -> List[Listing]:
    return db.execute(
        select(Listing)
        .where(Listing.user_id == owner_id, Listing.status != ListingStatus.DELETED)
        .order_by(Listing.id.desc())
    ).scalars().all()


# ---- admin ----

def admin_list_pending(db: Session) -> List[Listing]:
    return db.execute(
        select(Listing).where(Listing.status == ListingStatus.PENDING).order_by(Listing.created_at.desc())
    ).scalars().all()


def admin_list_all(db: Session, page: int = 1, limit: int = 10, search_term: str | None = None,
                   listing_type: str | None = None) -> Dict[str, Any]:
    conds = []
    if search_term:
        conds.append(Listing.name.ilike(f"%{search_term}%"))
    if listing_type and listing_type != "all":
        conds.append(Listing.type == listing_type)
    where = and_(*conds) if conds else true()

    total = db.execute(select(func.count(Listing.id)).where(where)).scalar_one()
    page = max(page, 1)
    items = db.execute(
        select(Listing).where(where).order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return {"total": total, "pages": -(-total // limit) if limit else 0, "items": items}


def list_admin_actions(db: Session, limit: int = 100) -> List[AdminAction]:
    return db.execute(
        select(AdminAction).order_by(AdminAction.id.desc()).limit(limit)
    ).scalars().all()


# ---- manager dashboard ----

def manager_stats(db: Session, owner_id: str) -> Dict[str, Any]:
    counts = dict(db.execute(
        select(Listing.status, func.count(Listing.id))
        .where(Listing.user_id == owner_id)
        .group_by(Listing.status)
    ).all())
    recent = db.execute(
        select(Listing).where(Listing.user_id == owner_id)
        .order_by(Listing.created_at.desc(), Listing.id.desc()).limit(5)
    ).scalars().all()
    return {
        "total_listings": sum(counts.values()),
        "pending_reviews": counts.get(ListingStatus.PENDING, 0),
        "approved_listings": counts.get(ListingStatus.APPROVED, 0),
        "rejected_listings": counts.get(ListingStatus.REJECTED, 0),
        "recent_listings": [
            {"id": l.id, "name": l.name, "status": l.status.value, "views": l.views,
             "created_at": l.created_at.isoformat() if l.created_at else None}
            for l in recent
        ],
    }
