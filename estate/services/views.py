# estate/services/views.py
"""Device-deduplicated view counting."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.listing import Listing, ListingStatus
from ..models.listing_view import ListingView
from ..utils.log import get_logger
from .errors import NotFound

log = get_logger(__name__)


@dataclass(frozen=True)
class ViewResult:
    views: int
    already_viewed: bool = False

    def to_dict(self) -> dict:
        return {"views": self.views, "already_viewed": self.already_viewed}


def _current_views(db: Session, listing_id: int) -> int:
    return db.execute(select(Listing.views).where(Listing.id == listing_id)).scalar_one()


def record_view(db: Session, listing_id: int, device_id: str) -> ViewResult:
    """
    Count a view once per ``(listing_id, device_id)``.

    The dedup-row insert is the serialization point: the unique constraint
    lets exactly one request per device win, and only the winner increments,
    with ``views = views + 1`` evaluated by the database in the same
    transaction.
    """
    if device_id is not None and not isinstance(device_id, str):
        raise ValueError("device_id must be a string")
    device_id = (device_id or "").strip()
    if not device_id:
        raise ValueError("device_id is required")

    status = db.execute(select(Listing.status).where(Listing.id == listing_id)).scalar_one_or_none()
    if status is None or status == ListingStatus.DELETED:
        raise NotFound()

    db.add(ListingView(listing_id=listing_id, device_id=device_id))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        views = _current_views(db, listing_id)
        db.commit()
        log.debug("duplicate view listing=%s device=%s", listing_id, device_id)
        return ViewResult(views=views, already_viewed=True)

    views = db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(views=Listing.views + 1)
        .returning(Listing.views)
        .execution_options(synchronize_session=False)
    ).scalar_one()
    db.commit()
    return ViewResult(views=views)
