# estate/models/listing.py
from __future__ import annotations

import datetime as dt
import enum

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Enum, Index, JSON
)
from sqlalchemy.orm import relationship

from .base import Base


class ListingStatus(str, enum.Enum):
    DRAFT    = "draft"      # not submitted yet
    PENDING  = "pending"    # waiting for an admin decision
    APPROVED = "approved"
    ACTIVE   = "active"     # default for auto-approved creations
    REJECTED = "rejected"
    INACTIVE = "inactive"   # withdrawn by the owner
    DELETED  = "deleted"    # soft-deleted, row retained


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    description = Column(String(4000), nullable=True)
    address = Column(String(400), nullable=True)
    type = Column(String(16), nullable=False, default="sale")  # sale / rent / lease

    regular_price = Column(Float, nullable=False, default=0)
    discount_price = Column(Float, nullable=True)
    currency = Column(String(8), nullable=False, default="NPR")
    offer = Column(Boolean, default=False, nullable=False)

    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)
    furnished = Column(Boolean, default=False, nullable=False)
    parking = Column(Boolean, default=False, nullable=False)
    image_urls = Column(JSON, nullable=True)

    status = Column(Enum(ListingStatus, name="listing_status"), nullable=False, default=ListingStatus.ACTIVE)
    views = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=True)

    owner = relationship("User", backref="listings")

    __table_args__ = (
        Index("ix_listings_status", "status"),
        Index("ix_listings_user_status", "user_id", "status"),
    )

    @property
    def owner_role(self) -> str | None:
        return self.owner.role if self.owner is not None else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "type": self.type,
            "regular_price": self.regular_price,
            "discount_price": self.discount_price,
            "currency": self.currency,
            "offer": self.offer,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "furnished": self.furnished,
            "parking": self.parking,
            "image_urls": self.image_urls or [],
            "status": self.status.value if hasattr(self.status, "value") else self.status,
            "views": self.views,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
