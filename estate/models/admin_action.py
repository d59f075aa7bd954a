import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index, JSON
from sqlalchemy.sql import func

from .base import Base


class AdminActionType(str, enum.Enum):
    APPROVE = "approve"
    REJECT  = "reject"
    DELETE  = "delete"


class AdminAction(Base):
    __tablename__ = "admin_actions"

    id = Column(Integer, primary_key=True)
    admin_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    action_type = Column(Enum(AdminActionType, name="admin_action_type"), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_admin_actions_admin_created", "admin_id", "created_at"),)

    def describe(self) -> str:
        verb = {
            AdminActionType.APPROVE: "Approved",
            AdminActionType.REJECT: "Rejected",
            AdminActionType.DELETE: "Deleted",
        }[self.action_type]
        name = (self.details or {}).get("name") or self.listing_id
        return f"{verb} listing {name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "action_type": self.action_type.value,
            "listing_id": self.listing_id,
            "details": self.details or {},
            "description": self.describe(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
