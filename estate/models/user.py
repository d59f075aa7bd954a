import enum

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from .base import Base


class UserRole(str, enum.Enum):
    USER    = "user"
    AGENT   = "agent"
    MANAGER = "manager"
    ADMIN   = "admin"


class User(Base):
    __tablename__ = "users"

    # id is issued by the identity provider, not generated here
    id = Column(String(64), primary_key=True)

    username = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default=UserRole.USER.value)  # 'user'/'agent'/'manager'/'admin'
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def display_name(self) -> str:
        return self.username or self.email or f"ID {self.id}"
