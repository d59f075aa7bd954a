from sqlalchemy.orm import Session

from ..models.user import User
from .policy import parse_role


def ensure_user_from_identity(db: Session, identity: dict) -> User:
    """Upsert the local user row for a verified identity ``{id, role, ...}``."""
    uid = str(identity.get("id"))
    role = parse_role(identity.get("role") or "user").value
    username = identity.get("username")
    email = identity.get("email")

    u = db.get(User, uid)
    if u:
        # the identity provider is the source of truth for role
        changed = False
        if u.role != role:
            u.role = role; changed = True
        if username and u.username != username:
            u.username = username; changed = True
        if email and u.email != email:
            u.email = email; changed = True
        if changed:
            db.add(u); db.commit(); db.refresh(u)
        return u

    u = User(id=uid, username=username, email=email, role=role)
    db.add(u); db.commit(); db.refresh(u)
    return u
