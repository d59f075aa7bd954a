# estate/services/transitions.py
"""Listing status transitions as an explicit table, independent of storage."""
from __future__ import annotations

import enum

from ..models.listing import ListingStatus
from .errors import Forbidden, InvalidTransition
from .policy import capabilities_for


class Transition(str, enum.Enum):
    APPROVE  = "approve"
    REJECT   = "reject"
    DELETE   = "delete"
    WITHDRAW = "withdraw"

    @classmethod
    def for_target(cls, status) -> "Transition":
        """Map a requested target status ('approved', ...) to its transition."""
        try:
            return _BY_TARGET[ListingStatus(status)]
        except (KeyError, ValueError):
            raise ValueError(f"Unsupported target status: {status!r}")


class Actor(str, enum.Enum):
    OWNER = "owner"
    MODERATOR = "moderator"


_BY_TARGET = {
    ListingStatus.APPROVED: Transition.APPROVE,
    ListingStatus.REJECTED: Transition.REJECT,
    ListingStatus.DELETED: Transition.DELETE,
    ListingStatus.INACTIVE: Transition.WITHDRAW,
}

_OWNER_OR_MODERATOR = frozenset({Actor.OWNER, Actor.MODERATOR})

# (current, transition) -> (next, who may apply it)
TRANSITIONS: dict[tuple[ListingStatus, Transition], tuple[ListingStatus, frozenset[Actor]]] = {
    (ListingStatus.PENDING, Transition.APPROVE): (ListingStatus.APPROVED, frozenset({Actor.MODERATOR})),
    (ListingStatus.PENDING, Transition.REJECT):  (ListingStatus.REJECTED, frozenset({Actor.MODERATOR})),
    (ListingStatus.ACTIVE, Transition.WITHDRAW):   (ListingStatus.INACTIVE, frozenset({Actor.OWNER})),
    (ListingStatus.APPROVED, Transition.WITHDRAW): (ListingStatus.INACTIVE, frozenset({Actor.OWNER})),
}
for _status in ListingStatus:
    if _status is not ListingStatus.DELETED:
        TRANSITIONS[(_status, Transition.DELETE)] = (ListingStatus.DELETED, _OWNER_OR_MODERATOR)

_FORBIDDEN = {
    frozenset({Actor.MODERATOR}): "Only an admin may {action} a listing",
    frozenset({Actor.OWNER}): "Only the owner may {action} this listing",
    _OWNER_OR_MODERATOR: "You can only {action} your own listings",
}


def actors_for(actor_role, is_owner: bool) -> set[Actor]:
    actors = set()
    if is_owner:
        actors.add(Actor.OWNER)
    if capabilities_for(actor_role).can_moderate:
        actors.add(Actor.MODERATOR)
    return actors


def resolve(current: ListingStatus, transition: Transition, actor_role, is_owner: bool) -> ListingStatus:
    """
    Return the status ``transition`` leads to from ``current``.

    A missing edge is InvalidTransition for every actor; an existing edge the
    actor may not take is Forbidden.
    """
    current = ListingStatus(current)
    transition = Transition(transition)
    edge = TRANSITIONS.get((current, transition))
    if edge is None:
        raise InvalidTransition(current.value, transition.value)
    next_status, allowed = edge
    if not (allowed & actors_for(actor_role, is_owner)):
        raise Forbidden(_FORBIDDEN[allowed].format(action=transition.value))
    return next_status
