# estate/services/errors.py
"""Client-facing listing errors.

Each error subclasses the builtin it replaces (ValueError, PermissionError,
LookupError) and exposes ``detail()`` with the rule that was violated, so the
API layer can render an actionable message.
"""
from __future__ import annotations


class ListingError(Exception):
    code = "listing_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class QuotaExceeded(ListingError, ValueError):
    code = "quota_exceeded"

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"You have reached the maximum limit of {limit} listings "
            f"({count} created). Upgrade to agent to create more."
        )

    def detail(self) -> dict:
        return {**super().detail(), "count": self.count, "limit": self.limit}


class PriceCeilingExceeded(ListingError, ValueError):
    code = "price_ceiling_exceeded"

    def __init__(self, price: float, reference_price: float, ceiling: float,
                 reference_currency: str, commission: int, requires_approval: bool = False):
        self.price = price
        self.reference_price = reference_price
        self.ceiling = ceiling
        self.reference_currency = reference_currency
        self.commission = commission
        self.requires_approval = requires_approval
        super().__init__(
            f"Price {reference_price:g} {reference_currency} is above the limit of "
            f"{ceiling:g} {reference_currency}. Submit it for admin approval or upgrade to agent."
        )

    def detail(self) -> dict:
        return {
            **super().detail(),
            "price": self.price,
            "reference_price": self.reference_price,
            "ceiling": self.ceiling,
            "reference_currency": self.reference_currency,
            "requires_approval": self.requires_approval,
            "commission": self.commission,
        }


class InvalidTransition(ListingError, ValueError):
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, stale: bool = False):
        self.current = current
        self.requested = requested
        self.stale = stale
        if stale:
            msg = f"Listing status changed to '{current}' before '{requested}' could be applied"
        else:
            msg = f"Cannot {requested} a listing in status '{current}'"
        super().__init__(msg)

    def detail(self) -> dict:
        return {**super().detail(), "current": self.current, "requested": self.requested}


class Forbidden(ListingError, PermissionError):
    code = "forbidden"


class NotFound(ListingError, LookupError):
    code = "not_found"

    def __init__(self, message: str = "Listing not found"):
        super().__init__(message)
