# estate/services/policy.py
"""Per-role capabilities and the pre-creation gate (quota + price ceiling)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..config import settings
from ..models.listing import ListingStatus
from ..models.user import UserRole
from .errors import PriceCeilingExceeded, QuotaExceeded


@dataclass(frozen=True)
class RoleCapabilities:
    has_quota: bool
    has_price_ceiling: bool
    can_moderate: bool


CAPABILITIES: dict[UserRole, RoleCapabilities] = {
    UserRole.USER:    RoleCapabilities(has_quota=True,  has_price_ceiling=True,  can_moderate=False),
    UserRole.AGENT:   RoleCapabilities(has_quota=False, has_price_ceiling=False, can_moderate=False),
    UserRole.MANAGER: RoleCapabilities(has_quota=False, has_price_ceiling=False, can_moderate=False),
    UserRole.ADMIN:   RoleCapabilities(has_quota=False, has_price_ceiling=False, can_moderate=True),
}


def parse_role(role) -> UserRole:
    try:
        return UserRole((role or "").lower() if isinstance(role, str) else role)
    except ValueError:
        raise ValueError(f"Unknown role: {role!r}")


def capabilities_for(role) -> RoleCapabilities:
    return CAPABILITIES[parse_role(role)]


# ---------- currency ----------

def to_reference(amount: float, currency: str) -> float:
    rates = settings.CURRENCY_RATES
    code = (currency or settings.REFERENCE_CURRENCY).upper()
    if code not in rates:
        raise ValueError(f"Unsupported currency: {currency}")
    return float(amount) * rates[code]


def commission_for(price: float) -> int:
    # half-up, so 0.5 rounds away from zero like the listing UI does
    raw = Decimal(str(price)) * Decimal(str(settings.HIGH_VALUE_COMMISSION_RATE))
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------- creation gate ----------

@dataclass(frozen=True)
class CreationDecision:
    initial_status: ListingStatus
    requires_approval: bool = False
    commission: int | None = None

    def to_dict(self) -> dict:
        return {
            "initial_status": self.initial_status.value,
            "requires_approval": self.requires_approval,
            "commission": self.commission,
        }


def check_creation_allowed(role, lifetime_listing_count: int, requested_price: float,
                           currency: str, high_value: bool = False) -> CreationDecision:
    """
    Decide whether a listing may be created and in which status it starts.

    Raises QuotaExceeded before looking at the price, so a user at the quota
    is refused regardless of price. A price above the ceiling raises
    PriceCeilingExceeded unless ``high_value`` routes the submission through
    admin approval, in which case it starts as ``pending`` with an
    informational commission.
    """
    caps = capabilities_for(role)
    try:
        price = float(requested_price)
    except (TypeError, ValueError):
        raise ValueError("Price must be a non-negative number")
    # nan compares false against both bounds
    if not math.isfinite(price) or price < 0:
        raise ValueError("Price must be a non-negative number")

    if caps.has_quota and lifetime_listing_count >= settings.USER_LISTING_QUOTA:
        raise QuotaExceeded(lifetime_listing_count, settings.USER_LISTING_QUOTA)

    if caps.has_price_ceiling:
        reference_price = to_reference(price, currency)
        if reference_price > settings.USER_PRICE_CEILING:
            commission = commission_for(price)
            if not high_value:
                raise PriceCeilingExceeded(
                    price=price,
                    reference_price=reference_price,
                    ceiling=settings.USER_PRICE_CEILING,
                    reference_currency=settings.REFERENCE_CURRENCY,
                    commission=commission,
                )
            return CreationDecision(ListingStatus.PENDING, requires_approval=True, commission=commission)
    else:
        # still reject currencies we cannot convert
        to_reference(price, currency)

    return CreationDecision(ListingStatus.ACTIVE)
