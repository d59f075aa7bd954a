# tests/test_listings.py
import pytest

from estate.models.admin_action import AdminAction, AdminActionType
from estate.models.listing import Listing, ListingStatus
from estate.models.user import User
from estate.services import listings as svc
from estate.services.errors import (
    Forbidden, InvalidTransition, NotFound, PriceCeilingExceeded, QuotaExceeded,
)


# ---------- creation ----------

def test_user_quota_counts_soft_deleted(db, make_user, make_listing):
    make_user("u1")
    first = make_listing("u1")
    make_listing("u1")
    make_listing("u1")
    svc.soft_delete(db, first.id, "u1", "user")
    db.commit()

    assert svc.count_lifetime_listings(db, "u1") == 3
    with pytest.raises(QuotaExceeded):
        make_listing("u1", regular_price=10)


def test_agent_has_no_quota(db, make_user, make_listing):
    make_user("agent1", role="agent")
    for _ in range(99):
        make_listing("agent1", role="agent")
    hundredth = make_listing("agent1", role="agent", regular_price=1_000_000)
    assert hundredth.status == ListingStatus.ACTIVE
    assert svc.count_lifetime_listings(db, "agent1") == 100


def test_high_value_user_listing_is_pending(db, make_user):
    make_user("u1")
    listing, decision = svc.create_listing(
        db, "u1", "user", {"name": "Villa", "regular_price": 15001}, high_value=True,
    )
    db.commit()
    assert listing.status == ListingStatus.PENDING
    assert decision.requires_approval
    assert decision.commission == 450
    assert listing.views == 0


def test_high_value_without_approval_path_is_refused(db, make_user):
    make_user("u1")
    with pytest.raises(PriceCeilingExceeded):
        svc.create_listing(db, "u1", "user", {"name": "Villa", "regular_price": 15001})
    db.rollback()
    assert svc.count_lifetime_listings(db, "u1") == 0


def test_check_creation_is_a_dry_run(db, make_user):
    make_user("u1")
    decision = svc.check_creation(db, "u1", "user", {"name": "x", "regular_price": 20000}, high_value=True)
    assert decision.initial_status == ListingStatus.PENDING
    assert svc.count_lifetime_listings(db, "u1") == 0


def test_create_ignores_status_and_views_from_input(db, make_user, make_listing):
    make_user("u1")
    listing = make_listing("u1", status="approved", views=99)
    assert listing.status == ListingStatus.ACTIVE
    assert listing.views == 0


@pytest.mark.parametrize("payload", [
    {"regular_price": 10},
    {"name": "x"},
    {"name": "x", "regular_price": -5},
    {"name": "x", "regular_price": "cheap"},
    {"name": "x", "regular_price": 10, "currency": "XYZ"},
    {"name": "x", "regular_price": 10, "type": "swap"},
])
def test_create_validates_fields(db, make_user, payload):
    make_user("a1", role="agent")
    with pytest.raises(ValueError):
        svc.create_listing(db, "a1", "agent", payload)


# ---------- visibility ----------

@pytest.mark.parametrize("role", ["user", "agent", "admin"])
@pytest.mark.parametrize("status", [ListingStatus.ACTIVE, ListingStatus.APPROVED])
def test_public_statuses_visible_for_non_managers(role, status):
    assert svc.is_publicly_visible(Listing(status=status, owner=User(id="x", role=role)))


@pytest.mark.parametrize("status", [ListingStatus.PENDING, ListingStatus.REJECTED])
def test_manager_moderated_listings_hidden(status):
    assert not svc.is_publicly_visible(Listing(status=status, owner=User(id="m", role="manager")))


@pytest.mark.parametrize("status", [
    ListingStatus.DRAFT, ListingStatus.INACTIVE, ListingStatus.DELETED, ListingStatus.PENDING,
])
@pytest.mark.parametrize("role", ["user", "agent", "manager", "admin"])
def test_hidden_statuses_never_public(status, role):
    assert not svc.is_publicly_visible(Listing(status=status, owner=User(id="x", role=role)))


def test_list_public_matches_visibility(db, make_user, make_listing):
    make_user("u1")
    make_user("m1", role="manager")
    make_user("admin", role="admin")
    visible = make_listing("u1", name="Visible")
    pending = make_listing("u1", name="Pending", regular_price=20000, high_value=True)
    withdrawn = make_listing("m1", role="manager", name="Withdrawn")
    approved = make_listing("u1", name="Approved", regular_price=30000, high_value=True)
    svc.withdraw(db, withdrawn.id, "m1", "manager")
    svc.review(db, approved.id, "admin", "admin", "approved")
    db.commit()

    names = {l.name for l in svc.list_public(db)}
    assert names == {"Visible", "Approved"}
    for l in svc.list_public(db):
        assert svc.is_publicly_visible(l)
    assert pending.id not in {l.id for l in svc.top_viewed(db)}


def test_list_public_filters_and_sort(db, make_user, make_listing):
    make_user("a1", role="agent")
    make_listing("a1", role="agent", name="Cheap rent", regular_price=100, type="rent", parking=True)
    make_listing("a1", role="agent", name="Mid sale", regular_price=500)
    make_listing("a1", role="agent", name="Big sale", regular_price=900, offer=True)

    by_price = svc.list_public(db, sort="regular_price", order="asc")
    assert [l.name for l in by_price] == ["Cheap rent", "Mid sale", "Big sale"]
    assert [l.name for l in svc.list_public(db, {"type": "rent"})] == ["Cheap rent"]
    assert [l.name for l in svc.list_public(db, {"parking": True})] == ["Cheap rent"]
    assert [l.name for l in svc.list_public(db, {"offer": True})] == ["Big sale"]
    assert {l.name for l in svc.list_public(db, {"search_term": "sale"})} == {"Mid sale", "Big sale"}
    assert [l.name for l in svc.list_public(db, {"min_price": 200, "max_price": 600})] == ["Mid sale"]
    assert len(svc.list_public(db, limit=2, start_index=2)) == 1


def test_get_listing_for_hidden_listing(db, make_user, make_listing):
    make_user("u1")
    make_user("u2")
    make_user("admin", role="admin")
    pending = make_listing("u1", regular_price=20000, high_value=True)

    assert svc.get_listing_for(db, pending.id, "u1", "user").id == pending.id
    assert svc.get_listing_for(db, pending.id, "admin", "admin").id == pending.id
    with pytest.raises(NotFound):
        svc.get_listing_for(db, pending.id)
    with pytest.raises(NotFound):
        svc.get_listing_for(db, pending.id, "u2", "user")


# ---------- transitions ----------

def test_review_by_admin_writes_audit_row(db, make_user, make_listing):
    make_user("u1")
    make_user("admin", role="admin")
    pending = make_listing("u1", regular_price=20000, high_value=True)

    rejected = svc.review(db, pending.id, "admin", "admin", "rejected")
    db.commit()
    assert rejected.status == ListingStatus.REJECTED

    actions = svc.list_admin_actions(db)
    assert len(actions) == 1
    assert actions[0].action_type == AdminActionType.REJECT
    assert actions[0].details["from"] == "pending"
    assert actions[0].describe().startswith("Rejected listing")


def test_review_by_non_admin_forbidden(db, make_user, make_listing):
    make_user("u1")
    pending = make_listing("u1", regular_price=20000, high_value=True)
    with pytest.raises(Forbidden):
        svc.review(db, pending.id, "u1", "user", "approved")
    db.rollback()
    assert db.get(Listing, pending.id).status == ListingStatus.PENDING


def test_review_rejects_other_targets(db, make_user, make_listing):
    make_user("u1")
    listing = make_listing("u1")
    with pytest.raises(ValueError):
        svc.review(db, listing.id, "admin", "admin", "deleted")


def test_approving_active_listing_is_invalid(db, make_user, make_listing):
    make_user("u1")
    listing = make_listing("u1")
    with pytest.raises(InvalidTransition) as exc:
        svc.transition_status(db, listing.id, "admin", "admin", "approve")
    assert exc.value.detail() == {
        "code": "invalid_transition",
        "message": "Cannot approve a listing in status 'active'",
        "current": "active",
        "requested": "approve",
    }


def test_stale_status_is_not_overwritten(db, session_factory, make_user, make_listing):
    make_user("u1")
    make_user("admin", role="admin")
    pending = make_listing("u1", regular_price=20000, high_value=True)

    # another request approves while this session still holds 'pending'
    other = session_factory()
    try:
        svc.review(other, pending.id, "admin", "admin", "approved")
        other.commit()
    finally:
        other.close()

    with pytest.raises(InvalidTransition) as exc:
        svc.review(db, pending.id, "admin", "admin", "rejected")
    assert exc.value.stale
    assert exc.value.current == "approved"
    db.commit()

    db.expire_all()
    assert db.get(Listing, pending.id).status == ListingStatus.APPROVED
    assert db.query(AdminAction).count() == 1


def test_transition_missing_listing(db):
    with pytest.raises(NotFound):
        svc.transition_status(db, 12345, "admin", "admin", "approve")


# ---------- delete / withdraw / update ----------

def test_soft_delete_permissions(db, make_user, make_listing):
    make_user("u1")
    make_user("u2")
    make_user("admin", role="admin")
    a = make_listing("u1")
    b = make_listing("u1")

    with pytest.raises(Forbidden):
        svc.soft_delete(db, a.id, "u2", "user")
    db.rollback()

    assert svc.soft_delete(db, a.id, "u1", "user").status == ListingStatus.DELETED
    assert svc.soft_delete(db, b.id, "admin", "admin").status == ListingStatus.DELETED
    db.commit()

    # row retained and still counted
    assert svc.count_lifetime_listings(db, "u1") == 2
    with pytest.raises(NotFound):
        svc.soft_delete(db, a.id, "u1", "user")
    with pytest.raises(NotFound):
        svc.soft_delete(db, 999, "u1", "user")
    assert svc.list_my(db, "u1") == []


def test_withdraw_hides_listing(db, make_user, make_listing):
    make_user("u1")
    listing = make_listing("u1")
    assert svc.withdraw(db, listing.id, "u1", "user").status == ListingStatus.INACTIVE
    db.commit()
    assert svc.list_public(db) == []
    with pytest.raises(InvalidTransition):
        svc.withdraw(db, listing.id, "u1", "user")


def test_update_listing(db, make_user, make_listing):
    make_user("u1")
    make_user("u2")
    listing = make_listing("u1")

    with pytest.raises(Forbidden):
        svc.update_listing(db, listing.id, "u2", "user", {"name": "Mine now"})
    db.rollback()

    updated = svc.update_listing(db, listing.id, "u1", "user",
                                 {"name": "Renamed", "status": "approved", "views": 50})
    assert updated.name == "Renamed"
    assert updated.status == ListingStatus.ACTIVE
    assert updated.views == 0

    with pytest.raises(PriceCeilingExceeded):
        svc.update_listing(db, listing.id, "u1", "user", {"regular_price": 200, "currency": "USD"})
    db.rollback()


def test_update_price_allowed_for_agent(db, make_user, make_listing):
    make_user("a1", role="agent")
    listing = make_listing("a1", role="agent")
    updated = svc.update_listing(db, listing.id, "a1", "agent", {"regular_price": 99_000})
    assert updated.regular_price == 99_000


# ---------- dashboards ----------

def test_manager_stats(db, make_user, make_listing):
    make_user("m1", role="manager")
    make_user("admin", role="admin")
    make_listing("m1", role="manager")
    make_listing("m1", role="manager")
    stats = svc.manager_stats(db, "m1")
    assert stats["total_listings"] == 2
    assert stats["pending_reviews"] == 0
    assert len(stats["recent_listings"]) == 2


def test_admin_list_all_paginates(db, make_user, make_listing):
    make_user("a1", role="agent")
    for i in range(5):
        make_listing("a1", role="agent", name=f"L{i}")
    res = svc.admin_list_all(db, page=2, limit=2)
    assert res["total"] == 5
    assert res["pages"] == 3
    assert len(res["items"]) == 2


@pytest.mark.parametrize("price", ["nan", "inf", "-inf"])
def test_non_finite_price_never_created(db, make_user, price):
    make_user("u1")
    payload = {"name": "X", "regular_price": price, "currency": "USD"}
    with pytest.raises(ValueError):
        svc.create_listing(db, "u1", "user", payload)
    with pytest.raises(ValueError):
        svc.create_listing(db, "u1", "user", payload, high_value=True)
    assert svc.count_lifetime_listings(db, "u1") == 0


@pytest.mark.parametrize("price", ["nan", "inf", "-inf"])
def test_update_rejects_non_finite_price(db, make_user, make_listing, price):
    make_user("u1")
    listing = make_listing("u1")
    with pytest.raises(ValueError):
        svc.update_listing(db, listing.id, "u1", "user", {"regular_price": price})
    with pytest.raises(ValueError):
        svc.update_listing(db, listing.id, "u1", "user", {"discount_price": price})


@pytest.mark.parametrize("field", ["currency", "type"])
def test_non_string_codes_rejected(db, make_user, make_listing, field):
    make_user("a1", role="agent")
    with pytest.raises(ValueError):
        svc.create_listing(db, "a1", "agent", {"name": "x", "regular_price": 10, field: 840})
    listing = make_listing("a1", role="agent")
    with pytest.raises(ValueError):
        svc.update_listing(db, listing.id, "a1", "agent", {field: ["USD"]})
