"""Unit tests for derived donation views, listing order and filters."""
import logging
from datetime import datetime, timedelta, timezone

import pool
from errors import DataIntegrityWarning
from models import Donation

NOW = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)


def raw(id=1, **fields):
    values = {
        "donor_id": "donor-1",
        "donor_name": "Dana",
        "food_item": "Apples",
        "location": "Main street",
        "description": "",
        "original_quantity": 10,
        "created_at": NOW - timedelta(hours=1),
    }
    values.update(fields)
    return Donation(id=id, **values)


def test_remaining_defaults_to_original():
    view = pool.derive_view(raw(remaining_quantity=None), NOW)
    assert view.remaining_quantity == 10
    assert view.status == "available"


def test_partial_claim_derives_partially_claimed():
    view = pool.derive_view(raw(remaining_quantity=4, status="available"), NOW)
    assert view.status == "partially_claimed"


def test_zero_remaining_is_fully_booked():
    view = pool.derive_view(raw(remaining_quantity=0, status="partially_claimed"), NOW)
    assert view.status == "fully_booked"
    assert view.is_claimable is False


def test_stale_available_status_is_ignored():
    # stored status says available but the quantity says otherwise
    view = pool.derive_view(raw(remaining_quantity=7, status="available"), NOW)
    assert view.status == "partially_claimed"


def test_completed_is_never_downgraded():
    view = pool.derive_view(raw(remaining_quantity=10, status="completed"), NOW)
    assert view.status == "completed"
    assert view.is_claimable is False


def test_fully_booked_is_not_reopened_by_stale_quantity():
    view = pool.derive_view(raw(remaining_quantity=3, status="fully_booked"), NOW)
    assert view.status == "fully_booked"
    assert view.remaining_quantity == 0


def test_remaining_is_clamped_into_range():
    assert pool.derive_view(raw(remaining_quantity=15), NOW).remaining_quantity == 10
    assert pool.derive_view(raw(remaining_quantity=-2), NOW).remaining_quantity == 0


def test_derive_view_is_idempotent():
    record = raw(remaining_quantity=6, expiration_date=NOW + timedelta(days=2))
    assert pool.derive_view(record, NOW) == pool.derive_view(record, NOW)


def test_urgency_window_is_five_days():
    assert pool.derive_view(raw(expiration_date=NOW + timedelta(days=4)), NOW).is_urgent
    assert not pool.derive_view(raw(expiration_date=NOW + timedelta(days=6)), NOW).is_urgent
    assert not pool.derive_view(raw(expiration_date=None), NOW).is_urgent


def test_naive_timestamps_are_read_as_utc():
    naive = (NOW + timedelta(days=1)).replace(tzinfo=None)
    view = pool.derive_view(raw(expiration_date=naive), NOW)
    assert view.is_urgent
    assert view.expiration_date.tzinfo is not None


def test_listing_puts_urgent_first_then_newest():
    records = [
        raw(1, created_at=NOW - timedelta(days=3)),
        raw(2, created_at=NOW - timedelta(days=1)),
        raw(3, created_at=NOW - timedelta(days=5), expiration_date=NOW + timedelta(days=1)),
        raw(4, created_at=NOW - timedelta(days=2), expiration_date=NOW + timedelta(days=2)),
        raw(5, created_at=None),
    ]
    assert [v.id for v in pool.build_listing(records, NOW)] == [4, 3, 2, 1, 5]


def test_listing_skips_records_without_food_item(caplog):
    records = [raw(1), raw(2, food_item=None), raw(3, food_item="")]
    with caplog.at_level(logging.WARNING, logger="pool"):
        views = pool.build_listing(records, NOW)
    assert [v.id for v in views] == [1]
    issues = [r.issue for r in caplog.records if hasattr(r, "issue")]
    assert all(isinstance(issue, DataIntegrityWarning) for issue in issues)
    assert [(i.donation_id, i.field) for i in issues] == [(2, "food_item"), (3, "food_item")]
    assert "donation 2 has no food_item" in caplog.text


def test_filter_available_includes_partially_claimed():
    views = pool.build_listing(
        [
            raw(1),
            raw(2, remaining_quantity=5),
            raw(3, remaining_quantity=0),
            raw(4, status="completed"),
        ],
        NOW,
    )
    assert {v.id for v in pool.filter_listing(views, status="available")} == {1, 2}
    assert {v.id for v in pool.filter_listing(views, status="fully_booked")} == {3}
    assert len(pool.filter_listing(views, status="all")) == 4


def test_search_matches_item_description_and_location_case_insensitively():
    views = pool.build_listing(
        [
            raw(1, food_item="Brown Rice"),
            raw(2, description="fresh rice cakes"),
            raw(3, location="Riceville"),
            raw(4, food_item="Milk"),
        ],
        NOW,
    )
    assert {v.id for v in pool.filter_listing(views, search="RICE", status="all")} == {1, 2, 3}


def test_total_servings_ignores_malformed_records():
    assert pool.total_servings([raw(1), raw(2, original_quantity=5), raw(3, food_item=None)]) == 15


def test_pool_stats():
    views = pool.build_listing(
        [
            raw(1, donor_id="a"),
            raw(2, donor_id="a", original_quantity=4),
            raw(3, donor_id="guest_1700000000000", donor_name="Anonymous"),
        ],
        NOW,
        applicant_counts={1: 2, 3: 1},
    )
    stats = pool.pool_stats(views)
    assert stats.donation_count == 3
    assert stats.total_servings == 24
    assert stats.total_applications == 3
    assert stats.registered_donors == 1


def test_time_ago():
    assert pool.time_ago(NOW - timedelta(minutes=12), NOW) == "12m ago"
    assert pool.time_ago(NOW - timedelta(hours=3), NOW) == "3h ago"
    assert pool.time_ago(NOW - timedelta(days=2, hours=5), NOW) == "2d ago"
    assert pool.time_ago(None, NOW) == ""


def test_time_ago_clamps_future_timestamps():
    assert pool.time_ago(NOW + timedelta(minutes=3), NOW) == "0m ago"
