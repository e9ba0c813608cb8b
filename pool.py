"""Read-side view of the donation pool.

Stored ``remaining_quantity``/``status`` are treated as hints only: every
view recomputes them from the base quantities so a stale denormalized field
can never leak into a listing or a claim decision.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from errors import DataIntegrityWarning
from models import Donation, DonationStatus
from schemas import DonationView, PoolStats

logger = logging.getLogger(__name__)

URGENT_WITHIN = timedelta(days=5)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some drivers (SQLite) hand back naive datetimes; they were stored as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def is_urgent(expiration_date: Optional[datetime], now: datetime) -> bool:
    if expiration_date is None:
        return False
    return as_utc(expiration_date) <= now + URGENT_WITHIN


def derive_status(stored: Optional[str], remaining: int, original: int) -> str:
    if stored == DonationStatus.COMPLETED.value:
        return stored
    if remaining <= 0 or stored == DonationStatus.FULLY_BOOKED.value:
        return DonationStatus.FULLY_BOOKED.value
    if remaining < original:
        return DonationStatus.PARTIALLY_CLAIMED.value
    return DonationStatus.AVAILABLE.value


def time_ago(instant: Optional[datetime], now: datetime) -> str:
    if instant is None:
        return ""
    seconds = max(0.0, (now - as_utc(instant)).total_seconds())
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes}m ago"
    hours = int(seconds // 3600)
    if hours < 24:
        return f"{hours}h ago"
    return f"{int(seconds // 86400)}d ago"


def derive_view(raw: Donation, now: datetime, applicant_count: int = 0) -> DonationView:
    """Build the derived view of one stored donation. Pure and idempotent."""
    original = max(0, raw.original_quantity or 0)
    remaining = original if raw.remaining_quantity is None else raw.remaining_quantity
    remaining = min(max(0, remaining), original)

    status = derive_status(raw.status, remaining, original)
    if status == DonationStatus.FULLY_BOOKED.value:
        remaining = 0

    return DonationView(
        id=raw.id,
        donor_id=raw.donor_id,
        donor_name=raw.donor_name or "",
        food_item=raw.food_item,
        location=raw.location or "",
        description=raw.description or "",
        contact_info=raw.contact_info or "",
        original_quantity=original,
        remaining_quantity=remaining,
        status=status,
        expiration_date=as_utc(raw.expiration_date),
        is_urgent=is_urgent(raw.expiration_date, now),
        is_claimable=status
        in (DonationStatus.AVAILABLE.value, DonationStatus.PARTIALLY_CLAIMED.value),
        created_at=as_utc(raw.created_at),
        posted_ago=time_ago(raw.created_at, now),
        applicant_count=applicant_count,
        version=raw.version,
    )


def is_well_formed(raw: Donation) -> bool:
    return bool(raw.food_item)


def _sort_key(view: DonationView):
    created = view.created_at or EPOCH
    return (not view.is_urgent, -created.timestamp())


def build_listing(
    raws: Iterable[Donation],
    now: datetime,
    applicant_counts: Optional[Mapping[int, int]] = None,
) -> List[DonationView]:
    """Urgent donations first, newest first within each group.

    Records without a food item are skipped and logged.
    """
    applicant_counts = applicant_counts or {}
    views = []
    for raw in raws:
        if not is_well_formed(raw):
            issue = DataIntegrityWarning(raw.id, "food_item")
            logger.warning("Skipping malformed record: %s", issue, extra={"issue": issue})
            continue
        views.append(derive_view(raw, now, applicant_counts.get(raw.id, 0)))
    views.sort(key=_sort_key)
    return views


def filter_listing(
    views: Iterable[DonationView],
    search: Optional[str] = None,
    status: str = "available",
) -> List[DonationView]:
    filtered = list(views)

    if search:
        term = search.lower()
        filtered = [
            v
            for v in filtered
            if term in v.food_item.lower()
            or term in v.description.lower()
            or term in v.location.lower()
        ]

    if status == "available":
        filtered = [v for v in filtered if v.is_claimable]
    elif status != "all":
        filtered = [v for v in filtered if v.status == status]

    return filtered


def total_servings(raws: Iterable[Donation]) -> int:
    """Sum of original quantities over well-formed donations."""
    return sum(max(0, raw.original_quantity or 0) for raw in raws if is_well_formed(raw))


def pool_stats(views: Iterable[DonationView]) -> PoolStats:
    views = list(views)
    donors = {v.donor_id for v in views if v.donor_name and not v.donor_id.startswith("guest_")}
    return PoolStats(
        donation_count=len(views),
        total_servings=sum(v.original_quantity for v in views),
        total_applications=sum(v.applicant_count for v in views),
        registered_donors=len(donors),
    )
