"""Per-donation and per-day claim limits.

Everything here is a pure function of its arguments. Storage lookups (how
much a household has consumed today, whether it has already applied) are
done by the caller and passed in, so the same checks run for the advisory
"how much can I take?" view and again inside the claim transaction.
"""

import math
from decimal import Decimal
from typing import Optional

import policy
from errors import RejectionReason, ValidationRejection
from models import DonationStatus
from schemas import ClaimAllowance, DonationView

SMALL_AMOUNT_THRESHOLD = 3
DAILY_SHARE = Decimal("0.30")
DAILY_MINIMUM = 5

CLAIMABLE_STATUSES = frozenset(
    {DonationStatus.AVAILABLE.value, DonationStatus.PARTIALLY_CLAIMED.value}
)


def max_claimable(donation: DonationView, member_count: int) -> int:
    """Largest quantity one household may take from this donation.

    The share is taken from the original quantity so a household's
    entitlement does not shrink as others claim. Leftovers of three or fewer
    servings may be taken whole.
    """
    remaining = donation.remaining_quantity
    if remaining <= SMALL_AMOUNT_THRESHOLD:
        return remaining
    share = Decimal(donation.original_quantity) * policy.allocation_percentage(member_count)
    return max(1, math.ceil(share))


def daily_cap(total_original_quantity: int) -> int:
    """Servings one household may claim per calendar day across all donations."""
    return max(DAILY_MINIMUM, math.floor(Decimal(total_original_quantity) * DAILY_SHARE))


def check_requester(donation: DonationView, requester_id: Optional[str], requested: int) -> None:
    """Guards that hold regardless of quantity rules."""
    if requester_id is not None and requester_id == donation.donor_id:
        raise ValidationRejection(RejectionReason.SELF_CLAIM)
    if donation.status not in CLAIMABLE_STATUSES:
        raise ValidationRejection(RejectionReason.NOT_AVAILABLE)
    if requested < 1:
        raise ValidationRejection(RejectionReason.INVALID_QUANTITY)


def validate_claim(
    donation: DonationView,
    member_count: int,
    requested: int,
    consumed_today: int,
    has_existing_application: bool,
    cap_per_day: int,
) -> None:
    """Raise ValidationRejection for the first rule the request breaks."""
    if has_existing_application:
        raise ValidationRejection(RejectionReason.DUPLICATE_APPLICATION)

    if requested > donation.remaining_quantity:
        raise ValidationRejection(RejectionReason.INSUFFICIENT_QUANTITY)

    limit = max_claimable(donation, member_count)
    if requested > limit:
        note = ""
        if donation.remaining_quantity > SMALL_AMOUNT_THRESHOLD:
            note = (
                f" ({policy.percentage_label(member_count)}% of original "
                f"{donation.original_quantity} for "
                f"{policy.classify(member_count).value} household)"
            )
        raise ValidationRejection(
            RejectionReason.DONATION_CAP_EXCEEDED,
            f"Maximum {limit} serving(s) allowed per household for this donation{note}.",
        )

    if consumed_today + requested > cap_per_day:
        left = max(0, cap_per_day - consumed_today)
        raise ValidationRejection(
            RejectionReason.DAILY_CAP_EXCEEDED,
            f"Daily pickup limit would be exceeded. You can pick up {left} more servings today.",
        )


def claim_allowance(
    donation: DonationView,
    member_count: int,
    consumed_today: int,
    has_existing_application: bool,
    cap_per_day: int,
) -> ClaimAllowance:
    limit = max_claimable(donation, member_count)
    daily_remaining = max(0, cap_per_day - consumed_today)
    upper = min(limit, daily_remaining, donation.remaining_quantity)
    if has_existing_application or donation.status not in CLAIMABLE_STATUSES:
        upper = 0
    return ClaimAllowance(
        donation_id=donation.id,
        household_class=policy.classify(member_count),
        percentage=policy.percentage_label(member_count),
        max_claimable=limit,
        daily_cap=cap_per_day,
        consumed_today=consumed_today,
        daily_remaining=daily_remaining,
        already_applied=has_existing_application,
        max_quantity=upper,
    )
