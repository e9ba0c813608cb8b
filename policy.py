"""Household size -> allocation share."""

from decimal import Decimal
from enum import Enum

LARGE_HOUSEHOLD_MIN_MEMBERS = 7

# Exact decimals: 10 * 0.30 must be 3, not 3.0000000000000004.
REGULAR_PERCENTAGE = Decimal("0.30")
LARGE_PERCENTAGE = Decimal("0.35")


class HouseholdClass(str, Enum):
    REGULAR = "regular"
    LARGE = "large"


def is_large(member_count: int) -> bool:
    return member_count >= LARGE_HOUSEHOLD_MIN_MEMBERS


def allocation_percentage(member_count: int) -> Decimal:
    if is_large(member_count):
        return LARGE_PERCENTAGE
    return REGULAR_PERCENTAGE


def classify(member_count: int) -> HouseholdClass:
    """Label used only in explanation text, never for decisions."""
    return HouseholdClass.LARGE if is_large(member_count) else HouseholdClass.REGULAR


def percentage_label(member_count: int) -> int:
    """Whole-number percent, e.g. 30 or 35."""
    return int(allocation_percentage(member_count) * 100)
