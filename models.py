from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DonationStatus(str, Enum):
    AVAILABLE = "available"
    PARTIALLY_CLAIMED = "partially_claimed"
    FULLY_BOOKED = "fully_booked"
    COMPLETED = "completed"


class ApplicationStatus(str, Enum):
    APPROVED = "approved"
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class Donation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    donor_id: str = Field(index=True)
    donor_name: str = ""

    # Nullable so legacy rows without a food item can be read and skipped.
    food_item: Optional[str] = None
    location: str = ""
    description: str = ""
    contact_info: str = ""

    original_quantity: int = 0
    remaining_quantity: Optional[int] = None
    status: str = DonationStatus.AVAILABLE.value

    expiration_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: Optional[datetime] = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    last_updated: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    # Bumped on every claim; writers compare-and-swap on it.
    version: int = 1


class DonationApplicant(SQLModel, table=True):
    """One entry of a donation's append-only applicant trail."""

    id: Optional[int] = Field(default=None, primary_key=True)
    donation_id: int = Field(foreign_key="donation.id", index=True)

    applicant_id: str
    applicant_name: str = ""
    household_id: int = Field(foreign_key="household.id")
    household_name: str = ""
    household_size: int
    quantity: int
    applied_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    status: str = ApplicationStatus.APPROVED.value


class Household(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    household_name: str
    member_count: int = 1
    registrant_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class HouseholdMember(SQLModel, table=True):
    """An identity authorized to apply on behalf of a household."""

    id: Optional[int] = Field(default=None, primary_key=True)
    household_id: int = Field(foreign_key="household.id", index=True)
    member_id: str = Field(index=True)
    can_apply: bool = True


class Application(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    donation_id: int = Field(foreign_key="donation.id", index=True)
    household_id: int = Field(foreign_key="household.id", index=True)
    applicant_id: str

    quantity: int
    application_date: date = Field(index=True)
    status: str = ApplicationStatus.APPROVED.value
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    # Snapshot of the household at the time of the claim
    household_size: int
    is_large_household: bool = False
    max_percentage: int = 30

    # What to pick up, where, and whom to contact, as posted when claimed
    applicant_name: str = ""
    household_name: str = ""
    donation_title: str = ""
    donor_id: str = ""
    donor_contact: str = ""
    pickup_location: str = ""


class FoodRequest(SQLModel, table=True):
    __tablename__ = "food_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: str
    requester_name: str = "Anonymous"
    is_guest: bool = False

    food_item: str
    quantity: str
    description: str = ""
    urgency: str = "normal"  # normal | urgent
    location: str = ""
    contact_info: str

    status: str = "open"
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
