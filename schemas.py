from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from policy import HouseholdClass


class DonationCreate(BaseModel):
    food_item: str = Field(min_length=1)
    quantity: int = Field(ge=0)
    location: str
    description: str = ""
    contact_info: str
    donor_name: str = ""
    expiration_date: Optional[datetime] = None


class DonationView(BaseModel):
    """A donation with every derived field recomputed from base quantities."""

    model_config = ConfigDict(frozen=True)

    id: int
    donor_id: str
    donor_name: str
    food_item: str
    location: str
    description: str
    contact_info: str
    original_quantity: int
    remaining_quantity: int
    status: str
    expiration_date: Optional[datetime]
    is_urgent: bool
    is_claimable: bool
    created_at: Optional[datetime]
    posted_ago: str
    applicant_count: int = 0
    version: int = 1


class PoolStats(BaseModel):
    donation_count: int
    total_servings: int
    total_applications: int
    registered_donors: int


class ClaimAllowance(BaseModel):
    donation_id: int
    household_class: HouseholdClass
    percentage: int
    max_claimable: int
    daily_cap: int
    consumed_today: int
    daily_remaining: int
    already_applied: bool
    # Bounds for a quantity stepper; max_quantity < min_quantity means nothing can be claimed.
    min_quantity: int = 1
    max_quantity: int


class ClaimCreate(BaseModel):
    quantity: int = Field(gt=0)


class HouseholdCreate(BaseModel):
    household_name: str = Field(min_length=1)
    member_count: int = Field(ge=1)


class HouseholdRead(BaseModel):
    id: int
    household_name: str
    member_count: int
    registrant_id: str
    members: List[str] = []
    authorized_members: List[str] = []
    household_class: HouseholdClass
    percentage: int

    model_config = ConfigDict(from_attributes=True)


class MemberAdd(BaseModel):
    member_id: str = Field(min_length=1)
    can_apply: bool = True


class ApplicationRead(BaseModel):
    id: int
    donation_id: int
    household_id: int
    applicant_id: str
    quantity: int
    application_date: date
    status: str
    created_at: datetime
    applicant_name: str = ""
    household_name: str = ""
    donation_title: str = ""
    donor_id: str = ""
    donor_contact: str = ""
    pickup_location: str = ""

    model_config = ConfigDict(from_attributes=True)


class HouseholdApplications(BaseModel):
    application_date: date
    consumed_today: int
    applications: List[ApplicationRead]


class FoodRequestCreate(BaseModel):
    # Left optional so missing fields surface as a business-rule rejection.
    food_item: Optional[str] = None
    quantity: Optional[str] = None
    description: str = ""
    urgency: Literal["normal", "urgent"] = "normal"
    location: str = ""
    contact_info: Optional[str] = None


class SessionCreate(BaseModel):
    user_id: str = Field(min_length=1)
    display_name: Optional[str] = None
