"""Error taxonomy for the allocation engine.

Three families are kept apart so callers can react differently:

* ``ValidationRejection`` - a business rule failed. The caller can fix the
  input; it is never retried automatically.
* ``InfrastructureFailure`` - storage trouble. Retryable; the user only sees
  a generic "try again" message while the details go to the log.
* ``DataIntegrityWarning`` - a malformed stored record. Logged and skipped,
  never fatal to a listing.
"""

from enum import Enum
from typing import Optional


class RejectionReason(str, Enum):
    DUPLICATE_APPLICATION = "duplicate_application"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    DONATION_CAP_EXCEEDED = "donation_cap_exceeded"
    DAILY_CAP_EXCEEDED = "daily_cap_exceeded"
    SELF_CLAIM = "self_claim"
    NOT_AVAILABLE = "not_available"
    INVALID_QUANTITY = "invalid_quantity"
    HOUSEHOLD_REQUIRED = "household_required"
    NOT_AUTHORIZED = "not_authorized"
    MISSING_REQUIRED_FIELDS = "missing_required_fields"


DEFAULT_MESSAGES = {
    RejectionReason.DUPLICATE_APPLICATION: "Your household has already applied for this donation.",
    RejectionReason.INSUFFICIENT_QUANTITY: "Not enough quantity available.",
    RejectionReason.DONATION_CAP_EXCEEDED: "Requested servings exceed your household's share of this donation.",
    RejectionReason.DAILY_CAP_EXCEEDED: "Daily pickup limit would be exceeded.",
    RejectionReason.SELF_CLAIM: "You cannot apply for your own donations. You are the donor of this item.",
    RejectionReason.NOT_AVAILABLE: "This donation is no longer available.",
    RejectionReason.INVALID_QUANTITY: "Please request at least one serving.",
    RejectionReason.HOUSEHOLD_REQUIRED: "Please register your household before applying for donations.",
    RejectionReason.NOT_AUTHORIZED: "You are not authorized to apply for donations on behalf of your household.",
    RejectionReason.MISSING_REQUIRED_FIELDS: "Please fill in all required fields.",
}


class ValidationRejection(Exception):
    """A claim or request broke a business rule."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or DEFAULT_MESSAGES[reason]
        super().__init__(self.message)


class InfrastructureFailure(Exception):
    """Storage could not complete the operation; safe to retry."""

    user_message = "Failed to submit application. Please try again."


class StorageUnavailable(InfrastructureFailure):
    user_message = "Service unavailable. Please try again later."


class PermissionDenied(InfrastructureFailure):
    pass


class ConcurrentWriteConflict(InfrastructureFailure):
    """Another writer changed the donation between our read and our write."""

    def __init__(self, donation_id: int, expected_version: int):
        self.donation_id = donation_id
        self.expected_version = expected_version
        super().__init__(
            f"donation {donation_id} changed concurrently (expected version {expected_version})"
        )


class DataIntegrityWarning(UserWarning):
    """A stored donation is missing a field every listing needs."""

    def __init__(self, donation_id: Optional[int], field: str):
        self.donation_id = donation_id
        self.field = field
        super().__init__(f"donation {donation_id} has no {field}")


class DonationNotFound(LookupError):
    pass


class HouseholdNotFound(LookupError):
    pass
