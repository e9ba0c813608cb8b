"""Atomic claim commits against a donation.

A commit holds two in-process locks (household first, then donation) and
writes the donation with a compare-and-swap on its ``version`` column, so
writers in other processes are caught too. A lost CAS is retried once from a
fresh read; anything else from storage surfaces as an InfrastructureFailure.
"""

import logging
import threading
from collections.abc import Callable, Hashable
from contextlib import contextmanager
from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

import allocation
import policy
import pool
from clock import Clock, get_clock
from errors import (
    ConcurrentWriteConflict,
    DonationNotFound,
    HouseholdNotFound,
    InfrastructureFailure,
    PermissionDenied,
    RejectionReason,
    StorageUnavailable,
    ValidationRejection,
)
from ledger import ApplicationLedger
from models import (
    Application,
    ApplicationStatus,
    Donation,
    DonationApplicant,
    DonationStatus,
    Household,
)
from schemas import DonationView

logger = logging.getLogger(__name__)

# Decides the status of a new application: (donation, household, quantity) -> status
ApprovalPolicy = Callable[[DonationView, Household, int], str]

INSUFFICIENT_PRIVILEGE = "42501"


def auto_approve(donation: DonationView, household: Household, quantity: int) -> str:
    return ApplicationStatus.APPROVED.value


class KeyedLocks:
    """One mutex per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


def load_pool(session: Session) -> List[Donation]:
    return list(session.exec(select(Donation)).all())


def applicant_count(session: Session, donation_id: int) -> int:
    stmt = select(func.count(DonationApplicant.id)).where(
        DonationApplicant.donation_id == donation_id
    )
    return int(session.exec(stmt).one())


def as_infrastructure_failure(exc: SQLAlchemyError) -> InfrastructureFailure:
    sqlstate = getattr(getattr(exc, "orig", None), "sqlstate", None)
    if sqlstate == INSUFFICIENT_PRIVILEGE:
        return PermissionDenied(str(exc))
    return StorageUnavailable(str(exc))


class ClaimTransaction:
    def __init__(
        self,
        clock: Optional[Clock] = None,
        approval_policy: ApprovalPolicy = auto_approve,
        locks: Optional[KeyedLocks] = None,
    ):
        self.clock = clock or get_clock()
        self.approval_policy = approval_policy
        self.locks = locks or KeyedLocks()

    def commit(
        self,
        session: Session,
        donation_id: int,
        household_id: int,
        applicant_id: str,
        quantity: int,
        applicant_name: str = "Anonymous",
    ) -> DonationView:
        """Claim ``quantity`` servings of a donation for a household.

        Returns the updated donation view. Raises ValidationRejection when a
        business rule fails and InfrastructureFailure when storage does.
        """
        with self.locks.hold(("household", household_id)), self.locks.hold(("donation", donation_id)):
            for attempt in (1, 2):
                try:
                    view = self._attempt(
                        session, donation_id, household_id, applicant_id, applicant_name, quantity
                    )
                except ConcurrentWriteConflict as exc:
                    session.rollback()
                    if attempt == 2:
                        logger.warning("Giving up on claim after second conflict: %s", exc)
                        raise
                    logger.warning("Claim conflicted, re-reading and retrying: %s", exc)
                    continue
                except (ValidationRejection, LookupError) as exc:
                    session.rollback()
                    logger.warning(
                        "Claim rejected: donation=%s household=%s quantity=%s: %s",
                        donation_id,
                        household_id,
                        quantity,
                        exc,
                    )
                    raise
                except SQLAlchemyError as exc:
                    session.rollback()
                    logger.exception(
                        "Storage failure while claiming donation=%s household=%s",
                        donation_id,
                        household_id,
                    )
                    raise as_infrastructure_failure(exc) from exc

                logger.info(
                    "Claimed %s serving(s) of donation %s for household %s; %s left",
                    quantity,
                    donation_id,
                    household_id,
                    view.remaining_quantity,
                )
                return view

    def _load_donation(self, session: Session, donation_id: int) -> Donation:
        raw = session.get(Donation, donation_id)
        if raw is None or not pool.is_well_formed(raw):
            raise DonationNotFound(donation_id)
        return raw

    def _attempt(
        self,
        session: Session,
        donation_id: int,
        household_id: int,
        applicant_id: str,
        applicant_name: str,
        quantity: int,
    ) -> DonationView:
        # Never decide on cached state.
        session.expire_all()

        raw = self._load_donation(session, donation_id)
        household = session.get(Household, household_id)
        if household is None:
            raise HouseholdNotFound(household_id)

        now = self.clock.now()
        today = self.clock.today()
        view = pool.derive_view(raw, now)
        expected_version = view.version

        allocation.check_requester(view, applicant_id, quantity)

        ledger = ApplicationLedger(session)
        allocation.validate_claim(
            view,
            household.member_count,
            quantity,
            consumed_today=ledger.consumed_today(household.id, today),
            has_existing_application=ledger.has_applied(household.id, donation_id),
            cap_per_day=allocation.daily_cap(pool.total_servings(load_pool(session))),
        )

        new_remaining = max(0, view.remaining_quantity - quantity)
        new_status = pool.derive_status(view.status, new_remaining, view.original_quantity)

        result = session.exec(
            update(Donation)
            .where(Donation.id == donation_id, Donation.version == expected_version)
            .values(
                remaining_quantity=new_remaining,
                status=new_status,
                version=expected_version + 1,
                last_updated=now,
            )
        )
        if result.rowcount != 1:
            raise ConcurrentWriteConflict(donation_id, expected_version)

        status = self.approval_policy(view, household, quantity)
        session.add(
            DonationApplicant(
                donation_id=donation_id,
                applicant_id=applicant_id,
                applicant_name=applicant_name,
                household_id=household.id,
                household_name=household.household_name,
                household_size=household.member_count,
                quantity=quantity,
                applied_at=now,
                status=status,
            )
        )
        ledger.record(
            Application(
                donation_id=donation_id,
                household_id=household.id,
                applicant_id=applicant_id,
                quantity=quantity,
                application_date=today,
                status=status,
                created_at=now,
                household_size=household.member_count,
                is_large_household=policy.is_large(household.member_count),
                max_percentage=policy.percentage_label(household.member_count),
                applicant_name=applicant_name,
                household_name=household.household_name,
                donation_title=view.food_item,
                donor_id=view.donor_id,
                donor_contact=view.contact_info,
                pickup_location=view.location,
            )
        )
        session.commit()

        refreshed = self._load_donation(session, donation_id)
        return pool.derive_view(refreshed, now, applicant_count(session, donation_id))

    def complete(self, session: Session, donation_id: int, donor_id: str) -> DonationView:
        """Mark a donation completed. Only its donor may do this."""
        with self.locks.hold(("donation", donation_id)):
            try:
                session.expire_all()
                raw = self._load_donation(session, donation_id)
                if raw.donor_id != donor_id:
                    raise ValidationRejection(
                        RejectionReason.NOT_AUTHORIZED,
                        "You can only complete donations you posted.",
                    )
                now = self.clock.now()
                result = session.exec(
                    update(Donation)
                    .where(Donation.id == donation_id, Donation.version == raw.version)
                    .values(
                        status=DonationStatus.COMPLETED.value,
                        version=raw.version + 1,
                        last_updated=now,
                    )
                )
                if result.rowcount != 1:
                    raise ConcurrentWriteConflict(donation_id, raw.version)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Storage failure while completing donation=%s", donation_id)
                raise as_infrastructure_failure(exc) from exc
            except (ValidationRejection, InfrastructureFailure, LookupError):
                session.rollback()
                raise

            logger.info("Donation %s marked completed by donor %s", donation_id, donor_id)
            refreshed = self._load_donation(session, donation_id)
            return pool.derive_view(refreshed, now, applicant_count(session, donation_id))


# Shared by every request so commits in this process serialize per key.
_locks = KeyedLocks()


def get_claims(clock: Clock = Depends(get_clock)) -> ClaimTransaction:
    return ClaimTransaction(clock=clock, locks=_locks)
