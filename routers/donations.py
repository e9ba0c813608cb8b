from typing import Annotated, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

import allocation
import pool
from claims import ClaimTransaction, applicant_count, get_claims, load_pool
from clock import Clock, get_clock
from db import SessionDep
from errors import DonationNotFound, RejectionReason, ValidationRejection
from ledger import ApplicationLedger
from models import Donation, DonationApplicant, DonationStatus
from schemas import ClaimAllowance, ClaimCreate, DonationCreate, DonationView, PoolStats
from .auth import CurrentIdentityDep
from .households import require_household

router = APIRouter(tags=["donations"])

ClockDep = Annotated[Clock, Depends(get_clock)]
ClaimsDep = Annotated[ClaimTransaction, Depends(get_claims)]

STATUS_FILTERS = {"all", *(s.value for s in DonationStatus)}


def _applicant_counts(session: Session) -> Dict[int, int]:
    rows = session.exec(
        select(DonationApplicant.donation_id, func.count(DonationApplicant.id)).group_by(
            DonationApplicant.donation_id
        )
    ).all()
    return {donation_id: count for donation_id, count in rows}


def _listing(session: Session, clock: Clock) -> List[DonationView]:
    return pool.build_listing(load_pool(session), clock.now(), _applicant_counts(session))


def _get_view(session: Session, donation_id: int, clock: Clock) -> DonationView:
    raw = session.get(Donation, donation_id)
    if raw is None or not pool.is_well_formed(raw):
        raise DonationNotFound(donation_id)
    return pool.derive_view(raw, clock.now(), applicant_count(session, donation_id))


@router.post("/", response_model=DonationView)
def create_donation(
    donation_in: DonationCreate,
    session: SessionDep,
    current: CurrentIdentityDep,
    clock: ClockDep,
):
    """
    Post a new donation batch for the caller.
    """
    donation = Donation(
        donor_id=current["user_id"],
        donor_name=donation_in.donor_name or current.get("name", ""),
        food_item=donation_in.food_item,
        location=donation_in.location,
        description=donation_in.description,
        contact_info=donation_in.contact_info,
        original_quantity=donation_in.quantity,
        remaining_quantity=donation_in.quantity,
        status=DonationStatus.AVAILABLE.value,
        expiration_date=donation_in.expiration_date,
        created_at=clock.now(),
    )
    session.add(donation)
    session.commit()
    session.refresh(donation)
    return pool.derive_view(donation, clock.now())


@router.get("/", response_model=List[DonationView])
def list_donations(
    session: SessionDep,
    clock: ClockDep,
    search: Optional[str] = None,
    status: str = "available",
):
    """
    List donations, urgent first, optionally filtered by search text and status.
    status=available also includes partially claimed donations; status=all disables the filter.
    """
    if status not in STATUS_FILTERS:
        raise HTTPException(status_code=400, detail=f"Unknown status filter: {status}")
    return pool.filter_listing(_listing(session, clock), search=search, status=status)


@router.get("/stats", response_model=PoolStats)
def donation_stats(session: SessionDep, clock: ClockDep):
    return pool.pool_stats(_listing(session, clock))


@router.get("/{donation_id}", response_model=DonationView)
def get_donation(donation_id: int, session: SessionDep, clock: ClockDep):
    return _get_view(session, donation_id, clock)


@router.get("/{donation_id}/allowance", response_model=ClaimAllowance)
def get_allowance(
    donation_id: int,
    session: SessionDep,
    current: CurrentIdentityDep,
    clock: ClockDep,
):
    """
    How many servings the caller's household may still take from this donation.
    """
    view = _get_view(session, donation_id, clock)
    household = require_household(session, current["user_id"])
    ledger = ApplicationLedger(session)
    return allocation.claim_allowance(
        view,
        household.member_count,
        consumed_today=ledger.consumed_today(household.id, clock.today()),
        has_existing_application=ledger.has_applied(household.id, donation_id),
        cap_per_day=allocation.daily_cap(pool.total_servings(load_pool(session))),
    )


@router.post("/{donation_id}/applications", response_model=DonationView)
def apply_for_donation(
    donation_id: int,
    claim: ClaimCreate,
    session: SessionDep,
    current: CurrentIdentityDep,
    clock: ClockDep,
    claims: ClaimsDep,
):
    view = _get_view(session, donation_id, clock)

    # SECURITY: donors can never claim their own donations
    if view.donor_id == current["user_id"]:
        raise ValidationRejection(RejectionReason.SELF_CLAIM)

    household = require_household(session, current["user_id"])

    return claims.commit(
        session,
        donation_id=donation_id,
        household_id=household.id,
        applicant_id=current["user_id"],
        quantity=claim.quantity,
        applicant_name=current.get("name") or "Anonymous",
    )


@router.post("/{donation_id}/complete", response_model=DonationView)
def complete_donation(
    donation_id: int,
    session: SessionDep,
    current: CurrentIdentityDep,
    claims: ClaimsDep,
):
    return claims.complete(session, donation_id, donor_id=current["user_id"])
