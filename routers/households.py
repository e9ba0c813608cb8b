from typing import Optional, Tuple

from fastapi import APIRouter, HTTPException
from sqlmodel import Session, select

import policy
from db import SessionDep
from errors import RejectionReason, ValidationRejection
from models import Household, HouseholdMember
from schemas import HouseholdCreate, HouseholdRead, MemberAdd
from .auth import CurrentIdentityDep

router = APIRouter(tags=["households"])


def find_household_for(session: Session, user_id: str) -> Tuple[Optional[Household], bool]:
    """
    Look up the household a user belongs to.
    Returns (household, can_apply); registrants can always apply.
    """
    household = session.exec(
        select(Household).where(Household.registrant_id == user_id)
    ).first()
    if household is not None:
        return household, True

    link = session.exec(
        select(HouseholdMember).where(HouseholdMember.member_id == user_id)
    ).first()
    if link is None:
        return None, False
    return session.get(Household, link.household_id), link.can_apply


def require_household(session: Session, user_id: str) -> Household:
    household, can_apply = find_household_for(session, user_id)
    if household is None:
        raise ValidationRejection(RejectionReason.HOUSEHOLD_REQUIRED)
    if not can_apply:
        raise ValidationRejection(RejectionReason.NOT_AUTHORIZED)
    return household


def _to_read(session: Session, household: Household) -> HouseholdRead:
    links = session.exec(
        select(HouseholdMember).where(HouseholdMember.household_id == household.id)
    ).all()
    return HouseholdRead(
        id=household.id,
        household_name=household.household_name,
        member_count=household.member_count,
        registrant_id=household.registrant_id,
        members=[link.member_id for link in links],
        authorized_members=[link.member_id for link in links if link.can_apply],
        household_class=policy.classify(household.member_count),
        percentage=policy.percentage_label(household.member_count),
    )


@router.post("/", response_model=HouseholdRead)
def register_household(data: HouseholdCreate, session: SessionDep, current: CurrentIdentityDep):
    """
    Register a household with the caller as registrant.
    """
    existing, _ = find_household_for(session, current["user_id"])
    if existing is not None:
        raise HTTPException(status_code=400, detail="You already belong to a household")

    household = Household(
        household_name=data.household_name,
        member_count=data.member_count,
        registrant_id=current["user_id"],
    )
    session.add(household)
    session.commit()
    session.refresh(household)
    return _to_read(session, household)


@router.get("/me", response_model=HouseholdRead)
def read_my_household(session: SessionDep, current: CurrentIdentityDep):
    household, _ = find_household_for(session, current["user_id"])
    if household is None:
        raise HTTPException(status_code=404, detail="No household registered")
    return _to_read(session, household)


@router.post("/{household_id}/members", response_model=HouseholdRead)
def add_member(
    household_id: int,
    data: MemberAdd,
    session: SessionDep,
    current: CurrentIdentityDep,
):
    household = session.get(Household, household_id)
    if household is None:
        raise HTTPException(status_code=404, detail="Household not found")

    # Only the registrant manages membership
    if household.registrant_id != current["user_id"]:
        raise HTTPException(
            status_code=403,
            detail="Only the registrant can manage household members.",
        )

    other, _ = find_household_for(session, data.member_id)
    if other is not None and other.id != household.id:
        raise HTTPException(status_code=400, detail="User already belongs to another household")

    link = session.exec(
        select(HouseholdMember).where(
            HouseholdMember.household_id == household.id,
            HouseholdMember.member_id == data.member_id,
        )
    ).first()
    if link is None:
        link = HouseholdMember(household_id=household.id, member_id=data.member_id)
    link.can_apply = data.can_apply

    session.add(link)
    session.commit()
    return _to_read(session, household)
