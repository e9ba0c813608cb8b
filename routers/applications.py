from typing import Annotated

from fastapi import APIRouter, Depends

from clock import Clock, get_clock
from db import SessionDep
from ledger import ApplicationLedger
from schemas import ApplicationRead, HouseholdApplications
from .auth import CurrentIdentityDep
from .households import find_household_for

router = APIRouter(tags=["applications"])


@router.get("/", response_model=HouseholdApplications)
def list_my_applications(
    session: SessionDep,
    current: CurrentIdentityDep,
    clock: Annotated[Clock, Depends(get_clock)],
):
    """
    Applications made by the caller's household, newest first,
    plus how many servings were already picked up today.
    """
    today = clock.today()
    household, _ = find_household_for(session, current["user_id"])

    # Without a household there is nothing to report
    if household is None:
        return HouseholdApplications(application_date=today, consumed_today=0, applications=[])

    ledger = ApplicationLedger(session)
    return HouseholdApplications(
        application_date=today,
        consumed_today=ledger.consumed_today(household.id, today),
        applications=[
            ApplicationRead.model_validate(app) for app in ledger.for_household(household.id)
        ],
    )
