from datetime import date
from typing import List

from sqlalchemy import func
from sqlmodel import Session, select

from models import Application, ApplicationStatus

COUNTED_STATUSES = (ApplicationStatus.APPROVED.value, ApplicationStatus.COMPLETED.value)


class ApplicationLedger:
    """Append-only record of household applications.

    ``record`` only stages the row on the session; the claim transaction owns
    the commit so the ledger entry and the donation update land together.
    Entries are never updated or deleted.
    """

    def __init__(self, session: Session):
        self.session = session

    def consumed_today(self, household_id: int, day: date) -> int:
        stmt = select(func.coalesce(func.sum(Application.quantity), 0)).where(
            Application.household_id == household_id,
            Application.application_date == day,
            Application.status.in_(COUNTED_STATUSES),
        )
        return int(self.session.exec(stmt).one())

    def has_applied(self, household_id: int, donation_id: int) -> bool:
        stmt = select(Application.id).where(
            Application.household_id == household_id,
            Application.donation_id == donation_id,
            Application.status != ApplicationStatus.REJECTED.value,
        )
        return self.session.exec(stmt).first() is not None

    def record(self, application: Application) -> Application:
        self.session.add(application)
        return application

    def for_household(self, household_id: int) -> List[Application]:
        stmt = (
            select(Application)
            .where(Application.household_id == household_id)
            .order_by(Application.id.desc())
        )
        return list(self.session.exec(stmt).all())
