"""Pytest configuration and fixtures."""
import os

# Keep the app's module-level engine off Postgres during tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401
from clock import FixedClock, get_clock
from db import get_session
from main import app
from models import Donation, Household, HouseholdMember

NOW = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """A file-backed database, for tests that use several threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'foodshare.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def make_donation(session, clock):
    def _make(**fields):
        values = {
            "donor_id": "donor-1",
            "donor_name": "Dana",
            "food_item": "Vegetable soup",
            "location": "Community hall",
            "contact_info": "555-0100",
            "original_quantity": 10,
            "created_at": clock.now(),
        }
        values.update(fields)
        donation = Donation(**values)
        session.add(donation)
        session.commit()
        session.refresh(donation)
        return donation

    return _make


@pytest.fixture
def make_household(session):
    def _make(registrant_id="resident-1", member_count=3, name=None, members=()):
        household = Household(
            household_name=name or f"{registrant_id} household",
            member_count=member_count,
            registrant_id=registrant_id,
        )
        session.add(household)
        session.commit()
        session.refresh(household)
        for member_id, can_apply in members:
            session.add(
                HouseholdMember(household_id=household.id, member_id=member_id, can_apply=can_apply)
            )
        session.commit()
        return household

    return _make


@pytest.fixture
def client(engine, clock):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Switch the test client to another caller identity."""

    def _login(user_id, name=None):
        response = client.post("/session", json={"user_id": user_id, "display_name": name})
        assert response.status_code == 200
        return response.json()

    return _login
