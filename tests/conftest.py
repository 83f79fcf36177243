"""Pytest fixtures for testing"""

import asyncio
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator, List, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from rental_engine.api.dependencies import get_payment_service, get_rental_service
from rental_engine.api.main import create_app
from rental_engine.domain.clock import FixedClock
from rental_engine.domain.exceptions import ProviderError, ProviderRejectedError
from rental_engine.domain.models import PaymentMethod, Principal, RentalRequest, Role, User, Vehicle
from rental_engine.infrastructure.clients.directory import InMemoryDirectory
from rental_engine.infrastructure.database.locks import KeyedLocks
from rental_engine.infrastructure.database.models import Base
from rental_engine.services.payments import PaymentService
from rental_engine.services.rentals import RentalService


VEHICLE_ID = "veh_swift"
STORE_ID = "store_mg_road"
OWNER_ID = "owner_ravi"
CUSTOMER_ID = "cust_anita"
OTHER_CUSTOMER_ID = "cust_john"


class FakeSettlement:
    """Settlement provider double: approves, declines, errors or stalls"""

    def __init__(self, outcome: str = "approved", delay: float = 0.0):
        self.outcome = outcome
        self.delay = delay
        self.calls: List[Tuple[str, PaymentMethod, Decimal]] = []

    async def settle(self, payment_id: str, method: PaymentMethod, amount: Decimal) -> str:
        self.calls.append((payment_id, method, amount))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcome == "declined":
            raise ProviderRejectedError("Settlement declined: insufficient funds")
        if self.outcome == "error":
            raise ProviderError("Settlement API error: 502")
        return f"{method.value}-REF-{payment_id[:8]}"


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """File-backed SQLite database, shared by all threads of a test"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rentals.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Vehicle priced {day: 50, month: 1200} in a store owned by owner_ravi"""
    directory = InMemoryDirectory()
    directory.add_vehicle(
        Vehicle(
            vehicle_id=VEHICLE_ID,
            store_id=STORE_ID,
            owner_id=OWNER_ID,
            name="Maruti Swift",
            rent_per_day=Decimal("50.00"),
            rent_per_month=Decimal("1200.00"),
        )
    )
    directory.add_vehicle(
        Vehicle(
            vehicle_id="veh_retired",
            store_id=STORE_ID,
            owner_id=OWNER_ID,
            name="Hyundai i10",
            rent_per_day=Decimal("40.00"),
            rent_per_month=Decimal("900.00"),
            is_available=False,
        )
    )
    directory.add_user(User(user_id=OWNER_ID, name="Ravi Kumar", email="ravi@example.com"))
    directory.add_user(User(user_id=CUSTOMER_ID, name="Anita Rao", email="anita@example.com"))
    directory.add_user(User(user_id=OTHER_CUSTOMER_ID, name="John Mathew"))
    return directory


@pytest.fixture
def settlement() -> FakeSettlement:
    return FakeSettlement()


@pytest.fixture
def locks() -> KeyedLocks:
    return KeyedLocks()


@pytest.fixture
def rental_service(session_factory, directory, clock, locks) -> RentalService:
    return RentalService(session_factory=session_factory, directory=directory, clock=clock, locks=locks)


@pytest.fixture
def payment_service(session_factory, directory, settlement, clock, locks) -> PaymentService:
    return PaymentService(
        session_factory=session_factory,
        directory=directory,
        settlement=settlement,
        clock=clock,
        locks=locks,
        settlement_timeout=0.2,
    )


@pytest.fixture
def customer() -> Principal:
    return Principal(user_id=CUSTOMER_ID, role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Principal:
    return Principal(user_id=OTHER_CUSTOMER_ID, role=Role.CUSTOMER)


@pytest.fixture
def owner() -> Principal:
    return Principal(user_id=OWNER_ID, role=Role.OWNER, store_ids=frozenset({STORE_ID}))


@pytest.fixture
def approved_rental(rental_service, customer, owner):
    """Factory: book [start, end) as the customer and approve it as the owner"""

    async def make(start: date = date(2024, 2, 1), end: date = date(2024, 2, 5)) -> RentalRequest:
        rental = await rental_service.create(customer, VEHICLE_ID, start, end)
        return rental_service.approve(owner, rental.id)

    return make


@pytest.fixture
def client(rental_service, payment_service) -> TestClient:
    """Create FastAPI test client wired to the test database and doubles"""
    app = create_app()
    app.dependency_overrides[get_rental_service] = lambda: rental_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    return TestClient(app)


@pytest.fixture
def customer_headers() -> dict:
    return {"X-User-Id": CUSTOMER_ID, "X-User-Role": "CUSTOMER"}


@pytest.fixture
def owner_headers() -> dict:
    return {"X-User-Id": OWNER_ID, "X-User-Role": "OWNER", "X-Store-Ids": STORE_ID}
