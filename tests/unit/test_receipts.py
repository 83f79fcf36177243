"""Unit tests for receipt snapshots and PDF rendering"""

import uuid
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from rental_engine.domain.exceptions import InvalidStateError
from rental_engine.domain.models import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    RentalRequest,
    RentalStatus,
    User,
    Vehicle,
)
from rental_engine.domain.pricing import price_breakdown
from rental_engine.domain.receipts import Receipt, build_receipt, receipt_id_for
from rental_engine.infrastructure.documents.receipt_pdf import render_receipt_pdf

VEHICLE = Vehicle(
    vehicle_id="veh_swift",
    store_id="store_mg_road",
    owner_id="owner_ravi",
    name="Maruti Swift",
    rent_per_day=Decimal("50.00"),
    rent_per_month=Decimal("1200.00"),
)
OWNER = User(user_id="owner_ravi", name="Ravi Kumar", email="ravi@example.com")
CUSTOMER = User(user_id="cust_anita", name="Anita <Rao> & Co")


@pytest.fixture
def rental() -> RentalRequest:
    return RentalRequest(
        id=uuid.UUID("11111111-2222-3333-4444-555555555555"),
        vehicle_id=VEHICLE.vehicle_id,
        store_id=VEHICLE.store_id,
        customer_id=CUSTOMER.user_id,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 2, 10),
        total_amount=Decimal("1700.00"),
        status=RentalStatus.APPROVED,
        rate_per_day=Decimal("50.00"),
        rate_per_month=Decimal("1200.00"),
    )


@pytest.fixture
def payment(rental) -> Payment:
    return Payment(
        id=uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"),
        rental_request_id=rental.id,
        amount=Decimal("1700.00"),
        method=PaymentMethod.UPI,
        status=PaymentStatus.SUCCESS,
        settled_at=datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc),
    )


def _receipt(payment, rental) -> Receipt:
    breakdown = price_breakdown(rental.rates, rental.start_date, rental.end_date)
    return build_receipt(payment, rental, VEHICLE, OWNER, CUSTOMER, breakdown, "INR")


def test_receipt_itemizes_charges(payment, rental):
    receipt = _receipt(payment, rental)

    assert receipt.receipt_id == "RCPT-AAAAAAAABBBB"
    assert receipt.issued_at == "2024-01-01T09:30:00+00:00"
    assert receipt.days == 40
    assert [(line.quantity, line.amount) for line in receipt.lines] == [
        (1, Decimal("1200.00")),
        (10, Decimal("500.00")),
    ]
    assert receipt.total == Decimal("1700.00")
    assert receipt.customer.email == ""


def test_receipt_dict_is_canonical(payment, rental):
    data = _receipt(payment, rental).to_dict()

    assert data["schema_version"] == 1
    assert data["total"] == "1700.00"
    assert data["vehicle"] == {"vehicle_id": "veh_swift", "name": "Maruti Swift", "store_id": "store_mg_road"}
    assert data["period"] == {"start_date": "2024-01-01", "end_date": "2024-02-10", "days": 40}
    assert data["lines"][1] == {
        "description": "Daily rate",
        "quantity": 10,
        "unit_price": "50.00",
        "amount": "500.00",
    }


def test_receipt_restores_from_snapshot(payment, rental):
    receipt = _receipt(payment, rental)
    assert Receipt.from_dict(receipt.to_dict()) == receipt


def test_receipt_requires_successful_payment(payment, rental):
    pending = Payment(
        id=payment.id,
        rental_request_id=rental.id,
        amount=payment.amount,
        method=payment.method,
        status=PaymentStatus.PENDING,
    )
    with pytest.raises(InvalidStateError):
        _receipt(pending, rental)


def test_receipt_id_is_stable(payment):
    assert receipt_id_for(payment) == receipt_id_for(payment)


def test_pdf_rendering_is_deterministic(payment, rental):
    """Same snapshot, same bytes: no wall-clock data leaks into the file"""
    receipt = _receipt(payment, rental)

    first = render_receipt_pdf(receipt)
    second = render_receipt_pdf(Receipt.from_dict(receipt.to_dict()))

    assert first.startswith(b"%PDF")
    assert first == second
