"""Receipt snapshot built from a settled payment"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List

from rental_engine.domain.exceptions import InvalidStateError
from rental_engine.domain.models import (
    Payment,
    PaymentStatus,
    PriceBreakdown,
    RentalRequest,
    User,
    Vehicle,
)
from rental_engine.utils.money import to_money

RECEIPT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ReceiptLine:
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class ReceiptParty:
    user_id: str
    name: str
    email: str


@dataclass(frozen=True)
class Receipt:
    """
    Point-in-time copy of everything printed on a receipt.

    Built once when the payment succeeds and persisted with it, so later
    edits to the vehicle or to either user never change an issued receipt.
    """

    receipt_id: str
    payment_id: str
    rental_request_id: str
    issued_at: str
    currency: str
    method: str
    vehicle_id: str
    vehicle_name: str
    store_id: str
    start_date: str
    end_date: str
    days: int
    owner: ReceiptParty
    customer: ReceiptParty
    lines: List[ReceiptLine]
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """Canonical JSON-safe form; money as fixed two-place strings"""
        return {
            "schema_version": RECEIPT_SCHEMA_VERSION,
            "receipt_id": self.receipt_id,
            "payment_id": self.payment_id,
            "rental_request_id": self.rental_request_id,
            "issued_at": self.issued_at,
            "currency": self.currency,
            "method": self.method,
            "vehicle": {
                "vehicle_id": self.vehicle_id,
                "name": self.vehicle_name,
                "store_id": self.store_id,
            },
            "period": {
                "start_date": self.start_date,
                "end_date": self.end_date,
                "days": self.days,
            },
            "owner": _party_dict(self.owner),
            "customer": _party_dict(self.customer),
            "lines": [
                {
                    "description": line.description,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "amount": str(line.amount),
                }
                for line in self.lines
            ],
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Receipt":
        return cls(
            receipt_id=data["receipt_id"],
            payment_id=data["payment_id"],
            rental_request_id=data["rental_request_id"],
            issued_at=data["issued_at"],
            currency=data["currency"],
            method=data["method"],
            vehicle_id=data["vehicle"]["vehicle_id"],
            vehicle_name=data["vehicle"]["name"],
            store_id=data["vehicle"]["store_id"],
            start_date=data["period"]["start_date"],
            end_date=data["period"]["end_date"],
            days=data["period"]["days"],
            owner=ReceiptParty(**data["owner"]),
            customer=ReceiptParty(**data["customer"]),
            lines=[
                ReceiptLine(
                    description=line["description"],
                    quantity=line["quantity"],
                    unit_price=to_money(line["unit_price"]),
                    amount=to_money(line["amount"]),
                )
                for line in data["lines"]
            ],
            total=to_money(data["total"]),
        )


def _party_dict(party: ReceiptParty) -> Dict[str, str]:
    return {"user_id": party.user_id, "name": party.name, "email": party.email}


def receipt_id_for(payment: Payment) -> str:
    return f"RCPT-{payment.id.hex[:12].upper()}"


def build_receipt(
    payment: Payment,
    rental: RentalRequest,
    vehicle: Vehicle,
    owner: User,
    customer: User,
    breakdown: PriceBreakdown,
    currency: str,
) -> Receipt:
    """
    Project a settled payment and its context into a Receipt.

    Pure function of its arguments: the issue timestamp is the payment's
    settlement time, never the current time.
    """
    if payment.status != PaymentStatus.SUCCESS or payment.settled_at is None:
        raise InvalidStateError(f"Payment {payment.id} has not succeeded; no receipt available")

    return Receipt(
        receipt_id=receipt_id_for(payment),
        payment_id=str(payment.id),
        rental_request_id=str(rental.id),
        issued_at=payment.settled_at.isoformat(),
        currency=currency,
        method=payment.method.value,
        vehicle_id=vehicle.vehicle_id,
        vehicle_name=vehicle.name,
        store_id=rental.store_id,
        start_date=rental.start_date.isoformat(),
        end_date=rental.end_date.isoformat(),
        days=breakdown.days,
        owner=ReceiptParty(user_id=owner.user_id, name=owner.name, email=owner.email or ""),
        customer=ReceiptParty(user_id=customer.user_id, name=customer.name, email=customer.email or ""),
        lines=[
            ReceiptLine(
                description=line.label,
                quantity=line.units,
                unit_price=line.unit_price,
                amount=line.amount,
            )
            for line in breakdown.lines
        ],
        total=to_money(payment.amount),
    )
