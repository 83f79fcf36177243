"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import FrozenSet, List, Optional


class RentalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PaymentMethod(str, enum.Enum):
    CARD = "CARD"
    UPI = "UPI"
    CASH = "CASH"
    MOCK = "MOCK"


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    OWNER = "OWNER"


# Statuses that hold the vehicle for their date range
BLOCKING_STATUSES = (RentalStatus.PENDING, RentalStatus.APPROVED)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as forwarded by the identity gateway"""

    user_id: str
    role: Role
    store_ids: FrozenSet[str] = frozenset()

    def controls_store(self, store_id: str) -> bool:
        return self.role == Role.OWNER and store_id in self.store_ids


@dataclass(frozen=True)
class RentRates:
    rent_per_day: Decimal
    rent_per_month: Decimal


@dataclass(frozen=True)
class Vehicle:
    """Read-only vehicle snapshot from the directory"""

    vehicle_id: str
    store_id: str
    owner_id: str
    name: str
    rent_per_day: Decimal
    rent_per_month: Decimal
    is_available: bool = True

    @property
    def rates(self) -> RentRates:
        return RentRates(rent_per_day=self.rent_per_day, rent_per_month=self.rent_per_month)


@dataclass(frozen=True)
class User:
    """Read-only user snapshot from the directory"""

    user_id: str
    name: str
    email: Optional[str] = None


@dataclass
class RentalRequest:
    id: uuid.UUID
    vehicle_id: str
    store_id: str
    customer_id: str
    start_date: date
    end_date: date
    total_amount: Decimal
    status: RentalStatus
    rate_per_day: Decimal = Decimal("0.00")
    rate_per_month: Decimal = Decimal("0.00")
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    @property
    def rates(self) -> RentRates:
        return RentRates(rent_per_day=self.rate_per_day, rent_per_month=self.rate_per_month)


@dataclass
class Payment:
    id: uuid.UUID
    rental_request_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    failure_reason: Optional[str] = None
    provider_reference: Optional[str] = None
    receipt_url: Optional[str] = None
    receipt_snapshot: Optional[dict] = None
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None


@dataclass(frozen=True)
class PriceLine:
    """One line of a price breakdown: units x unit rate"""

    label: str
    units: int
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    days: int
    months: int
    remainder_days: int
    lines: List[PriceLine] = field(default_factory=list)
    total: Decimal = Decimal("0.00")

