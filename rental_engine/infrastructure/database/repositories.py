"""Data access layer for rental requests and payments"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_engine.domain.models import (
    BLOCKING_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
    RentalRequest,
    RentalStatus,
    RentRates,
)
from rental_engine.infrastructure.database.models import PaymentRecord, RentalRequestRecord


def to_rental(record: RentalRequestRecord) -> RentalRequest:
    return RentalRequest(
        id=record.id,
        vehicle_id=record.vehicle_id,
        store_id=record.store_id,
        customer_id=record.customer_id,
        start_date=record.start_date,
        end_date=record.end_date,
        total_amount=record.total_amount,
        status=RentalStatus(record.status),
        rate_per_day=record.rate_per_day,
        rate_per_month=record.rate_per_month,
        paid_at=record.paid_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def to_payment(record: PaymentRecord) -> Payment:
    return Payment(
        id=record.id,
        rental_request_id=record.rental_request_id,
        amount=record.amount,
        method=PaymentMethod(record.method),
        status=PaymentStatus(record.status),
        failure_reason=record.failure_reason,
        provider_reference=record.provider_reference,
        receipt_url=record.receipt_url,
        receipt_snapshot=record.receipt_snapshot,
        created_at=record.created_at,
        settled_at=record.settled_at,
    )


class RentalRepository:
    """Repository for rental requests"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        vehicle_id: str,
        store_id: str,
        customer_id: str,
        start_date: date,
        end_date: date,
        total_amount: Decimal,
        rates: RentRates,
        created_at: datetime,
    ) -> RentalRequestRecord:
        record = RentalRequestRecord(
            vehicle_id=vehicle_id,
            store_id=store_id,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            total_amount=total_amount,
            rate_per_day=rates.rent_per_day,
            rate_per_month=rates.rent_per_month,
            status=RentalStatus.PENDING,
            created_at=created_at,
            updated_at=created_at,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get(self, rental_id: uuid.UUID, for_update: bool = False) -> Optional[RentalRequestRecord]:
        q = select(RentalRequestRecord).where(RentalRequestRecord.id == rental_id)
        if for_update:
            q = q.with_for_update()
        return self.db.execute(q).scalars().first()

    def blocking_for_vehicle(self, vehicle_id: str) -> List[RentalRequestRecord]:
        """PENDING/APPROVED requests that hold the vehicle"""
        q = select(RentalRequestRecord).where(
            RentalRequestRecord.vehicle_id == vehicle_id,
            RentalRequestRecord.status.in_(BLOCKING_STATUSES),
        )
        return list(self.db.execute(q).scalars().all())

    def list_for_vehicle(self, vehicle_id: str, limit: int = 100) -> List[RentalRequestRecord]:
        q = (
            select(RentalRequestRecord)
            .where(RentalRequestRecord.vehicle_id == vehicle_id)
            .order_by(RentalRequestRecord.start_date)
            .limit(limit)
        )
        return list(self.db.execute(q).scalars().all())

    def list_for_customer(self, customer_id: str, limit: int = 100) -> List[RentalRequestRecord]:
        q = (
            select(RentalRequestRecord)
            .where(RentalRequestRecord.customer_id == customer_id)
            .order_by(RentalRequestRecord.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(q).scalars().all())

    def elapsed_approved(self, today: date, paid_only: bool = True) -> List[RentalRequestRecord]:
        """APPROVED requests whose term ended on or before `today`"""
        q = select(RentalRequestRecord).where(
            RentalRequestRecord.status == RentalStatus.APPROVED,
            RentalRequestRecord.end_date <= today,
        )
        if paid_only:
            q = q.where(RentalRequestRecord.paid_at.is_not(None))
        return list(self.db.execute(q).scalars().all())


class PaymentRepository:
    """Repository for payment attempts"""

    def __init__(self, db: Session):
        self.db = db

    def create_pending(
        self,
        rental_request_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        created_at: datetime,
    ) -> PaymentRecord:
        record = PaymentRecord(
            rental_request_id=rental_request_id,
            amount=amount,
            method=method,
            status=PaymentStatus.PENDING,
            created_at=created_at,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        q = select(PaymentRecord).where(PaymentRecord.id == payment_id)
        return self.db.execute(q).scalars().first()

    def open_for_rental(self, rental_request_id: uuid.UUID) -> Optional[PaymentRecord]:
        """The PENDING or SUCCESS payment for a rental, if any"""
        q = select(PaymentRecord).where(
            PaymentRecord.rental_request_id == rental_request_id,
            PaymentRecord.status.in_((PaymentStatus.PENDING, PaymentStatus.SUCCESS)),
        )
        return self.db.execute(q).scalars().first()

    def list_for_rental(self, rental_request_id: uuid.UUID) -> List[PaymentRecord]:
        q = (
            select(PaymentRecord)
            .where(PaymentRecord.rental_request_id == rental_request_id)
            .order_by(PaymentRecord.created_at)
        )
        return list(self.db.execute(q).scalars().all())
