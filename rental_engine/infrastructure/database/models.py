"""SQLAlchemy ORM models for rentals, payments and booking locks"""

import uuid
from sqlalchemy import Column, String, Date, DateTime, Enum, ForeignKey, Index, Integer, JSON, Numeric, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from rental_engine.domain.models import PaymentMethod, PaymentStatus, RentalStatus

Base = declarative_base()


class RentalRequestRecord(Base):
    """Customer booking for one vehicle over [start_date, end_date)"""

    __tablename__ = "rental_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(String, nullable=False, index=True)
    store_id = Column(String, nullable=False, index=True)
    customer_id = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    # Rates the total was priced with; receipts itemize from these
    rate_per_day = Column(Numeric(10, 2), nullable=False)
    rate_per_month = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(RentalStatus, native_enum=False, length=16), nullable=False, default=RentalStatus.PENDING)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    payments = relationship("PaymentRecord", back_populates="rental_request", order_by="PaymentRecord.created_at")

    __table_args__ = (
        Index("ix_rental_requests_vehicle_status", "vehicle_id", "status"),
    )


class PaymentRecord(Base):
    """Payment attempt against a rental request"""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rental_request_id = Column(
        UUID(as_uuid=True), ForeignKey("rental_requests.id"), nullable=False, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(Enum(PaymentMethod, native_enum=False, length=8), nullable=False)
    status = Column(Enum(PaymentStatus, native_enum=False, length=16), nullable=False, default=PaymentStatus.PENDING)
    failure_reason = Column(Text, nullable=True)
    provider_reference = Column(Text, nullable=True)
    receipt_url = Column(Text, nullable=True)
    receipt_snapshot = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    settled_at = Column(DateTime(timezone=True), nullable=True)

    rental_request = relationship("RentalRequestRecord", back_populates="payments")

    # At most one PENDING or SUCCESS payment per rental; FAILED attempts accumulate
    __table_args__ = (
        Index(
            "uq_payments_open_per_rental",
            "rental_request_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'SUCCESS')"),
            postgresql_where=text("status IN ('PENDING', 'SUCCESS')"),
        ),
    )


class VehicleLock(Base):
    """Row locked FOR UPDATE to serialize booking admission per vehicle"""

    __tablename__ = "vehicle_locks"

    vehicle_id = Column(String, primary_key=True)
    admissions = Column(Integer, nullable=False, default=0)
