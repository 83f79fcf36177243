"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

from rental_engine.domain.models import PaymentMethod, PaymentStatus, RentalStatus


class CreateRentalRequest(BaseModel):
    """Request body for POST /v1/rentals"""

    vehicle_id: str = Field(..., min_length=1, description="Vehicle identifier")
    start_date: date = Field(..., description="First rental day (inclusive)")
    end_date: date = Field(..., description="Return day (exclusive)")


class RenewRentalRequest(BaseModel):
    """Request body for POST /v1/rentals/{rental_id}/renew"""

    new_end_date: date


class RentalResponse(BaseModel):
    rental_id: str
    vehicle_id: str
    store_id: str
    customer_id: str
    start_date: date
    end_date: date
    total_amount: Decimal
    status: RentalStatus
    paid: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RentalListResponse(BaseModel):
    rentals: List[RentalResponse]


class BlockedRange(BaseModel):
    start_date: date
    end_date: date


class AvailabilityResponse(BaseModel):
    """Response for GET /v1/vehicles/{vehicle_id}/availability"""

    vehicle_id: str
    start_date: date
    end_date: date
    available: bool
    blocked: List[BlockedRange]


class QuoteLine(BaseModel):
    label: str
    units: int
    unit_price: Decimal
    amount: Decimal


class QuoteResponse(BaseModel):
    """Response for GET /v1/vehicles/{vehicle_id}/quote"""

    vehicle_id: str
    start_date: date
    end_date: date
    days: int
    months: int
    remainder_days: int
    lines: List[QuoteLine]
    total: Decimal


class PaymentRequest(BaseModel):
    """Request body for POST /v1/rentals/{rental_id}/payments"""

    method: PaymentMethod
    amount: Decimal = Field(..., ge=0, description="Must equal the rental total")


class PaymentResponse(BaseModel):
    payment_id: str
    rental_request_id: str
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    failure_reason: Optional[str] = None
    receipt_url: Optional[str] = None
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]


class CompletionSweepResponse(BaseModel):
    """Response for POST /internal/rentals/complete-elapsed"""

    completed: List[str]
