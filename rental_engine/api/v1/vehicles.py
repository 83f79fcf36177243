"""Vehicle-scoped queries: availability, price quotes, bookings"""

from datetime import date
from fastapi import APIRouter, Depends, Query

from rental_engine.api.dependencies import get_principal, get_rental_service
from rental_engine.api.v1.rentals import rental_response
from rental_engine.api.v1.schemas import (
    AvailabilityResponse,
    BlockedRange,
    QuoteLine,
    QuoteResponse,
    RentalListResponse,
)
from rental_engine.domain.models import Principal
from rental_engine.services.rentals import RentalService

router = APIRouter()


@router.get("/vehicles/{vehicle_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    vehicle_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    service: RentalService = Depends(get_rental_service),
):
    """Whether [start_date, end_date) is free; advisory, not a reservation"""
    clashes = service.conflicts(vehicle_id, start_date, end_date)
    return AvailabilityResponse(
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=end_date,
        available=not clashes,
        blocked=[BlockedRange(start_date=r.start_date, end_date=r.end_date) for r in clashes],
    )


@router.get("/vehicles/{vehicle_id}/quote", response_model=QuoteResponse)
async def get_quote(
    vehicle_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    service: RentalService = Depends(get_rental_service),
):
    breakdown = await service.quote(vehicle_id, start_date, end_date)
    return QuoteResponse(
        vehicle_id=vehicle_id,
        start_date=start_date,
        end_date=end_date,
        days=breakdown.days,
        months=breakdown.months,
        remainder_days=breakdown.remainder_days,
        lines=[
            QuoteLine(label=line.label, units=line.units, unit_price=line.unit_price, amount=line.amount)
            for line in breakdown.lines
        ],
        total=breakdown.total,
    )


@router.get("/vehicles/{vehicle_id}/rentals", response_model=RentalListResponse)
async def list_vehicle_rentals(
    vehicle_id: str,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    rentals = await service.list_for_vehicle(principal, vehicle_id)
    return RentalListResponse(rentals=[rental_response(r) for r in rentals])
