"""Rental request endpoints: booking, owner decisions, renewal"""

import uuid
from fastapi import APIRouter, Depends, Query, status

from rental_engine.api.dependencies import get_principal, get_rental_service
from rental_engine.api.v1.schemas import (
    CreateRentalRequest,
    RenewRentalRequest,
    RentalListResponse,
    RentalResponse,
)
from rental_engine.domain.models import Principal, RentalRequest
from rental_engine.services.rentals import RentalService

router = APIRouter()


def rental_response(rental: RentalRequest) -> RentalResponse:
    return RentalResponse(
        rental_id=str(rental.id),
        vehicle_id=rental.vehicle_id,
        store_id=rental.store_id,
        customer_id=rental.customer_id,
        start_date=rental.start_date,
        end_date=rental.end_date,
        total_amount=rental.total_amount,
        status=rental.status,
        paid=rental.is_paid,
        created_at=rental.created_at,
        updated_at=rental.updated_at,
    )


@router.post("/rentals", response_model=RentalResponse, status_code=status.HTTP_201_CREATED)
async def create_rental(
    request_body: CreateRentalRequest,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    """
    Book a vehicle for [start_date, end_date).

    The total is priced server-side from the vehicle's rates; the request
    starts PENDING until the store owner approves or rejects it.
    """
    rental = await service.create(
        principal,
        request_body.vehicle_id,
        request_body.start_date,
        request_body.end_date,
    )
    return rental_response(rental)


@router.get("/rentals", response_model=RentalListResponse)
def list_rentals(
    customer_id: str = Query(..., description="Customer identifier"),
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    rentals = service.list_for_customer(principal, customer_id)
    return RentalListResponse(rentals=[rental_response(r) for r in rentals])


@router.get("/rentals/{rental_id}", response_model=RentalResponse)
def get_rental(
    rental_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    return rental_response(service.get(principal, rental_id))


@router.post("/rentals/{rental_id}/approve", response_model=RentalResponse)
def approve_rental(
    rental_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    return rental_response(service.approve(principal, rental_id))


@router.post("/rentals/{rental_id}/reject", response_model=RentalResponse)
def reject_rental(
    rental_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    return rental_response(service.reject(principal, rental_id))


@router.post("/rentals/{rental_id}/withdraw", response_model=RentalResponse)
def withdraw_rental(
    rental_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    return rental_response(service.withdraw(principal, rental_id))


@router.post("/rentals/{rental_id}/renew", response_model=RentalResponse)
async def renew_rental(
    rental_id: uuid.UUID,
    request_body: RenewRentalRequest,
    principal: Principal = Depends(get_principal),
    service: RentalService = Depends(get_rental_service),
):
    rental = await service.renew(principal, rental_id, request_body.new_end_date)
    return rental_response(rental)
