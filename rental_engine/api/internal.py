"""Operational endpoints, not exposed through the public gateway"""

from fastapi import APIRouter, Depends

from rental_engine.api.dependencies import get_rental_service
from rental_engine.api.v1.schemas import CompletionSweepResponse
from rental_engine.services.rentals import RentalService

router = APIRouter()


@router.post("/rentals/complete-elapsed", response_model=CompletionSweepResponse)
def complete_elapsed(service: RentalService = Depends(get_rental_service)):
    """Run the completion sweep; meant to be called by a scheduler"""
    completed = service.complete_elapsed()
    return CompletionSweepResponse(completed=[str(r.id) for r in completed])
