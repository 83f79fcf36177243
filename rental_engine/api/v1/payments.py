"""Payment endpoints and receipt downloads"""

import uuid
from fastapi import APIRouter, Depends, status
from starlette.responses import Response

from rental_engine.api.dependencies import get_payment_service, get_principal
from rental_engine.api.v1.schemas import PaymentListResponse, PaymentRequest, PaymentResponse
from rental_engine.domain.models import Payment, Principal
from rental_engine.services.payments import PaymentService

router = APIRouter()


def payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        rental_request_id=str(payment.rental_request_id),
        amount=payment.amount,
        method=payment.method,
        status=payment.status,
        failure_reason=payment.failure_reason,
        receipt_url=payment.receipt_url,
        created_at=payment.created_at,
        settled_at=payment.settled_at,
    )


@router.post(
    "/rentals/{rental_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_payment(
    rental_id: uuid.UUID,
    request_body: PaymentRequest,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Pay for an APPROVED rental.

    Flow:
    1. Reserve a PENDING payment (fails if one is already in flight)
    2. Settle with the provider (MOCK settles locally), bounded by a timeout
    3. Record SUCCESS with a receipt, or FAILED with a reason

    A FAILED payment is returned with 201 as well; the client may retry.
    """
    payment = await service.submit(principal, rental_id, request_body.method, request_body.amount)
    return payment_response(payment)


@router.get("/rentals/{rental_id}/payments", response_model=PaymentListResponse)
def list_payments(
    rental_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payments = service.list_payments(principal, rental_id)
    return PaymentListResponse(payments=[payment_response(p) for p in payments])


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return payment_response(service.get_payment(principal, payment_id))


@router.get("/payments/{payment_id}/receipt")
def get_receipt(
    payment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    structured, _ = service.generate_receipt(principal, payment_id)
    return structured


@router.get("/payments/{payment_id}/receipt.pdf")
def get_receipt_pdf(
    payment_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: PaymentService = Depends(get_payment_service),
):
    structured, document = service.generate_receipt(principal, payment_id)
    return Response(
        content=document,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{structured["receipt_id"]}.pdf"'},
    )
