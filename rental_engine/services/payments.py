"""Payment submission, settlement and receipt generation"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock, SystemClock
from rental_engine.domain.exceptions import (
    AlreadyInProgressError,
    AmountMismatchError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ProviderTimeoutError,
    SettlementError,
)
from rental_engine.domain.lifecycle import (
    PaymentEvent,
    RentalEvent,
    is_completion_due,
    transition_payment,
    transition_rental,
)
from rental_engine.domain.models import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    Principal,
    RentalRequest,
    RentalStatus,
    User,
    Vehicle,
)
from rental_engine.domain.pricing import price_breakdown
from rental_engine.domain.receipts import Receipt, build_receipt
from rental_engine.infrastructure.clients.directory import VehicleDirectory
from rental_engine.infrastructure.clients.settlement import SettlementProvider
from rental_engine.infrastructure.database.locks import KeyedLocks, process_locks
from rental_engine.infrastructure.database.repositories import (
    PaymentRepository,
    RentalRepository,
    to_payment,
    to_rental,
)
from rental_engine.infrastructure.database.session import run_in_transaction
from rental_engine.infrastructure.documents.receipt_pdf import render_receipt_pdf
from rental_engine.infrastructure.observability.logging import log_payment, log_transition
from rental_engine.infrastructure.observability.metrics import record_payment, record_transition
from rental_engine.services.rentals import ensure_can_view, rental_key
from rental_engine.utils.money import to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptContext:
    """Directory data captured at submission for the receipt snapshot"""

    vehicle: Vehicle
    owner: User
    customer: User


class PaymentService:
    """
    Payment state machine for rental requests.

    A submission runs in three steps: a short transaction reserves a
    PENDING payment, settlement runs outside any transaction with a hard
    timeout, and a second transaction records SUCCESS or FAILED. Only one
    PENDING payment may exist per rental, so concurrent submissions fail
    with AlreadyInProgressError instead of racing.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        directory: VehicleDirectory,
        settlement: SettlementProvider,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLocks] = None,
        settlement_timeout: Optional[float] = None,
        days_per_month: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.directory = directory
        self.settlement = settlement
        self.clock = clock or SystemClock()
        self.locks = locks or process_locks
        self.settlement_timeout = settlement_timeout or settings.settlement_timeout_seconds
        self.days_per_month = days_per_month or settings.pricing_days_per_month

    def _load_rental(self, rental_id: uuid.UUID) -> RentalRequest:
        with self.session_factory() as session:
            record = RentalRepository(session).get(rental_id)
            if not record:
                raise NotFoundError("Rental", str(rental_id))
            return to_rental(record)

    async def _receipt_context(self, rental: RentalRequest) -> ReceiptContext:
        vehicle = await self.directory.get_vehicle(rental.vehicle_id)
        owner = await self.directory.get_user(vehicle.owner_id)
        customer = await self.directory.get_user(rental.customer_id)
        return ReceiptContext(vehicle=vehicle, owner=owner, customer=customer)

    def _reserve(
        self,
        principal: Principal,
        rental_id: uuid.UUID,
        method: PaymentMethod,
        amount: Decimal,
    ) -> Payment:
        def reserve(session: Session) -> Payment:
            record = RentalRepository(session).get(rental_id, for_update=True)
            if not record:
                raise NotFoundError("Rental", str(rental_id))
            rental = to_rental(record)
            if rental.customer_id != principal.user_id:
                raise ForbiddenError(f"Rental {rental_id} belongs to another customer")
            if rental.is_paid:
                raise InvalidStateError(f"Rental {rental_id} is already paid")
            if rental.status != RentalStatus.APPROVED:
                raise InvalidStateError(
                    f"Rental {rental_id} is {rental.status.value}; only APPROVED rentals can be paid"
                )

            payments = PaymentRepository(session)
            open_payment = payments.open_for_rental(rental_id)
            if open_payment is not None:
                if open_payment.status == PaymentStatus.PENDING:
                    raise AlreadyInProgressError(str(rental_id))
                raise InvalidStateError(f"Rental {rental_id} is already paid")

            # compared unrounded: 200.004 is not 200.00
            expected = to_money(rental.total_amount)
            if amount != expected:
                raise AmountMismatchError(str(amount), str(expected))

            return to_payment(payments.create_pending(rental_id, expected, method, self.clock.now()))

        with self.locks.hold(rental_key(rental_id)):
            return run_in_transaction(self.session_factory, reserve)

    async def _settle(self, payment: Payment) -> str:
        """Run settlement for one payment; MOCK never leaves the process"""
        if payment.method == PaymentMethod.MOCK:
            return f"MOCK-{payment.id.hex[:12].upper()}"
        try:
            return await asyncio.wait_for(
                self.settlement.settle(str(payment.id), payment.method, payment.amount),
                timeout=self.settlement_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(f"Settlement timeout after {self.settlement_timeout}s") from e

    def _finalize(
        self,
        payment_id: uuid.UUID,
        rental_id: uuid.UUID,
        reference: Optional[str],
        failure_reason: Optional[str],
        context: ReceiptContext,
    ) -> Tuple[Payment, Optional[RentalRequest]]:
        now = self.clock.now()
        today = self.clock.today()

        def finalize(session: Session):
            payment_record = PaymentRepository(session).get(payment_id)
            rental_record = RentalRepository(session).get(rental_id, for_update=True)
            rental = to_rental(rental_record)
            reason = failure_reason

            if reason is None and rental.status != RentalStatus.APPROVED:
                reason = "RENTAL_NOT_APPROVED"
            elif reason is None and to_money(rental.total_amount) != to_money(payment_record.amount):
                reason = "RENTAL_AMOUNT_CHANGED"

            payment_record.settled_at = now
            payment_record.provider_reference = reference
            if reason is not None:
                payment_record.status = transition_payment(payment_record.status, PaymentEvent.SETTLE_FAIL)
                payment_record.failure_reason = reason
                return to_payment(payment_record), None

            payment_record.status = transition_payment(payment_record.status, PaymentEvent.SETTLE_OK)
            payment = to_payment(payment_record)
            breakdown = price_breakdown(rental.rates, rental.start_date, rental.end_date, self.days_per_month)
            receipt = build_receipt(
                payment,
                rental,
                context.vehicle,
                context.owner,
                context.customer,
                breakdown,
                settings.currency,
            )
            payment_record.receipt_snapshot = receipt.to_dict()
            payment_record.receipt_url = f"{settings.receipt_base_url}/v1/payments/{payment_id}/receipt.pdf"

            rental_record.paid_at = now
            rental_record.updated_at = now
            completed = None
            if is_completion_due(to_rental(rental_record), today):
                rental_record.status = transition_rental(rental_record.status, RentalEvent.COMPLETE)
                completed = to_rental(rental_record)
            return to_payment(payment_record), completed

        with self.locks.hold(rental_key(rental_id)):
            return run_in_transaction(self.session_factory, finalize)

    async def submit(
        self,
        principal: Principal,
        rental_id: uuid.UUID,
        method: PaymentMethod,
        amount: Decimal,
    ) -> Payment:
        """
        Pay for an APPROVED rental.

        Settlement failures (timeout, decline, provider error) do not
        raise: they return a FAILED payment, the rental stays APPROVED and
        a new attempt may be submitted.

        Raises:
            NotFoundError: unknown rental
            ForbiddenError: caller is not the requesting customer
            InvalidStateError: rental not APPROVED or already paid
            AlreadyInProgressError: another attempt is pending
            AmountMismatchError: amount differs from the rental total
        """
        start_time = time.time()
        to_money(amount)  # rejects floats and non-finite values
        if not isinstance(amount, Decimal):
            amount = Decimal(amount)
        rental = self._load_rental(rental_id)
        if rental.customer_id != principal.user_id:
            raise ForbiddenError(f"Rental {rental_id} belongs to another customer")
        context = await self._receipt_context(rental)

        payment = await run_in_threadpool(self._reserve, principal, rental_id, method, amount)

        reference = None
        failure_reason = None
        try:
            reference = await self._settle(payment)
        except SettlementError as e:
            failure_reason = e.reason
            logger.warning(f"Settlement failed for payment {payment.id}: {e}")
        except Exception:
            # Never leave the payment PENDING, whatever the provider did
            await run_in_threadpool(self._finalize, payment.id, rental_id, None, "PROVIDER_ERROR", context)
            raise

        payment, completed = await run_in_threadpool(
            self._finalize, payment.id, rental_id, reference, failure_reason, context
        )

        if payment.failure_reason in ("RENTAL_NOT_APPROVED", "RENTAL_AMOUNT_CHANGED"):
            logger.error(
                f"Payment {payment.id} settled with the provider but rental {rental_id} changed; refund required",
                extra={"payment_id": str(payment.id), "provider_reference": reference},
            )
        if completed is not None:
            record_transition(RentalEvent.COMPLETE.value, completed.status.value)
            log_transition(str(rental_id), RentalEvent.COMPLETE.value, "APPROVED", completed.status.value, "system")

        succeeded = payment.status == PaymentStatus.SUCCESS
        record_payment(payment.method.value, succeeded, payment.amount)
        log_payment(
            str(payment.id),
            str(rental_id),
            payment.method.value,
            payment.status.value,
            payment.failure_reason,
            (time.time() - start_time) * 1000,
        )
        return payment

    # -- queries -----------------------------------------------------------

    def _load_payment(self, principal: Principal, payment_id: uuid.UUID) -> Payment:
        with self.session_factory() as session:
            record = PaymentRepository(session).get(payment_id)
            if not record:
                raise NotFoundError("Payment", str(payment_id))
            payment = to_payment(record)
            rental = to_rental(record.rental_request)
        ensure_can_view(principal, rental)
        return payment

    def get_payment(self, principal: Principal, payment_id: uuid.UUID) -> Payment:
        return self._load_payment(principal, payment_id)

    def list_payments(self, principal: Principal, rental_id: uuid.UUID) -> List[Payment]:
        ensure_can_view(principal, self._load_rental(rental_id))
        with self.session_factory() as session:
            return [to_payment(r) for r in PaymentRepository(session).list_for_rental(rental_id)]

    def generate_receipt(self, principal: Principal, payment_id: uuid.UUID) -> Tuple[dict, bytes]:
        """
        Structured receipt and PDF for a successful payment.

        Both come from the snapshot stored at settlement, so repeated calls
        return identical data and identical bytes.
        """
        payment = self._load_payment(principal, payment_id)
        if payment.status != PaymentStatus.SUCCESS or not payment.receipt_snapshot:
            raise InvalidStateError(f"Payment {payment_id} has no receipt; status is {payment.status.value}")
        structured = payment.receipt_snapshot
        return structured, render_receipt_pdf(Receipt.from_dict(structured))
