"""Rental request lifecycle: booking admission, owner decisions, renewal, completion"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from rental_engine.config import settings
from rental_engine.domain.availability import find_conflicts, validate_range
from rental_engine.domain.clock import Clock, SystemClock
from rental_engine.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRangeError,
    InvalidStateError,
    NotFoundError,
    VehicleUnavailableError,
)
from rental_engine.domain.lifecycle import RentalEvent, is_completion_due, transition_rental
from rental_engine.domain.models import PriceBreakdown, Principal, RentalRequest, Role
from rental_engine.domain.pricing import price_breakdown
from rental_engine.infrastructure.clients.directory import VehicleDirectory
from rental_engine.infrastructure.database.locks import KeyedLocks, lock_vehicle, process_locks
from rental_engine.infrastructure.database.models import RentalRequestRecord
from rental_engine.infrastructure.database.repositories import PaymentRepository, RentalRepository, to_rental
from rental_engine.infrastructure.database.session import run_in_transaction
from rental_engine.infrastructure.observability.logging import log_transition
from rental_engine.infrastructure.observability.metrics import booking_conflict_counter, record_transition

logger = logging.getLogger(__name__)


def vehicle_key(vehicle_id: str) -> tuple:
    return ("vehicle", vehicle_id)


def rental_key(rental_id: uuid.UUID) -> tuple:
    return ("rental", str(rental_id))


def ensure_can_view(principal: Principal, rental: RentalRequest) -> None:
    """The requesting customer and the owner of the store may read a rental"""
    if principal.user_id == rental.customer_id or principal.controls_store(rental.store_id):
        return
    raise ForbiddenError(f"User {principal.user_id} may not access rental {rental.id}")


class RentalService:
    """
    Rental request state machine.

    Admission operations (create, approve, renew) check availability and
    write the reservation in one transaction holding the vehicle lock, so
    concurrent overlapping admissions cannot both succeed.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        directory: VehicleDirectory,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLocks] = None,
        days_per_month: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.directory = directory
        self.clock = clock or SystemClock()
        self.locks = locks or process_locks
        self.days_per_month = days_per_month or settings.pricing_days_per_month

    # -- queries -----------------------------------------------------------

    def _load(self, rental_id: uuid.UUID) -> RentalRequest:
        with self.session_factory() as session:
            record = RentalRepository(session).get(rental_id)
            if not record:
                raise NotFoundError("Rental", str(rental_id))
            return to_rental(record)

    def get(self, principal: Principal, rental_id: uuid.UUID) -> RentalRequest:
        """Fetch a rental, completing it first if its paid term has elapsed"""
        rental = self._load(rental_id)
        ensure_can_view(principal, rental)
        if is_completion_due(rental, self.clock.today(), settings.complete_unpaid_after_term):
            rental = self._complete(rental_id, actor_id="system") or self._load(rental_id)
        return rental

    def list_for_customer(self, principal: Principal, customer_id: str) -> List[RentalRequest]:
        if principal.user_id != customer_id:
            raise ForbiddenError(f"User {principal.user_id} may not list rentals of {customer_id}")
        with self.session_factory() as session:
            return [to_rental(r) for r in RentalRepository(session).list_for_customer(customer_id)]

    async def list_for_vehicle(self, principal: Principal, vehicle_id: str) -> List[RentalRequest]:
        vehicle = await self.directory.get_vehicle(vehicle_id)
        if not principal.controls_store(vehicle.store_id):
            raise ForbiddenError(f"User {principal.user_id} does not control store {vehicle.store_id}")
        with self.session_factory() as session:
            return [to_rental(r) for r in RentalRepository(session).list_for_vehicle(vehicle_id)]

    def is_available(
        self,
        vehicle_id: str,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Lock-free availability query; admission re-checks under the lock"""
        return not self.conflicts(vehicle_id, start_date, end_date, exclude_request_id)

    def conflicts(
        self,
        vehicle_id: str,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> List[RentalRequest]:
        validate_range(start_date, end_date)
        with self.session_factory() as session:
            held = [to_rental(r) for r in RentalRepository(session).blocking_for_vehicle(vehicle_id)]
        return find_conflicts(held, vehicle_id, start_date, end_date, exclude_request_id)

    async def quote(self, vehicle_id: str, start_date: date, end_date: date) -> PriceBreakdown:
        vehicle = await self.directory.get_vehicle(vehicle_id)
        return price_breakdown(vehicle.rates, start_date, end_date, self.days_per_month)

    # -- admission -----------------------------------------------------------

    def _ensure_free(
        self,
        repo: RentalRepository,
        vehicle_id: str,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[uuid.UUID],
        operation: str,
    ) -> None:
        held = [to_rental(r) for r in repo.blocking_for_vehicle(vehicle_id)]
        clashes = find_conflicts(held, vehicle_id, start_date, end_date, exclude_request_id)
        if clashes:
            booking_conflict_counter.labels(operation=operation).inc()
            logger.info(
                "Booking conflict",
                extra={
                    "vehicle_id": vehicle_id,
                    "operation": operation,
                    "conflicting_ids": [str(r.id) for r in clashes],
                },
            )
            raise ConflictError(
                f"Vehicle {vehicle_id} is already booked between "
                f"{start_date.isoformat()} and {end_date.isoformat()}"
            )

    async def create(
        self,
        principal: Principal,
        vehicle_id: str,
        start_date: date,
        end_date: date,
    ) -> RentalRequest:
        """
        Book a vehicle for [start_date, end_date) as a PENDING request.

        Not idempotent across retries: an identical resubmission overlaps
        the first request and fails with ConflictError.

        Raises:
            ForbiddenError: caller is not a customer
            InvalidRangeError: empty/reversed range or start in the past
            NotFoundError: unknown vehicle
            VehicleUnavailableError: vehicle withdrawn by its owner
            ConflictError: range overlaps a PENDING/APPROVED booking
        """
        if principal.role != Role.CUSTOMER:
            raise ForbiddenError("Only customers can book vehicles")
        validate_range(start_date, end_date)
        today = self.clock.today()
        if start_date < today:
            raise InvalidRangeError(f"Start date {start_date.isoformat()} is in the past")

        vehicle = await self.directory.get_vehicle(vehicle_id)
        if not vehicle.is_available:
            raise VehicleUnavailableError(vehicle_id)

        total = price_breakdown(vehicle.rates, start_date, end_date, self.days_per_month).total
        now = self.clock.now()

        def admit(session: Session) -> RentalRequest:
            lock_vehicle(session, vehicle_id)
            repo = RentalRepository(session)
            self._ensure_free(repo, vehicle_id, start_date, end_date, None, "create")
            record = repo.create(
                vehicle_id=vehicle_id,
                store_id=vehicle.store_id,
                customer_id=principal.user_id,
                start_date=start_date,
                end_date=end_date,
                total_amount=total,
                rates=vehicle.rates,
                created_at=now,
            )
            return to_rental(record)

        def locked_admit() -> RentalRequest:
            with self.locks.hold(vehicle_key(vehicle_id)):
                return run_in_transaction(self.session_factory, admit)

        # lock waits and row locks stay off the event loop
        rental = await run_in_threadpool(locked_admit)

        record_transition("CREATE", rental.status.value)
        log_transition(str(rental.id), "CREATE", None, rental.status.value, principal.user_id)
        return rental

    # -- transitions -----------------------------------------------------------

    def _apply(
        self,
        session: Session,
        rental_id: uuid.UUID,
        event: RentalEvent,
    ) -> tuple:
        record = RentalRepository(session).get(rental_id, for_update=True)
        if not record:
            raise NotFoundError("Rental", str(rental_id))
        current = to_rental(record)
        return record, current, transition_rental(current.status, event)

    def _record_change(self, rental: RentalRequest, event: RentalEvent, previous, actor_id: str) -> None:
        record_transition(event.value, rental.status.value)
        log_transition(str(rental.id), event.value, previous.value, rental.status.value, actor_id)

    def approve(self, principal: Principal, rental_id: uuid.UUID) -> RentalRequest:
        """
        Owner approves a PENDING request.

        Availability is re-checked under the vehicle lock before the
        transition, excluding the request's own reservation.
        """
        vehicle_id = self._load(rental_id).vehicle_id

        def decide(session: Session):
            lock_vehicle(session, vehicle_id)
            record, current, target = self._checked_owner_transition(
                session, principal, rental_id, RentalEvent.APPROVE
            )
            self._ensure_free(
                RentalRepository(session), vehicle_id, current.start_date, current.end_date, current.id, "approve"
            )
            record.status = target
            record.updated_at = self.clock.now()
            return to_rental(record), current.status

        with self.locks.hold(vehicle_key(vehicle_id)), self.locks.hold(rental_key(rental_id)):
            rental, previous = run_in_transaction(self.session_factory, decide)

        self._record_change(rental, RentalEvent.APPROVE, previous, principal.user_id)
        return rental

    def _checked_owner_transition(self, session: Session, principal: Principal, rental_id, event: RentalEvent):
        record = RentalRepository(session).get(rental_id, for_update=True)
        if not record:
            raise NotFoundError("Rental", str(rental_id))
        current = to_rental(record)
        if not principal.controls_store(current.store_id):
            raise ForbiddenError(f"User {principal.user_id} does not control store {current.store_id}")
        return record, current, transition_rental(current.status, event)

    def reject(self, principal: Principal, rental_id: uuid.UUID) -> RentalRequest:
        """Owner rejects a PENDING request (-> CANCELLED)"""

        def decide(session: Session):
            record, current, target = self._checked_owner_transition(
                session, principal, rental_id, RentalEvent.REJECT
            )
            record.status = target
            record.updated_at = self.clock.now()
            return to_rental(record), current.status

        with self.locks.hold(rental_key(rental_id)):
            rental, previous = run_in_transaction(self.session_factory, decide)

        self._record_change(rental, RentalEvent.REJECT, previous, principal.user_id)
        return rental

    def withdraw(self, principal: Principal, rental_id: uuid.UUID) -> RentalRequest:
        """Customer withdraws their own PENDING request (-> CANCELLED)"""

        def cancel(session: Session):
            record, current, target = self._apply(session, rental_id, RentalEvent.WITHDRAW)
            if current.customer_id != principal.user_id:
                raise ForbiddenError(f"Rental {rental_id} belongs to another customer")
            record.status = target
            record.updated_at = self.clock.now()
            return to_rental(record), current.status

        with self.locks.hold(rental_key(rental_id)):
            rental, previous = run_in_transaction(self.session_factory, cancel)

        self._record_change(rental, RentalEvent.WITHDRAW, previous, principal.user_id)
        return rental

    async def renew(self, principal: Principal, rental_id: uuid.UUID, new_end_date: date) -> RentalRequest:
        """
        Extend an APPROVED rental to `new_end_date`.

        Only the extension window [old_end, new_end) is checked for
        availability; the total is repriced over the whole new range at
        the vehicle's current rates.

        Raises:
            ForbiddenError: caller is not the requesting customer
            InvalidStateError: not APPROVED, already paid, or a payment
                is in flight
            InvalidRangeError: new end date not after the current one
            ConflictError: extension window is booked
        """
        rental = self._load(rental_id)
        if rental.customer_id != principal.user_id:
            raise ForbiddenError(f"Rental {rental_id} belongs to another customer")
        transition_rental(rental.status, RentalEvent.RENEW)
        vehicle = await self.directory.get_vehicle(rental.vehicle_id)

        def extend(session: Session):
            lock_vehicle(session, rental.vehicle_id)
            record, current, target = self._apply(session, rental_id, RentalEvent.RENEW)
            if current.is_paid:
                raise InvalidStateError(f"Rental {rental_id} is already paid and cannot be extended")
            if PaymentRepository(session).open_for_rental(rental_id):
                raise InvalidStateError(f"Rental {rental_id} has a payment in progress")
            if new_end_date <= current.end_date:
                raise InvalidRangeError(
                    f"New end date {new_end_date.isoformat()} must be after {current.end_date.isoformat()}"
                )
            self._ensure_free(
                RentalRepository(session), current.vehicle_id, current.end_date, new_end_date, current.id, "renew"
            )
            breakdown = price_breakdown(vehicle.rates, current.start_date, new_end_date, self.days_per_month)
            record.end_date = new_end_date
            record.total_amount = breakdown.total
            record.rate_per_day = vehicle.rates.rent_per_day
            record.rate_per_month = vehicle.rates.rent_per_month
            record.status = target
            record.updated_at = self.clock.now()
            return to_rental(record), current.status

        def locked_extend():
            with self.locks.hold(vehicle_key(rental.vehicle_id)), self.locks.hold(rental_key(rental_id)):
                return run_in_transaction(self.session_factory, extend)

        renewed, previous = await run_in_threadpool(locked_extend)

        self._record_change(renewed, RentalEvent.RENEW, previous, principal.user_id)
        return renewed

    # -- completion -----------------------------------------------------------

    def _complete(self, rental_id: uuid.UUID, actor_id: str) -> Optional[RentalRequest]:
        """Complete one rental if still due; None when another caller got there first"""
        today = self.clock.today()

        def finish(session: Session):
            record = RentalRepository(session).get(rental_id, for_update=True)
            if not record or not is_completion_due(to_rental(record), today, settings.complete_unpaid_after_term):
                return None
            record.status = transition_rental(record.status, RentalEvent.COMPLETE)
            record.updated_at = self.clock.now()
            return to_rental(record)

        with self.locks.hold(rental_key(rental_id)):
            rental = run_in_transaction(self.session_factory, finish)

        if rental is not None:
            record_transition(RentalEvent.COMPLETE.value, rental.status.value)
            log_transition(str(rental.id), RentalEvent.COMPLETE.value, "APPROVED", rental.status.value, actor_id)
        return rental

    def complete_elapsed(self) -> List[RentalRequest]:
        """Periodic sweep: complete every APPROVED rental whose term is over"""
        today = self.clock.today()
        with self.session_factory() as session:
            due: List[RentalRequestRecord] = RentalRepository(session).elapsed_approved(
                today, paid_only=not settings.complete_unpaid_after_term
            )
            due_ids = [r.id for r in due]

        completed = []
        for rental_id in due_ids:
            rental = self._complete(rental_id, actor_id="system")
            if rental is not None:
                completed.append(rental)

        logger.info("Completion sweep finished", extra={"due": len(due_ids), "completed": len(completed)})
        return completed
