"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from rental_engine.domain.clock import Clock, SystemClock
from rental_engine.domain.models import Principal, Role
from rental_engine.infrastructure.clients.directory import DirectoryClient, VehicleDirectory
from rental_engine.infrastructure.clients.settlement import SettlementClient, SettlementProvider
from rental_engine.infrastructure.database.session import get_session_factory
from rental_engine.services.payments import PaymentService
from rental_engine.services.rentals import RentalService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_principal(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_store_ids: str | None = Header(None),
) -> Principal:
    """Caller identity as forwarded by the authentication gateway"""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing identity headers")
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Role header")

    store_ids = frozenset(s.strip() for s in (x_store_ids or "").split(",") if s.strip())
    return Principal(user_id=x_user_id, role=role, store_ids=store_ids)


def get_directory() -> VehicleDirectory:
    """Provide vehicle/user directory client instance"""
    return DirectoryClient()


def get_settlement_provider() -> SettlementProvider:
    """Provide settlement provider client instance"""
    return SettlementClient()


def get_clock() -> Clock:
    return SystemClock()


def get_rental_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    directory: VehicleDirectory = Depends(get_directory),
    clock: Clock = Depends(get_clock),
) -> RentalService:
    return RentalService(session_factory=session_factory, directory=directory, clock=clock)


def get_payment_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    directory: VehicleDirectory = Depends(get_directory),
    settlement: SettlementProvider = Depends(get_settlement_provider),
    clock: Clock = Depends(get_clock),
) -> PaymentService:
    return PaymentService(
        session_factory=session_factory,
        directory=directory,
        settlement=settlement,
        clock=clock,
    )
