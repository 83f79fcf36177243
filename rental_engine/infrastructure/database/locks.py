"""Vehicle- and rental-scoped write locks for the admission critical sections"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from rental_engine.infrastructure.database.models import VehicleLock


class KeyedLocks:
    """
    One in-process mutex per key.

    Serializes threads of this process before they reach the database;
    the row locks below cover other processes.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


process_locks = KeyedLocks()


def _insert_ignore(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(VehicleLock).on_conflict_do_nothing(index_elements=["vehicle_id"])
    if dialect == "sqlite":
        return sqlite.insert(VehicleLock).on_conflict_do_nothing(index_elements=["vehicle_id"])
    raise NotImplementedError(f"Unsupported dialect for vehicle locks: {dialect}")


def lock_vehicle(session: Session, vehicle_id: str) -> None:
    """
    Take the admission write-lock for a vehicle in the current transaction.

    The lock row is created on first use. On PostgreSQL the FOR UPDATE
    row lock is held until commit; SQLite takes its database write lock
    on the UPDATE, which has the same effect for a single file.
    """
    session.execute(_insert_ignore(session).values(vehicle_id=vehicle_id, admissions=0))
    session.execute(
        select(VehicleLock.vehicle_id).where(VehicleLock.vehicle_id == vehicle_id).with_for_update()
    )
    session.execute(
        update(VehicleLock)
        .where(VehicleLock.vehicle_id == vehicle_id)
        .values(admissions=VehicleLock.admissions + 1)
    )
