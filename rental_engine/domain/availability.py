"""Booking overlap rules over a read view of rental requests"""

import uuid
from datetime import date
from typing import Iterable, List, Optional

from rental_engine.domain.exceptions import InvalidRangeError
from rental_engine.domain.models import BLOCKING_STATUSES, RentalRequest
from rental_engine.utils.date_utils import ranges_overlap


def validate_range(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise InvalidRangeError(
            f"Start date {start_date.isoformat()} must be before end date {end_date.isoformat()}"
        )


def find_conflicts(
    requests: Iterable[RentalRequest],
    vehicle_id: str,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[uuid.UUID] = None,
) -> List[RentalRequest]:
    """
    Requests that hold `vehicle_id` during [start_date, end_date).

    Only PENDING and APPROVED requests block; CANCELLED and COMPLETED
    never do. `exclude_request_id` drops a request's own reservation
    (used when extending it).
    """
    validate_range(start_date, end_date)
    return [
        r
        for r in requests
        if r.vehicle_id == vehicle_id
        and r.status in BLOCKING_STATUSES
        and r.id != exclude_request_id
        and ranges_overlap(r.start_date, r.end_date, start_date, end_date)
    ]


def is_available(
    requests: Iterable[RentalRequest],
    vehicle_id: str,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[uuid.UUID] = None,
) -> bool:
    return not find_conflicts(requests, vehicle_id, start_date, end_date, exclude_request_id)
