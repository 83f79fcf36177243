"""Unit tests for date-range overlap and availability"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from rental_engine.domain.availability import find_conflicts, is_available, validate_range
from rental_engine.domain.exceptions import InvalidRangeError
from rental_engine.domain.models import RentalRequest, RentalStatus
from rental_engine.utils.date_utils import ranges_overlap


def _rental(start: date, end: date, status: RentalStatus = RentalStatus.APPROVED, vehicle_id: str = "veh_1"):
    return RentalRequest(
        id=uuid.uuid4(),
        vehicle_id=vehicle_id,
        store_id="store_1",
        customer_id="cust_1",
        start_date=start,
        end_date=end,
        total_amount=Decimal("100.00"),
        status=status,
    )


def test_back_to_back_ranges_do_not_overlap():
    """End date is exclusive: a return on day X frees the vehicle for day X"""
    assert not ranges_overlap(date(2024, 2, 1), date(2024, 2, 5), date(2024, 2, 5), date(2024, 2, 8))
    assert not ranges_overlap(date(2024, 2, 5), date(2024, 2, 8), date(2024, 2, 1), date(2024, 2, 5))


def test_partial_overlap():
    assert ranges_overlap(date(2024, 2, 1), date(2024, 2, 5), date(2024, 2, 3), date(2024, 2, 6))


def test_containment_overlaps():
    assert ranges_overlap(date(2024, 2, 1), date(2024, 2, 10), date(2024, 2, 3), date(2024, 2, 4))


def test_pending_and_approved_block():
    held = [
        _rental(date(2024, 2, 1), date(2024, 2, 5), RentalStatus.PENDING),
        _rental(date(2024, 2, 10), date(2024, 2, 12), RentalStatus.APPROVED),
    ]
    assert not is_available(held, "veh_1", date(2024, 2, 4), date(2024, 2, 6))
    assert not is_available(held, "veh_1", date(2024, 2, 11), date(2024, 2, 13))
    assert is_available(held, "veh_1", date(2024, 2, 5), date(2024, 2, 10))


def test_cancelled_and_completed_do_not_block():
    held = [
        _rental(date(2024, 2, 1), date(2024, 2, 5), RentalStatus.CANCELLED),
        _rental(date(2024, 2, 1), date(2024, 2, 5), RentalStatus.COMPLETED),
    ]
    assert is_available(held, "veh_1", date(2024, 2, 1), date(2024, 2, 5))


def test_other_vehicles_ignored():
    held = [_rental(date(2024, 2, 1), date(2024, 2, 5), vehicle_id="veh_2")]
    assert is_available(held, "veh_1", date(2024, 2, 1), date(2024, 2, 5))


def test_excluded_request_does_not_conflict_with_itself():
    own = _rental(date(2024, 2, 1), date(2024, 2, 5))
    assert find_conflicts([own], "veh_1", date(2024, 2, 1), date(2024, 2, 8)) == [own]
    assert find_conflicts([own], "veh_1", date(2024, 2, 1), date(2024, 2, 8), exclude_request_id=own.id) == []


def test_validate_range_rejects_empty():
    with pytest.raises(InvalidRangeError):
        validate_range(date(2024, 2, 1), date(2024, 2, 1))
