"""Integration tests for API endpoints"""

import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient


def _book(client: TestClient, headers: dict, start: str = "2024-02-01", end: str = "2024-02-05"):
    return client.post(
        "/v1/rentals",
        json={"vehicle_id": "veh_swift", "start_date": start, "end_date": end},
        headers=headers,
    )


@pytest.fixture
def approved_id(client: TestClient, customer_headers, owner_headers) -> str:
    rental_id = _book(client, customer_headers).json()["rental_id"]
    response = client.post(f"/v1/rentals/{rental_id}/approve", headers=owner_headers)
    assert response.status_code == 200
    return rental_id


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "rental-engine"}


def test_metrics_endpoint(client: TestClient, customer_headers):
    """Test Prometheus metrics endpoint"""
    _book(client, customer_headers)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "rental_transitions_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_create_rental(client: TestClient, customer_headers):
    """Test POST /v1/rentals prices and stores a PENDING request"""
    response = _book(client, customer_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["total_amount"] == "200.00"
    assert data["customer_id"] == "cust_anita"
    assert data["paid"] is False


def test_identity_headers_required(client: TestClient):
    response = _book(client, {})
    assert response.status_code == 401

    response = _book(client, {"X-User-Id": "cust_anita", "X-User-Role": "ADMIN"})
    assert response.status_code == 401


def test_create_rental_invalid_range(client: TestClient, customer_headers):
    response = _book(client, customer_headers, start="2024-02-05", end="2024-02-01")
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_RANGE"


def test_create_rental_unknown_vehicle(client: TestClient, customer_headers):
    response = client.post(
        "/v1/rentals",
        json={"vehicle_id": "veh_missing", "start_date": "2024-02-01", "end_date": "2024-02-05"},
        headers=customer_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "VEHICLE_NOT_FOUND"


def test_overlapping_booking_conflicts(client: TestClient, customer_headers, approved_id):
    response = _book(client, {"X-User-Id": "cust_john", "X-User-Role": "CUSTOMER"}, "2024-02-03", "2024-02-06")
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_availability_and_quote(client: TestClient, approved_id):
    response = client.get(
        "/v1/vehicles/veh_swift/availability",
        params={"start_date": "2024-02-03", "end_date": "2024-02-10"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["available"] is False
    assert data["blocked"] == [{"start_date": "2024-02-01", "end_date": "2024-02-05"}]

    free = client.get(
        "/v1/vehicles/veh_swift/availability",
        params={"start_date": "2024-02-05", "end_date": "2024-02-10"},
    )
    assert free.json()["available"] is True

    quote = client.get(
        "/v1/vehicles/veh_swift/quote",
        params={"start_date": "2024-01-01", "end_date": "2024-02-10"},
    )
    assert quote.status_code == 200
    assert quote.json()["total"] == "1700.00"
    assert quote.json()["months"] == 1


def test_owner_decisions(client: TestClient, customer_headers, owner_headers):
    rental_id = _book(client, customer_headers).json()["rental_id"]

    forbidden = client.post(f"/v1/rentals/{rental_id}/approve", headers=customer_headers)
    assert forbidden.status_code == 403

    rejected = client.post(f"/v1/rentals/{rental_id}/reject", headers=owner_headers)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "CANCELLED"

    again = client.post(f"/v1/rentals/{rental_id}/approve", headers=owner_headers)
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_STATE"


def test_withdraw(client: TestClient, customer_headers):
    rental_id = _book(client, customer_headers).json()["rental_id"]
    response = client.post(f"/v1/rentals/{rental_id}/withdraw", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


def test_renew(client: TestClient, customer_headers, approved_id):
    response = client.post(
        f"/v1/rentals/{approved_id}/renew",
        json={"new_end_date": "2024-03-05"},
        headers=customer_headers,
    )
    assert response.status_code == 200
    assert response.json()["end_date"] == "2024-03-05"
    assert response.json()["total_amount"] == "1350.00"


def test_listings(client: TestClient, customer_headers, owner_headers, approved_id):
    mine = client.get("/v1/rentals", params={"customer_id": "cust_anita"}, headers=customer_headers)
    assert [r["rental_id"] for r in mine.json()["rentals"]] == [approved_id]

    theirs = client.get("/v1/rentals", params={"customer_id": "cust_john"}, headers=customer_headers)
    assert theirs.status_code == 403

    store = client.get("/v1/vehicles/veh_swift/rentals", headers=owner_headers)
    assert [r["rental_id"] for r in store.json()["rentals"]] == [approved_id]

    single = client.get(f"/v1/rentals/{approved_id}", headers=owner_headers)
    assert single.json()["status"] == "APPROVED"


def test_payment_amount_mismatch(client: TestClient, customer_headers, approved_id):
    response = client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "UPI", "amount": "199.00"},
        headers=customer_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "AMOUNT_MISMATCH"

    rental = client.get(f"/v1/rentals/{approved_id}", headers=customer_headers).json()
    assert rental["status"] == "APPROVED"
    assert rental["paid"] is False


def test_payment_amount_with_extra_precision(client: TestClient, customer_headers, approved_id):
    response = client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "MOCK", "amount": "200.004"},
        headers=customer_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "AMOUNT_MISMATCH"
    assert client.get(f"/v1/rentals/{approved_id}", headers=customer_headers).json()["paid"] is False


def test_payment_and_receipt(client: TestClient, customer_headers, owner_headers, approved_id):
    """Pay, then fetch the structured receipt and the PDF"""
    response = client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "CARD", "amount": "200.00"},
        headers=customer_headers,
    )
    assert response.status_code == 201
    payment = response.json()
    assert payment["status"] == "SUCCESS"
    assert payment["receipt_url"].endswith(f"/v1/payments/{payment['payment_id']}/receipt.pdf")

    again = client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "CARD", "amount": "200.00"},
        headers=customer_headers,
    )
    assert again.status_code == 409

    receipt = client.get(f"/v1/payments/{payment['payment_id']}/receipt", headers=owner_headers)
    assert receipt.status_code == 200
    assert receipt.json()["total"] == "200.00"
    assert receipt.json()["payment_id"] == payment["payment_id"]

    pdf = client.get(f"/v1/payments/{payment['payment_id']}/receipt.pdf", headers=customer_headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    again_pdf = client.get(f"/v1/payments/{payment['payment_id']}/receipt.pdf", headers=customer_headers)
    assert again_pdf.content == pdf.content

    listed = client.get(f"/v1/rentals/{approved_id}/payments", headers=customer_headers)
    assert [p["status"] for p in listed.json()["payments"]] == ["SUCCESS"]


def test_failed_payment_returned_not_raised(client: TestClient, customer_headers, approved_id, settlement):
    settlement.outcome = "declined"
    response = client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "CARD", "amount": "200.00"},
        headers=customer_headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "FAILED"
    assert response.json()["failure_reason"] == "PROVIDER_REJECTED"

    receipt = client.get(f"/v1/payments/{response.json()['payment_id']}/receipt", headers=customer_headers)
    assert receipt.status_code == 409


def test_completion_sweep_endpoint(client: TestClient, customer_headers, approved_id, clock):
    client.post(
        f"/v1/rentals/{approved_id}/payments",
        json={"method": "MOCK", "amount": "200.00"},
        headers=customer_headers,
    )
    clock.advance_to(datetime(2024, 2, 6, tzinfo=timezone.utc))

    response = client.post("/internal/rentals/complete-elapsed")
    assert response.status_code == 200
    assert response.json() == {"completed": [approved_id]}
