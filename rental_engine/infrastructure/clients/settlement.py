"""Settlement provider HTTP client for CARD/UPI/CASH payments"""

import httpx
from decimal import Decimal
from typing import Protocol
from rental_engine.domain.models import PaymentMethod
from rental_engine.domain.exceptions import ProviderError, ProviderRejectedError, ProviderTimeoutError
from rental_engine.config import settings
from rental_engine.infrastructure.observability.metrics import settlement_latency_histogram


class SettlementProvider(Protocol):
    async def settle(self, payment_id: str, method: PaymentMethod, amount: Decimal) -> str: ...


class SettlementClient:
    """Client for the external settlement provider"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.settlement_api_base
        self.timeout = timeout or settings.settlement_timeout_seconds

    async def settle(self, payment_id: str, method: PaymentMethod, amount: Decimal) -> str:
        """
        Charge/collect `amount` with the given method.

        The payment id doubles as the provider idempotency key.

        Returns:
            Provider reference for the settled charge

        Raises:
            ProviderTimeoutError: no answer within the timeout
            ProviderRejectedError: provider declined the charge
            ProviderError: HTTP errors or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with settlement_latency_histogram.labels(method=method.value).time():
                    response = await client.post(
                        f"{self.base_url}/settlements",
                        json={"payment_id": payment_id, "method": method.value, "amount": str(amount)},
                        headers={"Idempotency-Key": payment_id},
                    )
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as e:
                raise ProviderTimeoutError(f"Settlement timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ProviderError(f"Settlement API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ProviderError(f"Settlement API unreachable: {e}") from e
            except ValueError as e:
                raise ProviderError(f"Invalid settlement response: {e}") from e

        status = data.get("status") if isinstance(data, dict) else None
        if status == "approved":
            return str(data.get("reference") or payment_id)
        if status == "declined":
            raise ProviderRejectedError(f"Settlement declined: {data.get('reason', 'unspecified')}")
        raise ProviderError(f"Unexpected settlement status: {status!r}")
