"""Vehicle/store/user directory clients"""

import httpx
from typing import Dict, Optional, Protocol
from rental_engine.domain.models import User, Vehicle
from rental_engine.domain.exceptions import DirectoryError, NotFoundError
from rental_engine.utils.money import to_money
from rental_engine.config import settings


class VehicleDirectory(Protocol):
    async def get_vehicle(self, vehicle_id: str) -> Vehicle: ...

    async def get_user(self, user_id: str) -> User: ...


class DirectoryClient:
    """Client for the external vehicle/user directory API"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.directory_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _get(self, path: str, entity: str, entity_id: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}{path}")
                if response.status_code == 404:
                    raise NotFoundError(entity, entity_id)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as e:
                raise DirectoryError(f"Directory API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise DirectoryError(f"Directory API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise DirectoryError(f"Directory API unreachable: {e}") from e
            except ValueError as e:
                raise DirectoryError(f"Invalid directory response: {e}") from e

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        """
        Fetch the vehicle with its rates and owning store.

        Raises:
            NotFoundError: unknown vehicle
            DirectoryError: on timeout, HTTP errors, or invalid response
        """
        data = await self._get(f"/vehicles/{vehicle_id}", "Vehicle", vehicle_id)
        try:
            vehicle = Vehicle(
                vehicle_id=str(data["vehicle_id"]),
                store_id=str(data["store_id"]),
                owner_id=str(data["owner_id"]),
                name=data["name"],
                rent_per_day=to_money(str(data["rent_per_day"])),
                rent_per_month=to_money(str(data["rent_per_month"])),
                is_available=bool(data.get("is_available", True)),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise DirectoryError(f"Invalid vehicle data from directory: {e}") from e
        if vehicle.rent_per_day < 0 or vehicle.rent_per_month < 0:
            raise DirectoryError(f"Negative rent rate for vehicle {vehicle_id} from directory")
        return vehicle

    async def get_user(self, user_id: str) -> User:
        data = await self._get(f"/users/{user_id}", "User", user_id)
        try:
            return User(user_id=str(data["user_id"]), name=data["name"], email=data.get("email"))
        except (KeyError, TypeError) as e:
            raise DirectoryError(f"Invalid user data from directory: {e}") from e


class InMemoryDirectory:
    """Directory backed by dicts, for tests and local runs"""

    def __init__(
        self,
        vehicles: Optional[Dict[str, Vehicle]] = None,
        users: Optional[Dict[str, User]] = None,
    ):
        self.vehicles = dict(vehicles or {})
        self.users = dict(users or {})

    def add_vehicle(self, vehicle: Vehicle) -> None:
        self.vehicles[vehicle.vehicle_id] = vehicle

    def add_user(self, user: User) -> None:
        self.users[user.user_id] = user

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        try:
            return self.vehicles[vehicle_id]
        except KeyError:
            raise NotFoundError("Vehicle", vehicle_id) from None

    async def get_user(self, user_id: str) -> User:
        try:
            return self.users[user_id]
        except KeyError:
            raise NotFoundError("User", user_id) from None
