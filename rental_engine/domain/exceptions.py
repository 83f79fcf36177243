"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    status_code = 400

    def __init__(self, message: str, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidRangeError(DomainException):
    """Date range is non-chronological, empty or in the past"""

    status_code = 422

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_RANGE")


class ConflictError(DomainException):
    """Requested range overlaps a booking that holds the vehicle"""

    status_code = 409

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFLICT")


class InvalidStateError(DomainException):
    """Operation is not valid for the entity's current lifecycle state"""

    status_code = 409

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_STATE")


class ForbiddenError(DomainException):
    """Caller lacks the required role or ownership"""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message, code="FORBIDDEN")


class AmountMismatchError(DomainException):
    """Submitted payment amount differs from the rental total"""

    status_code = 422

    def __init__(self, submitted: str, expected: str) -> None:
        super().__init__(
            f"Payment amount {submitted} does not match rental total {expected}",
            code="AMOUNT_MISMATCH",
        )


class AlreadyInProgressError(DomainException):
    """Another payment attempt for the same rental is still pending"""

    status_code = 409

    def __init__(self, rental_request_id: str) -> None:
        super().__init__(
            f"A payment for rental {rental_request_id} is already in progress",
            code="ALREADY_IN_PROGRESS",
        )


class NotFoundError(DomainException):
    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found", code=f"{entity.upper()}_NOT_FOUND")


class VehicleUnavailableError(DomainException):
    """Vehicle has been administratively withdrawn from booking"""

    status_code = 409

    def __init__(self, vehicle_id: str) -> None:
        super().__init__(
            f"Vehicle {vehicle_id} is not accepting bookings",
            code="VEHICLE_UNAVAILABLE",
        )


class DirectoryError(DomainException):
    """Vehicle/user directory returned an error or is unavailable"""

    status_code = 503

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DIRECTORY_UNAVAILABLE")


class SettlementError(DomainException):
    """Base for settlement provider failures. Mapped to FAILED payments."""

    reason = "PROVIDER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, code=self.reason)


class ProviderTimeoutError(SettlementError):
    reason = "PROVIDER_TIMEOUT"


class ProviderRejectedError(SettlementError):
    reason = "PROVIDER_REJECTED"


class ProviderError(SettlementError):
    reason = "PROVIDER_ERROR"
