"""Error codes and exception hierarchy for the customer repository."""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable machine-readable error categories."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CustomerServiceError(Exception):
    """Base exception for all customer repository errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        field: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.field = field


class InvalidCustomerError(CustomerServiceError):
    """Raised when input is malformed or out of range."""

    code = ErrorCode.VALIDATION_ERROR


class CustomerNotFoundError(CustomerServiceError):
    """Raised when a referenced customer does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, customer_id: str):
        super().__init__(
            f"Customer with ID '{customer_id}' not found",
            reason="NOT_FOUND",
            field="id",
        )
        self.customer_id = customer_id


class DuplicateCustomerError(CustomerServiceError):
    """Raised when a uniqueness constraint would be violated."""

    code = ErrorCode.DUPLICATE_ERROR

    def __init__(self, field: str, value: str):
        # Messages are logged unmasked, so they never carry the value
        super().__init__(
            f"A customer with this {field} already exists",
            reason="DUPLICATE_ERROR",
            field=field,
        )
        self.value = value
