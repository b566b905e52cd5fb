from dataclasses import dataclass


@dataclass(eq=False)
class OrderServiceError(Exception):
    code: str
    reason: str
    message: str
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.code}:{self.reason}:{self.message}"


class ValidationError(OrderServiceError):
    def __init__(self, reason: str, message: str = "Invalid input") -> None:
        super().__init__(code="VALIDATION", reason=reason, message=message)


class NotFound(OrderServiceError):
    def __init__(self, reason: str = "order_not_found", message: str = "Order not found") -> None:
        super().__init__(code="NOT_FOUND", reason=reason, message=message)


class Forbidden(OrderServiceError):
    def __init__(self, reason: str, message: str = "Not allowed") -> None:
        super().__init__(code="FORBIDDEN", reason=reason, message=message)


class InvalidTransition(OrderServiceError):
    def __init__(self, reason: str, message: str) -> None:
        super().__init__(code="INVALID_TRANSITION", reason=reason, message=message)


class StorageFailure(OrderServiceError):
    def __init__(self, reason: str = "storage_unavailable", message: str = "Storage failure") -> None:
        super().__init__(code="STORAGE_FAILURE", reason=reason, message=message, retryable=True)
