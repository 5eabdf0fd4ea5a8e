from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    TRANSFER_NOT_FOUND = ErrorDefinition(
        "TRANSFER_NOT_FOUND",
        "Transfer request not found",
        status.HTTP_404_NOT_FOUND,
    )
    SHIPMENT_NOT_FOUND = ErrorDefinition(
        "SHIPMENT_NOT_FOUND",
        "Transfer request has not been shipped",
        status.HTTP_404_NOT_FOUND,
    )
    RECEIPT_ISSUE_NOT_FOUND = ErrorDefinition(
        "RECEIPT_ISSUE_NOT_FOUND",
        "Receipt issue not found",
        status.HTTP_404_NOT_FOUND,
    )
    RECEIPT_ISSUE_ALREADY_RESOLVED = ErrorDefinition(
        "RECEIPT_ISSUE_ALREADY_RESOLVED",
        "Receipt issue is already resolved",
        status.HTTP_409_CONFLICT,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Transition not permitted from the current status",
        status.HTTP_409_CONFLICT,
    )
    CONCURRENCY_CONFLICT = ErrorDefinition(
        "CONCURRENCY_CONFLICT",
        "This request changed, please refresh",
        status.HTTP_409_CONFLICT,
    )
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Insufficient stock at source location",
        status.HTTP_409_CONFLICT,
    )
    STOCK_CONTENTION = ErrorDefinition(
        "STOCK_CONTENTION",
        "Stock changed concurrently, please retry",
        status.HTTP_409_CONFLICT,
    )
    QUANTITY_CHAIN_VIOLATION = ErrorDefinition(
        "QUANTITY_CHAIN_VIOLATION",
        "Line quantities violate received <= shipped <= approved <= requested",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REQUIRED = ErrorDefinition(
        "IDEMPOTENCY_KEY_REQUIRED",
        "Idempotency key required",
        status.HTTP_400_BAD_REQUEST,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class TransferNotFoundError(AppError):
    def __init__(self, request_id: str):
        super().__init__(ErrorCatalog.TRANSFER_NOT_FOUND, details={"request_id": str(request_id)})


class ValidationFailedError(AppError):
    """Raised with a structured ``ValidationResult`` so callers can point at the offending line."""

    def __init__(self, result):
        self.result = result
        super().__init__(ErrorCatalog.VALIDATION_ERROR, details=result.as_dict())


class InvalidTransitionError(AppError):
    def __init__(self, from_status: str, to_status: str, message: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        details = {"from_status": from_status, "to_status": to_status}
        if message:
            details["message"] = message
        super().__init__(ErrorCatalog.INVALID_TRANSITION, details=details)


class ConcurrencyConflictError(AppError):
    def __init__(self, request_id: str, *, expected_version: int | None = None, actual_version: int | None = None):
        super().__init__(
            ErrorCatalog.CONCURRENCY_CONFLICT,
            details={
                "request_id": str(request_id),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class InsufficientStockError(AppError):
    def __init__(self, shortages: list[dict]):
        self.shortages = shortages
        super().__init__(ErrorCatalog.INSUFFICIENT_STOCK, details={"lines": shortages})


class QuantityChainViolation(AppError):
    def __init__(self, line_no: int, quantities: dict):
        super().__init__(
            ErrorCatalog.QUANTITY_CHAIN_VIOLATION,
            details={"line_no": line_no, **quantities},
        )


class IdempotencyConflictError(AppError):
    def __init__(self, token: str):
        super().__init__(
            ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD,
            details={"idempotency_token": token},
        )


class ShipmentNotFoundError(AppError):
    def __init__(self, request_id: str):
        super().__init__(ErrorCatalog.SHIPMENT_NOT_FOUND, details={"request_id": str(request_id)})


class ReceiptIssueNotFoundError(AppError):
    def __init__(self, request_id: str, issue_id: str):
        super().__init__(
            ErrorCatalog.RECEIPT_ISSUE_NOT_FOUND,
            details={"request_id": str(request_id), "issue_id": str(issue_id)},
        )


class ReceiptIssueAlreadyResolvedError(AppError):
    def __init__(self, issue_id: str, resolved_by: str | None):
        super().__init__(
            ErrorCatalog.RECEIPT_ISSUE_ALREADY_RESOLVED,
            details={"issue_id": str(issue_id), "resolved_by": resolved_by},
        )
