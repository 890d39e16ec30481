"""Domain errors raised by the service layer.

Routes translate these into HTTP responses; each class carries the
status code it maps to so the translation stays a one-liner.
"""


class ServiceError(Exception):
    """Base class for expected, caller-correctable failures."""

    status_code = 400


class ValidationError(ServiceError):
    """Malformed input that got past schema validation."""

    status_code = 400


class AuthorizationError(ServiceError):
    """Acting as another account, or missing admin privilege."""

    status_code = 403


class NotFoundError(ServiceError):
    """Referenced account, product, order or message does not exist."""

    status_code = 404


class InsufficientBalanceError(ServiceError):
    """A non-admin debit larger than the current balance."""

    status_code = 400

    def __init__(self, message: str = "Insufficient points"):
        super().__init__(message)


class InvalidTransferError(ServiceError):
    """Self-transfer or non-positive amount."""

    status_code = 400


class OutOfStockError(ServiceError):
    """Ordered quantity exceeds the remaining stock of a limited product."""

    status_code = 400


class InvalidStatusTransitionError(ServiceError):
    """Order status change not allowed by the transition table."""

    status_code = 409
