"""Domain errors raised by the ingestion and reconciliation services.

Every error carries the HTTP status the API layer maps it to and a
user-facing message. Routes never catch these; the exception handler
registered in ``orderhub.main`` turns them into JSON responses.
"""

from typing import Optional


class OrderHubError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadPayload(OrderHubError):
    """Raised when an inbound webhook body cannot be turned into an order."""

    status_code = 400

    def __init__(self, message: str, platform: Optional[str] = None):
        self.platform = platform
        super().__init__(message)


class SignatureInvalid(OrderHubError):
    """Raised when a webhook signature is missing or does not match."""

    status_code = 401

    def __init__(self, platform: str, reason: str = "Invalid webhook signature"):
        self.platform = platform
        super().__init__(reason)


class NotFound(OrderHubError):
    """Raised when a referenced record does not exist."""

    status_code = 404

    def __init__(self, entity: str, key=None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found")


class InvalidState(OrderHubError):
    """Raised when an operation is not allowed from the record's current state."""

    status_code = 409

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(message)


class MappingIncomplete(OrderHubError):
    """Raised when acceptance is blocked by unmapped order lines."""

    status_code = 409

    def __init__(self, unmapped_count: int):
        self.unmapped_count = unmapped_count
        super().__init__(
            f"Cannot accept order: {unmapped_count} items are not mapped to POS items"
        )


class ConflictingMapping(OrderHubError):
    """Raised when a mapping or aggregator already exists for the same natural key."""

    status_code = 409


class AcceptanceFailed(OrderHubError):
    """Raised when materialization could not complete.

    The aggregator order has already been moved to ``failed`` with the
    same message when this is raised.
    """

    status_code = 422

    def __init__(self, order_id: int, message: str):
        self.order_id = order_id
        super().__init__(message)
