"""Error taxonomy surfaced by the settlement engine.

Rule violations extend protean's ``ValidationError`` and lookups extend
``ObjectNotFoundError``, so callers that already handle protean errors keep
working. Each class carries the HTTP status the API layer maps it to.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class NotFound(ObjectNotFoundError):
    status_code = 404

    def __init__(self, resource: str, identifier) -> None:
        messages = {resource: [f"{resource} '{identifier}' does not exist"]}
        super().__init__(messages)
        self.messages = messages
        self.resource = resource
        self.identifier = identifier


class OrderNotFound(NotFound):
    def __init__(self, order_id) -> None:
        super().__init__("order", order_id)


class AccessError(Exception):
    """Base for authentication and authorization failures."""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.messages = {"access": [message]}


class Unauthorized(AccessError):
    status_code = 401


class Forbidden(AccessError):
    status_code = 403


class _RuleViolation(ValidationError):
    status_code = 400

    def __init__(self, messages: dict) -> None:
        super().__init__(messages)
        self.messages = messages


class Conflict(_RuleViolation):
    status_code = 409


class DuplicateTracking(Conflict):
    def __init__(self, order_id, tracking_number: str) -> None:
        super().__init__(
            {"tracking_number": [f"Tracking number '{tracking_number}' already exists on order '{order_id}'"]}
        )


class DuplicateRefund(Conflict):
    def __init__(self, order_id) -> None:
        super().__init__({"refund": [f"Order '{order_id}' already has a refund"]})


class QuantityExceeded(_RuleViolation):
    status_code = 422

    def __init__(self, order_item_id, requested: int, limit: int) -> None:
        super().__init__(
            {"quantity": [f"Cumulative quantity {requested} exceeds ordered quantity {limit} for item '{order_item_id}'"]}
        )
        self.requested = requested
        self.limit = limit


class InvalidQuery(_RuleViolation):
    status_code = 400


class ImmutableStateViolation(_RuleViolation):
    status_code = 422


DOMAIN_ERRORS = (
    NotFound,
    Unauthorized,
    Forbidden,
    Conflict,
    QuantityExceeded,
    InvalidQuery,
    ImmutableStateViolation,
)
