"""Ordering exceptions.

Validation failures extend Protean's ``ValidationError`` and carry a
``{field: [messages]}`` payload. Lookups extend ``ObjectNotFoundError``.
Business-rule rejections extend ``InvalidOperationError`` so callers can
report the specific rule that was violated.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError


class EmptyCartError(ValidationError):
    """Checkout was attempted with no line items."""


class InvalidAddressError(ValidationError):
    """The shipping address is missing required fields."""


class TransitionError(ValidationError):
    """The requested status change is not an edge of the order state machine."""


class OrderNotFoundError(ObjectNotFoundError):
    """No order matches the given identifier or order number."""


class ReturnNotFoundError(ObjectNotFoundError):
    """No return request matches the given return id."""


class ReturnWindowExpiredError(InvalidOperationError):
    """The order was delivered outside the return window."""


class IneligibleStatusError(InvalidOperationError):
    """The order's status does not allow a return to be filed."""


class ConflictError(InvalidOperationError):
    """The order changed since the caller last read it. Re-read and retry."""
