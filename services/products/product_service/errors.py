"""
Failure types raised by the Products service core.

Route handlers translate these into HTTP status codes; nothing below the
API layer knows about HTTP.
"""


class MarketplaceError(Exception):
    """Base class for every failure surfaced by the order workflow."""


class NotFoundError(MarketplaceError):
    """A referenced category, product, order or payment does not exist."""


class ValidationFailure(MarketplaceError):
    """Input reached the core in a shape it cannot act on."""


class InsufficientStockError(ValidationFailure):
    def __init__(self, product_id: str, requested: int):
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Insufficient stock for product '{product_id}' (requested {requested})")


class InvalidStatusTransition(ValidationFailure):
    def __init__(self, old_status: str, new_status: str):
        self.old_status = old_status
        self.new_status = new_status
        super().__init__(f"Invalid status transition: {old_status} -> {new_status}")


class ConcurrencyConflict(MarketplaceError):
    """The row changed between read and conditional write."""


class PersistenceFailure(MarketplaceError):
    """The store rejected or could not execute a statement."""
