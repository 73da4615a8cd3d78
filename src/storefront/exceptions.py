"""Error taxonomy for order/stock reconciliation.

Input problems are reported with ``protean.exceptions.ValidationError``
(``{field: [messages]}``); the classes below cover everything else.
"""


class StorefrontError(Exception):
    """Base class for storefront failures."""


class NotFound(StorefrontError):
    """A referenced product, order, cart or customer does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = str(identifier)
        super().__init__(f"{kind} {identifier} not found")


class ConcurrencyConflict(StorefrontError):
    """A version-checked write lost the race against another writer."""

    def __init__(self, kind: str, identifier: str, expected: int | None = None, actual: int | None = None):
        self.kind = kind
        self.identifier = str(identifier)
        self.expected = expected
        self.actual = actual
        detail = ""
        if expected is not None and actual is not None:
            detail = f" (expected revision {expected}, found {actual})"
        elif expected is not None:
            detail = f" (expected revision {expected})"
        super().__init__(f"Concurrent update on {kind} {identifier}{detail}")


class ReconciliationFailed(StorefrontError):
    """Stock could not be brought in line with an order mutation.

    ``applied`` holds the deltas that did reach the ledger before the failure,
    ``pending`` the planned adjustments that did not.
    """

    def __init__(self, message: str, applied=None, pending=None):
        self.applied = list(applied or [])
        self.pending = list(pending or [])
        super().__init__(message)


class PartialReconciliationFailure(StorefrontError):
    """The order write committed but the stock adjustment did not complete.

    Nothing is rolled back; the payload carries what an operator needs to
    finish the reconciliation by hand.
    """

    def __init__(self, order_id: str, step: str, applied=None, pending=None, cause: Exception | None = None):
        self.order_id = str(order_id)
        self.step = step
        self.applied = list(applied or [])
        self.pending = list(pending or [])
        self.cause = cause
        super().__init__(f"Order {order_id} committed but {step} failed: {cause}")


class PublishFailure(StorefrontError):
    """An event could not be enqueued."""

    def __init__(self, topic: str, cause: Exception | None = None):
        self.topic = topic
        self.cause = cause
        super().__init__(f"Could not publish to {topic}: {cause}")
