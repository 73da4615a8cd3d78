"""Order state machine: what an order mutation means for stock.

Statuses split into two classes: stock-holding (everything but ``Cancelled``)
and stock-free (``Cancelled``). The only facts that matter for inventory are
the holding class before and after, whether the product changed and whether
the quantity changed. ``_TRANSITION_TABLE`` maps those four facts to a stock
action; ``plan`` turns the action into signed adjustments with reason codes.

Creation is a transition from "nothing" and deletion a transition to the
implicit terminal "removed" state; both are handled before the table lookup.
"""

from dataclasses import dataclass
from enum import Enum

from storefront.ordering.order.order import OrderSnapshot, OrderStatus


class StockReason(Enum):
    """Closed taxonomy of why stock moved. Values are the wire tags."""

    ORDER_CREATED_FROM_CART = "order-created-from-cart"
    ORDER_CREATED_SUBMITTED = "order-created-Submitted"
    ORDER_CREATED_PROCESSING = "order-created-Processing"
    ORDER_CREATED_PROCESSED = "order-created-PROCESSED"
    ORDER_CREATED_SHIPPED = "order-created-Shipped"
    ORDER_CREATED_DELIVERED = "order-created-Delivered"
    ORDER_STATUS_REACTIVATED = "order-status-reactivated"
    ORDER_CANCELLED = "order-cancelled"
    ORDER_EDIT_PRODUCT_CHANGE_RESTORE = "order-edit-product-change-restore"
    ORDER_EDIT_PRODUCT_CHANGE_DEDUCT = "order-edit-product-change-deduct"
    ORDER_EDIT_QUANTITY_CHANGE = "order-edit-quantity-change"
    PAYMENT_PROOF_UPLOADED = "payment-proof-uploaded"
    ORDER_DELETED = "order-deleted"


class MutationCause(Enum):
    """Which entry point is mutating the order."""

    CART_CHECKOUT = "cart-checkout"
    ADMIN_CREATE = "admin-create"
    ADMIN_EDIT = "admin-edit"
    STATUS_UPDATE = "status-update"
    PAYMENT_PROOF = "payment-proof"
    DELETE = "delete"


class StockAction(Enum):
    NONE = "none"
    DEDUCT_NEW = "deduct-new"
    RESTORE_OLD = "restore-old"
    ADJUST_QUANTITY = "adjust-quantity"
    SWAP_PRODUCT = "swap-product"


# (old holds stock, new holds stock, product changed, quantity changed) → action
_TRANSITION_TABLE = {
    (False, False, False, False): StockAction.NONE,
    (False, False, False, True): StockAction.NONE,
    (False, False, True, False): StockAction.NONE,
    (False, False, True, True): StockAction.NONE,
    (False, True, False, False): StockAction.DEDUCT_NEW,
    (False, True, False, True): StockAction.DEDUCT_NEW,
    (False, True, True, False): StockAction.DEDUCT_NEW,
    (False, True, True, True): StockAction.DEDUCT_NEW,
    (True, False, False, False): StockAction.RESTORE_OLD,
    (True, False, False, True): StockAction.RESTORE_OLD,
    (True, False, True, False): StockAction.RESTORE_OLD,
    (True, False, True, True): StockAction.RESTORE_OLD,
    (True, True, False, False): StockAction.NONE,
    (True, True, False, True): StockAction.ADJUST_QUANTITY,
    (True, True, True, False): StockAction.SWAP_PRODUCT,
    (True, True, True, True): StockAction.SWAP_PRODUCT,
}

_CREATED_REASONS = {
    OrderStatus.SUBMITTED: StockReason.ORDER_CREATED_SUBMITTED,
    OrderStatus.PROCESSING: StockReason.ORDER_CREATED_PROCESSING,
    OrderStatus.PROCESSED: StockReason.ORDER_CREATED_PROCESSED,
    OrderStatus.SHIPPED: StockReason.ORDER_CREATED_SHIPPED,
    OrderStatus.DELIVERED: StockReason.ORDER_CREATED_DELIVERED,
}


@dataclass(frozen=True)
class PlannedAdjustment:
    """One signed stock movement the engine must apply."""

    product_id: str
    delta: int
    reason: StockReason


def classify(old: OrderSnapshot, new: OrderSnapshot) -> StockAction:
    key = (
        old.holds_stock,
        new.holds_stock,
        old.product_id != new.product_id,
        old.quantity != new.quantity,
    )
    return _TRANSITION_TABLE[key]


def _creation_reason(status: OrderStatus, cause: MutationCause) -> StockReason:
    if cause is MutationCause.CART_CHECKOUT:
        return StockReason.ORDER_CREATED_FROM_CART
    return _CREATED_REASONS[status]


def plan(
    old: OrderSnapshot | None,
    new: OrderSnapshot | None,
    cause: MutationCause = MutationCause.ADMIN_EDIT,
) -> list[PlannedAdjustment]:
    """Return the stock adjustments implied by moving an order from ``old`` to ``new``.

    ``old`` is ``None`` for a newly created order, ``new`` is ``None`` for a
    deleted one. The list has zero, one or two entries; for a product swap the
    restore of the old product comes before the deduction from the new one.
    """
    if old is None and new is None:
        raise ValueError("An order mutation needs a before or an after snapshot")

    if old is None:
        if not new.holds_stock:
            return []
        return [PlannedAdjustment(new.product_id, -new.quantity, _creation_reason(new.status, cause))]

    if new is None:
        if not old.holds_stock:
            return []
        return [PlannedAdjustment(old.product_id, old.quantity, StockReason.ORDER_DELETED)]

    action = classify(old, new)

    if action is StockAction.DEDUCT_NEW:
        reason = (
            StockReason.PAYMENT_PROOF_UPLOADED
            if cause is MutationCause.PAYMENT_PROOF
            else StockReason.ORDER_STATUS_REACTIVATED
        )
        return [PlannedAdjustment(new.product_id, -new.quantity, reason)]

    if action is StockAction.RESTORE_OLD:
        return [PlannedAdjustment(old.product_id, old.quantity, StockReason.ORDER_CANCELLED)]

    if action is StockAction.ADJUST_QUANTITY:
        return [
            PlannedAdjustment(
                new.product_id,
                -(new.quantity - old.quantity),
                StockReason.ORDER_EDIT_QUANTITY_CHANGE,
            )
        ]

    if action is StockAction.SWAP_PRODUCT:
        return [
            PlannedAdjustment(old.product_id, old.quantity, StockReason.ORDER_EDIT_PRODUCT_CHANGE_RESTORE),
            PlannedAdjustment(new.product_id, -new.quantity, StockReason.ORDER_EDIT_PRODUCT_CHANGE_DEDUCT),
        ]

    return []
