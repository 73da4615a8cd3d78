"""Order aggregate (CQRS): one product line bought by one customer.

Status Machine (6 states, no transition guard):
    Submitted → Processing → PROCESSED → Shipped → Delivered
    any → Cancelled, Cancelled → any (admin reactivation)

Every status except ``Cancelled`` holds stock: while an order sits in one of
them, its quantity is deducted from the product. Stock consequences of a
change are worked out by ``ordering.order.state_machine``;
the aggregate itself only keeps its own fields consistent.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


class OrderStatus(Enum):
    SUBMITTED = "Submitted"
    PROCESSING = "Processing"
    PROCESSED = "PROCESSED"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @property
    def holds_stock(self) -> bool:
        return self is not OrderStatus.CANCELLED

    @classmethod
    def parse(cls, value) -> "OrderStatus":
        """Accept an enum member or its value; unknown values are a validation error."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError({"status": [f"Unknown status '{value}'. Expected one of: {allowed}"]}) from None


@dataclass(frozen=True)
class OrderSnapshot:
    """The stock-relevant part of an order at one point in time."""

    order_id: str
    product_id: str
    quantity: int
    status: OrderStatus

    @property
    def holds_stock(self) -> bool:
        return self.status.holds_stock


def _validate_quantity(quantity):
    if quantity is None or int(quantity) < 1:
        raise ValidationError({"quantity": ["Quantity must be at least 1"]})
    return int(quantity)


@storefront.aggregate
class Order:
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    product_id = Identifier(required=True)
    product_name = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.SUBMITTED.value)
    payment_proof = String(max_length=500)
    order_date = DateTime()
    updated_at = DateTime()

    @classmethod
    def place(cls, customer_id, customer_name, product, quantity, status=OrderStatus.SUBMITTED, order_date=None):
        """Open an order for ``product``, snapshotting its current price."""
        quantity = _validate_quantity(quantity)
        status = OrderStatus.parse(status)
        now = datetime.now(UTC)
        if order_date is not None and order_date.tzinfo is None:
            order_date = order_date.replace(tzinfo=UTC)
        order = cls(
            customer_id=str(customer_id),
            customer_name=customer_name,
            product_id=str(product.id),
            product_name=product.name,
            quantity=quantity,
            unit_price=product.price,
            status=status.value,
            order_date=order_date or now,
            updated_at=now,
        )
        order._recalculate_total()
        return order

    def _recalculate_total(self):
        self.total_price = round(self.quantity * self.unit_price, 2)

    @property
    def revision(self) -> int:
        return self._version

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    def snapshot(self) -> OrderSnapshot:
        return OrderSnapshot(
            order_id=str(self.id),
            product_id=str(self.product_id),
            quantity=self.quantity,
            status=self.status_enum,
        )

    def revise(self, product=None, quantity=None, status=None):
        """Apply an edit. A new product re-snapshots the unit price."""
        if product is not None and str(product.id) != str(self.product_id):
            self.product_id = str(product.id)
            self.product_name = product.name
            self.unit_price = product.price
        if quantity is not None:
            self.quantity = _validate_quantity(quantity)
        if status is not None:
            self.status = OrderStatus.parse(status).value
        self._recalculate_total()
        self.updated_at = datetime.now(UTC)

    def change_status(self, status):
        self.revise(status=status)

    def attach_payment_proof(self, blob_name):
        if not blob_name:
            raise ValidationError({"file_name": ["A payment proof file is required"]})
        self.payment_proof = blob_name
        self.updated_at = datetime.now(UTC)
