"""Shopping Cart aggregate (CQRS): products a customer intends to buy.

One active cart per customer username. Checkout turns each line into its
own order and drops the line once that order is committed, so a retried
checkout never places the same line twice.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.domain import storefront


class CartStatus(Enum):
    ACTIVE = "Active"
    CONVERTED = "Converted"


@storefront.entity(part_of="ShoppingCart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class ShoppingCart:
    customer_username = String(required=True, max_length=100)
    lines = HasMany(CartLine)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open_for(cls, customer_username):
        now = datetime.now(UTC)
        return cls(
            customer_username=customer_username,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    def _assert_active(self):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Cart has already been checked out"]})

    def _line(self, line_id):
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Cart line not found"]})
        return line

    def add_product(self, product_id, quantity):
        """Add a product, merging with an existing line for the same product."""
        self._assert_active()
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = next((line for line in self.lines if str(line.product_id) == str(product_id)), None)
        if existing:
            existing.quantity += quantity
        else:
            self.add_lines(CartLine(product_id=product_id, quantity=quantity, added_at=now))
        self.updated_at = now

    def update_quantity(self, line_id, quantity):
        self._assert_active()
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        self._line(line_id).quantity = quantity
        self.updated_at = datetime.now(UTC)

    def remove_line(self, line_id):
        self._assert_active()
        self.remove_lines(self._line(line_id))
        self.updated_at = datetime.now(UTC)

    def mark_converted(self):
        self._assert_active()
        self.status = CartStatus.CONVERTED.value
        self.updated_at = datetime.now(UTC)
