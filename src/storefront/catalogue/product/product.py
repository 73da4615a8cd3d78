"""Product aggregate (CQRS): a sellable item and its available stock.

``stock_available`` is only ever changed through ``apply_stock_delta``, which
the Stock Ledger calls inside a version-checked write. ``revision`` exposes
Protean's aggregate version, the optimistic concurrency token compared at
write time.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text

from storefront.domain import storefront


@storefront.aggregate
class Product:
    name = String(required=True, max_length=100)
    description = Text()
    price = Float(required=True, min_value=0.0)
    stock_available = Integer(default=0, min_value=0)
    image_url = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, stock_available=0, description=None, image_url=None):
        if stock_available is None or stock_available < 0:
            raise ValidationError({"stock_available": ["Stock available cannot be negative"]})
        now = datetime.now(UTC)
        return cls(
            name=name,
            description=description,
            price=price,
            stock_available=stock_available,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )

    @property
    def revision(self) -> int:
        """Stored version of this product, -1 until the first save."""
        return self._version

    def apply_stock_delta(self, delta: int) -> tuple[int, int]:
        """Move stock by ``delta``, clamping at zero. Returns ``(previous, new)``."""
        previous = self.stock_available
        self.stock_available = max(0, previous + delta)
        self.updated_at = datetime.now(UTC)
        return previous, self.stock_available
