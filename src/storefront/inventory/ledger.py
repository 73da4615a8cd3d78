"""Stock Ledger: the only place product stock is mutated.

``adjust`` is a read-modify-write guarded by the product's version: when
another writer gets in first the whole cycle is retried against the
fresh record, up to ``max_retries`` attempts, before ``ConcurrencyConflict``
is surfaced. Stock is clamped at zero. The ledger never emits events.
"""

from dataclasses import dataclass

import structlog

from storefront.catalogue.product.product import Product
from storefront.exceptions import ConcurrencyConflict
from storefront.persistence import load, save
from storefront.utils.observability import log_conflict_retry, log_stock_adjusted

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    """Outcome of one successful adjustment."""

    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    revision: int


class StockLedger:
    def __init__(self, max_retries: int = 3):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries

    def _load(self, product_id):
        return load(Product, product_id)

    def stock_of(self, product_id) -> int:
        return self._load(product_id).stock_available

    def adjust(self, product_id, delta: int) -> LedgerEntry:
        """Apply ``delta`` to the product's stock. Raises ``NotFound`` or ``ConcurrencyConflict``."""
        last_conflict = None
        for attempt in range(1, self.max_retries + 1):
            product = self._load(product_id)
            previous, new = product.apply_stock_delta(delta)

            try:
                save(product)
            except ConcurrencyConflict as exc:
                last_conflict = exc
                log_conflict_retry(kind="Product", identifier=str(product_id), attempt=attempt)
                continue

            log_stock_adjusted(
                product_id=str(product_id),
                previous_stock=previous,
                new_stock=new,
                delta=delta,
                revision=product.revision,
            )
            return LedgerEntry(
                product_id=str(product.id),
                product_name=product.name,
                previous_stock=previous,
                new_stock=new,
                revision=product.revision,
            )

        logger.error(
            "Stock adjustment gave up after repeated conflicts",
            product_id=str(product_id),
            delta=delta,
            attempts=self.max_retries,
        )
        raise last_conflict
