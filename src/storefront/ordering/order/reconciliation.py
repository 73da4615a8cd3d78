"""Reconciliation Engine: applies the stock consequences of an order mutation.

Callers write the order first and then hand the engine the snapshot as it
was persisted before the mutation and the snapshot written by it. The engine
asks the state machine for the adjustments, applies each through the Stock
Ledger and publishes one ``StockUpdated`` event per applied adjustment.

A ledger ``ConcurrencyConflict`` is retried ``conflict_retries`` more times
(the ledger re-reads the product on every attempt) before the engine gives
up with ``ReconciliationFailed``. Adjustments already applied are never
replayed. Publish failures do not stop the run; the undelivered event ids are
returned for the caller to report.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from storefront.exceptions import ConcurrencyConflict, NotFound, PublishFailure, ReconciliationFailed
from storefront.inventory.ledger import StockLedger
from storefront.messaging.contracts import StockUpdated
from storefront.messaging.publisher import EventPublisher
from storefront.ordering.order.order import OrderSnapshot
from storefront.ordering.order.state_machine import MutationCause, PlannedAdjustment, StockReason, plan
from storefront.utils.observability import log_conflict_retry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockDelta:
    """A point-in-time fact: one product's stock moved for one reason."""

    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    reason: StockReason
    timestamp: datetime
    order_id: str | None = None
    sequence: int | None = None

    @property
    def change(self) -> int:
        return self.new_stock - self.previous_stock

    def to_event(self) -> StockUpdated:
        return StockUpdated(
            product_id=self.product_id,
            product_name=self.product_name,
            previous_stock=self.previous_stock,
            new_stock=self.new_stock,
            updated_at_utc=self.timestamp,
            updated_by=self.reason.value,
            order_id=self.order_id,
            sequence=self.sequence,
        )


@dataclass
class Reconciliation:
    deltas: list[StockDelta] = field(default_factory=list)
    undelivered: list[str] = field(default_factory=list)

    @property
    def fully_delivered(self) -> bool:
        return not self.undelivered


class ReconciliationEngine:
    def __init__(
        self,
        ledger: StockLedger,
        publisher: EventPublisher,
        stock_topic: str = "stock-updates",
        conflict_retries: int = 1,
    ):
        self.ledger = ledger
        self.publisher = publisher
        self.stock_topic = stock_topic
        self.conflict_retries = conflict_retries

    def reconcile(
        self,
        old: OrderSnapshot | None,
        new: OrderSnapshot | None,
        cause: MutationCause = MutationCause.ADMIN_EDIT,
    ) -> Reconciliation:
        adjustments = plan(old, new, cause)
        order_id = (new or old).order_id
        result = Reconciliation()

        for index, adjustment in enumerate(adjustments):
            try:
                entry = self._adjust(adjustment, order_id)
            except (ConcurrencyConflict, NotFound) as exc:
                logger.error(
                    "Stock reconciliation failed",
                    order_id=order_id,
                    product_id=adjustment.product_id,
                    delta=adjustment.delta,
                    reason=adjustment.reason.value,
                    applied=len(result.deltas),
                    error=str(exc),
                )
                raise ReconciliationFailed(
                    f"Could not apply {adjustment.reason.value} to product {adjustment.product_id}: {exc}",
                    applied=result.deltas,
                    pending=adjustments[index:],
                ) from exc

            delta = StockDelta(
                product_id=entry.product_id,
                product_name=entry.product_name,
                previous_stock=entry.previous_stock,
                new_stock=entry.new_stock,
                reason=adjustment.reason,
                timestamp=datetime.now(UTC),
                order_id=order_id,
                sequence=entry.revision,
            )
            result.deltas.append(delta)
            self._publish(delta, result)

        return result

    def _adjust(self, adjustment: PlannedAdjustment, order_id: str):
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.ledger.adjust(adjustment.product_id, adjustment.delta)
            except ConcurrencyConflict:
                if attempt == attempts:
                    raise
                log_conflict_retry(
                    kind="Reconciliation",
                    identifier=order_id,
                    attempt=attempt,
                    product_id=adjustment.product_id,
                )

    def _publish(self, delta: StockDelta, result: Reconciliation) -> None:
        event = delta.to_event()
        try:
            self.publisher.publish_event(self.stock_topic, event)
        except PublishFailure:
            result.undelivered.append(event.event_id)
