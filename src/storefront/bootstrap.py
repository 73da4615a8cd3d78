"""Wiring for the storefront's application services.

``build_services`` assembles the ledger, engine, publisher and order service
from ``Settings`` so the web app, the in-process queue drain and the tests all share
one composition.
"""

from dataclasses import dataclass

import structlog

from storefront.identity.customer_api import CustomerDirectory
from storefront.inventory.ledger import StockLedger
from storefront.messaging import get_queue
from storefront.messaging.publisher import EventPublisher
from storefront.messaging.queue_port import QueuePort
from storefront.notifications.processor import NotificationProcessor
from storefront.ordering.order.reconciliation import ReconciliationEngine
from storefront.ordering.order.service import OrderService
from storefront.settings import Settings
from storefront.utils.observability import PublishMetrics

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    queue: QueuePort
    metrics: PublishMetrics
    publisher: EventPublisher
    ledger: StockLedger
    engine: ReconciliationEngine
    customers: CustomerDirectory
    orders: OrderService
    processor: NotificationProcessor

    def ready(self) -> dict:
        """Readiness report for the health endpoint."""
        try:
            queue_ok = bool(self.queue.ping())
        except Exception as exc:
            logger.warning("Queue ping failed", error=str(exc))
            queue_ok = False

        return {
            "status": "ok" if queue_ok else "degraded",
            "queue": {"backend": self.settings.queue_backend, "reachable": queue_ok},
            "customer_api": {"configured": self.customers.enabled},
            "publish": self.metrics.snapshot(),
        }

    def drain_local(self) -> int:
        """Fold the in-memory queues into the read models.

        The broker backend is consumed by the notification engine instead, so
        this is a no-op there.
        """
        if self.settings.queue_backend != "memory":
            return 0
        return self.processor.drain()


def build_services(settings: Settings | None = None, queue: QueuePort | None = None) -> Services:
    if settings is None:
        from storefront.domain import storefront

        settings = Settings.load(storefront)

    queue = queue or get_queue(settings.queue_backend)
    metrics = PublishMetrics()
    publisher = EventPublisher(queue, metrics)
    ledger = StockLedger(max_retries=settings.ledger_max_retries)
    engine = ReconciliationEngine(
        ledger,
        publisher,
        stock_topic=settings.stock_queue,
        conflict_retries=settings.reconcile_retries,
    )
    customers = CustomerDirectory(settings.customer_api_url, timeout=settings.customer_api_timeout)
    orders = OrderService(engine, publisher, order_topic=settings.order_queue, customers=customers)
    processor = NotificationProcessor(queue, stock_topic=settings.stock_queue, order_topic=settings.order_queue)

    logger.info(
        "Storefront services ready",
        queue_backend=settings.queue_backend,
        stock_queue=settings.stock_queue,
        order_queue=settings.order_queue,
        customer_api=customers.enabled,
    )
    return Services(
        settings=settings,
        queue=queue,
        metrics=metrics,
        publisher=publisher,
        ledger=ledger,
        engine=engine,
        customers=customers,
        orders=orders,
        processor=processor,
    )
