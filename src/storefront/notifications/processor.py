"""Notification Processor: consumes the stock and order queues.

Delivery is at-least-once and unordered, so every event is applied only when
its ``sequence`` is newer than what the read model already holds. Messages
that cannot be decoded are logged and dropped; anything else that goes wrong
propagates so the message is redelivered.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.messaging.contracts import (
    ORDER_DELETED,
    MalformedMessage,
    OrderNotification,
    StockUpdated,
    parse_message,
)
from storefront.messaging.queue_port import QueuePort
from storefront.notifications.read_models import REASON_MAX_LENGTH, OrderHistory, StockDisplay

logger = structlog.get_logger(__name__)


def _is_stale(current_sequence, incoming_sequence) -> bool:
    # Events from emitters that predate sequencing are always applied
    if incoming_sequence is None or current_sequence is None:
        return False
    return incoming_sequence <= current_sequence


def _clip(text: str | None, limit: int = REASON_MAX_LENGTH) -> str | None:
    if text is None or len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def apply_message(raw) -> bool:
    """Fold one raw queue message into the read models. Returns ``False`` when it was dropped."""
    try:
        event = parse_message(raw)
    except MalformedMessage as exc:
        logger.warning("Dropping malformed message", error=str(exc))
        return False

    if isinstance(event, StockUpdated):
        return _on_stock_updated(event)
    return _on_order_notification(event)


def _on_stock_updated(event: StockUpdated) -> bool:
    repo = current_domain.repository_for(StockDisplay)
    try:
        display = repo.get(event.product_id)
    except ObjectNotFoundError:
        display = StockDisplay(product_id=event.product_id)

    if _is_stale(display.last_sequence, event.sequence):
        logger.info(
            "Skipping stale stock update",
            product_id=event.product_id,
            sequence=event.sequence,
            current=display.last_sequence,
        )
        return False

    display.product_name = event.product_name or display.product_name
    display.stock_available = event.new_stock
    display.last_reason = _clip(event.updated_by)
    if event.sequence is not None:
        display.last_sequence = event.sequence
    display.updated_at = event.updated_at_utc
    repo.add(display)

    logger.info(
        "Stock display updated",
        product_id=event.product_id,
        previous_stock=event.previous_stock,
        new_stock=event.new_stock,
        reason=event.updated_by,
    )
    return True


def _on_order_notification(event: OrderNotification) -> bool:
    repo = current_domain.repository_for(OrderHistory)
    try:
        history = repo.get(event.order_id)
    except ObjectNotFoundError:
        history = OrderHistory(order_id=event.order_id, customer_id=event.customer_id)

    if _is_stale(history.last_sequence, event.sequence):
        logger.info(
            "Skipping stale order notification",
            order_id=event.order_id,
            event_type=event.type,
            sequence=event.sequence,
            current=history.last_sequence,
        )
        return False

    history.customer_id = event.customer_id
    history.customer_name = event.customer_name
    history.product_id = event.product_id
    history.product_name = event.product_name
    history.quantity = event.quantity
    history.unit_price = event.unit_price
    history.total_amount = event.total_amount
    history.status = event.status
    history.previous_status = event.previous_status
    history.is_deleted = event.type == ORDER_DELETED
    history.last_event = event.type
    if event.sequence is not None:
        history.last_sequence = event.sequence
    history.order_date = event.order_date_utc
    history.updated_at = datetime.now(UTC)
    repo.add(history)

    logger.info(
        "Order notification processed",
        order_id=event.order_id,
        event_type=event.type,
        status=event.status,
        previous_status=event.previous_status,
    )
    return True


class NotificationProcessor:
    """Pulls messages off a ``QueuePort`` and settles each one after folding it.

    The broker-backed deployment is consumed by the subscribers in
    ``storefront.notifications.subscribers`` under the Protean Engine instead.
    """

    def __init__(self, queue: QueuePort, stock_topic: str = "stock-updates", order_topic: str = "order-notifications"):
        self.queue = queue
        self.stock_topic = stock_topic
        self.order_topic = order_topic

    def handle(self, raw) -> bool:
        return apply_message(raw)

    def drain(self, topics=None) -> int:
        """Process every message currently waiting on ``topics``. Returns the count handled.

        A message is acked only after it was applied. If applying it raises,
        it is nacked back onto its queue and the error propagates.
        """
        handled = 0
        for topic in topics or (self.stock_topic, self.order_topic):
            while (delivery := self.queue.receive(topic)) is not None:
                message_id, message = delivery
                try:
                    self.handle(message)
                except Exception:
                    logger.exception("Message handling failed, returning it to the queue", queue=topic, message_id=message_id)
                    self.queue.nack(topic, message_id)
                    raise
                self.queue.ack(topic, message_id)
                handled += 1
        return handled
