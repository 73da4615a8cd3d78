"""Broker subscribers that fold the storefront queues into the read models.

Run under the Protean Engine (``storefront-worker``). The Engine acks a message
once ``__call__`` returns and nacks it when it raises, so the broker redelivers
it and eventually parks it on the dead-letter queue.
"""

import structlog

from storefront.domain import storefront
from storefront.notifications.processor import apply_message
from storefront.settings import Settings

logger = structlog.get_logger(__name__)

_settings = Settings.load(storefront)


def _body(payload):
    # Our own publisher wraps the JSON in {"body": ...}; other producers send the event itself
    if isinstance(payload, dict) and "body" in payload:
        return payload["body"]
    return payload


@storefront.subscriber(stream=_settings.stock_queue)
class StockUpdatesSubscriber:
    def __call__(self, payload: dict) -> None:
        apply_message(_body(payload))

    @classmethod
    def handle_error(cls, exc: Exception, message: dict) -> None:
        logger.error("Stock update not applied", error=str(exc), message=message)


@storefront.subscriber(stream=_settings.order_queue)
class OrderNotificationsSubscriber:
    def __call__(self, payload: dict) -> None:
        apply_message(_body(payload))

    @classmethod
    def handle_error(cls, exc: Exception, message: dict) -> None:
        logger.error("Order notification not applied", error=str(exc), message=message)
