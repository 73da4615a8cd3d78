"""Broker queue adapter: routes queue traffic through a Protean broker.

The configured broker (Redis Streams in production) provides durability and
per-stream FIFO ordering; each queue name maps to one stream. Received
messages stay pending in the consumer group until they are acked, and a nack
hands them back to the broker's retry and dead-letter handling.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.messaging.queue_port import QueuePort

logger = structlog.get_logger(__name__)


class BrokerQueueAdapter(QueuePort):
    def __init__(self, broker_name: str = "default", consumer_group: str = "storefront-notifications"):
        self.broker_name = broker_name
        self.consumer_group = consumer_group

    def _broker(self):
        broker = current_domain.brokers.get(self.broker_name)
        if broker is None:
            raise RuntimeError(f"No broker named '{self.broker_name}' is configured")
        return broker

    def send(self, queue_name: str, message: str) -> str:
        return self._broker().publish(queue_name, {"body": message})

    def receive(self, queue_name: str) -> tuple[str, str] | None:
        item = self._broker().get_next(queue_name, self.consumer_group)
        if not item:
            return None
        identifier, payload = item
        return identifier, payload.get("body")

    def ack(self, queue_name: str, message_id: str) -> bool:
        acked = self._broker().ack(queue_name, message_id, self.consumer_group)
        if not acked:
            logger.warning("Broker refused ack", queue=queue_name, message_id=message_id)
        return acked

    def nack(self, queue_name: str, message_id: str) -> bool:
        nacked = self._broker().nack(queue_name, message_id, self.consumer_group)
        if not nacked:
            logger.warning("Broker refused nack", queue=queue_name, message_id=message_id)
        return nacked

    def ping(self) -> bool:
        try:
            self._broker()
        except RuntimeError as exc:
            logger.warning("Broker not available", broker=self.broker_name, error=str(exc))
            return False
        return True
