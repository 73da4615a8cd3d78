"""Event Publisher: at-least-once, fire-and-forget delivery onto the queues.

Publishing only enqueues; nothing waits for subscribers. A failed enqueue is
logged, counted and raised as ``PublishFailure`` for the caller to record. It
never unwinds order or stock writes that already committed.
"""

import json

import structlog

from storefront.exceptions import PublishFailure
from storefront.messaging.contracts import WireEvent
from storefront.messaging.queue_port import QueuePort
from storefront.utils.observability import PublishMetrics, log_publish_failure

logger = structlog.get_logger(__name__)


class EventPublisher:
    def __init__(self, queue: QueuePort, metrics: PublishMetrics | None = None):
        self.queue = queue
        self.metrics = metrics or PublishMetrics()

    def publish(self, topic: str, payload: dict) -> str:
        """Enqueue ``payload`` as JSON on ``topic`` and return the message id."""
        message = json.dumps(payload)
        try:
            message_id = self.queue.send(topic, message)
        except Exception as exc:
            self.metrics.record_failure(topic)
            log_publish_failure(
                topic=topic,
                error=str(exc),
                event_type=payload.get("type"),
                event_id=payload.get("eventId"),
            )
            raise PublishFailure(topic, exc) from exc

        self.metrics.record_delivered(topic)
        logger.debug(
            "Event published",
            topic=topic,
            event_type=payload.get("type"),
            event_id=payload.get("eventId"),
            message_id=message_id,
        )
        return message_id

    def publish_event(self, topic: str, event: WireEvent) -> str:
        return self.publish(topic, event.to_payload())
