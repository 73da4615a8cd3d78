"""Observability hooks for stock reconciliation and event delivery.

Every hook emits a structured log line carrying an ``observability_event``
key so log pipelines can count them. ``PublishMetrics`` keeps in-process
counters of delivered and failed publishes for the health endpoint.
"""

import threading
from collections import Counter
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

EVENT_STOCK_ADJUSTED = "stock_adjusted"
EVENT_STOCK_CONFLICT_RETRY = "stock_conflict_retry"
EVENT_PUBLISH_FAILURE = "publish_failure"
EVENT_PARTIAL_RECONCILIATION = "reconciliation_partial_failure"


class PublishMetrics:
    """Thread-safe per-topic counters of publish outcomes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._delivered: Counter[str] = Counter()
        self._failed: Counter[str] = Counter()

    def record_delivered(self, topic: str) -> None:
        with self._lock:
            self._delivered[topic] += 1

    def record_failure(self, topic: str) -> None:
        with self._lock:
            self._failed[topic] += 1

    def failures(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is None:
                return sum(self._failed.values())
            return self._failed[topic]

    def delivered(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is None:
                return sum(self._delivered.values())
            return self._delivered[topic]

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {"delivered": dict(self._delivered), "failed": dict(self._failed)}

    def reset(self) -> None:
        with self._lock:
            self._delivered.clear()
            self._failed.clear()


def log_stock_adjusted(*, product_id: str, previous_stock: int, new_stock: int, delta: int, **extra: Any) -> None:
    logger.info(
        "Stock adjusted",
        observability_event=EVENT_STOCK_ADJUSTED,
        product_id=product_id,
        previous_stock=previous_stock,
        new_stock=new_stock,
        delta=delta,
        **extra,
    )


def log_conflict_retry(*, kind: str, identifier: str, attempt: int, **extra: Any) -> None:
    logger.warning(
        "Version conflict, retrying",
        observability_event=EVENT_STOCK_CONFLICT_RETRY,
        kind=kind,
        identifier=identifier,
        attempt=attempt,
        **extra,
    )


def log_publish_failure(*, topic: str, error: str, **extra: Any) -> None:
    logger.error(
        "Event publish failed",
        observability_event=EVENT_PUBLISH_FAILURE,
        topic=topic,
        error=error,
        **extra,
    )


def log_partial_reconciliation(*, order_id: str, step: str, error: str, **extra: Any) -> None:
    logger.error(
        "Order committed but reconciliation incomplete",
        observability_event=EVENT_PARTIAL_RECONCILIATION,
        order_id=order_id,
        step=step,
        error=error,
        **extra,
    )
