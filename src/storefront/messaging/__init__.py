"""Queue adapter registry: pluggable queue backends.

Provides singleton access to queue adapters. ``memory`` keeps messages in
process (tests, local runs); ``broker`` goes through the domain's broker.
"""

from storefront.messaging.queue_port import QueuePort

_queue_instances: dict[str, QueuePort] = {}


def get_queue(backend: str = "memory") -> QueuePort:
    """Return the queue adapter for ``backend`` (singleton per backend)."""
    if backend not in _queue_instances:
        if backend == "memory":
            from storefront.messaging.fake_queue import FakeQueueAdapter

            _queue_instances[backend] = FakeQueueAdapter()
        elif backend == "broker":
            from storefront.messaging.broker_queue import BrokerQueueAdapter

            _queue_instances[backend] = BrokerQueueAdapter()
        else:
            raise ValueError(f"Unknown queue backend: {backend}")

    return _queue_instances[backend]


def reset_queues():
    """Reset all queue singletons (useful for testing)."""
    _queue_instances.clear()
