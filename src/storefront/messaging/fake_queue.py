"""Fake queue adapter: in-memory FIFO queues for tests and local runs."""

import threading
from collections import defaultdict, deque
from uuid import uuid4

from storefront.messaging.queue_port import QueuePort


class FakeQueueAdapter(QueuePort):
    """Queue adapter that keeps messages in memory for test assertions.

    A received message stays in flight until it is acked; a nack puts it back
    at the head of its queue.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._queues: defaultdict[str, deque] = defaultdict(deque)
        self._in_flight: defaultdict[str, dict[str, str]] = defaultdict(dict)
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Queue unavailable"
        self.fail_topics: set[str] = set()

    def configure(self, should_succeed: bool = True, failure_reason: str = "Queue unavailable", fail_topics=None):
        """Configure the fake adapter behavior for testing.

        ``fail_topics`` restricts failures to the named queues.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.fail_topics = set(fail_topics or [])

    def send(self, queue_name: str, message: str) -> str:
        failing = not self.should_succeed and (not self.fail_topics or queue_name in self.fail_topics)
        if failing:
            raise ConnectionError(self.failure_reason)

        message_id = f"msg-{uuid4().hex[:12]}"
        with self._lock:
            self._queues[queue_name].append((message_id, message))
            self.sent.append({"message_id": message_id, "queue": queue_name, "body": message})
        return message_id

    def receive(self, queue_name: str) -> tuple[str, str] | None:
        with self._lock:
            queue = self._queues.get(queue_name)
            if not queue:
                return None
            message_id, message = queue.popleft()
            self._in_flight[queue_name][message_id] = message
            return message_id, message

    def ack(self, queue_name: str, message_id: str) -> bool:
        with self._lock:
            return self._in_flight[queue_name].pop(message_id, None) is not None

    def nack(self, queue_name: str, message_id: str) -> bool:
        with self._lock:
            message = self._in_flight[queue_name].pop(message_id, None)
            if message is None:
                return False
            self._queues[queue_name].appendleft((message_id, message))
            return True

    def pending(self, queue_name: str) -> list[str]:
        with self._lock:
            return [message for _, message in self._queues.get(queue_name, ())]

    def in_flight(self, queue_name: str) -> list[str]:
        with self._lock:
            return list(self._in_flight.get(queue_name, {}).values())

    def ping(self) -> bool:
        return self.should_succeed

    def reset(self):
        """Clear queued and recorded messages (useful between tests)."""
        with self._lock:
            self._queues.clear()
            self._in_flight.clear()
            self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Queue unavailable"
        self.fail_topics = set()
