"""Queue port: abstract interface for the durable message queues."""

from abc import ABC, abstractmethod


class QueuePort(ABC):
    """Abstract interface for queue adapters.

    Delivery is acknowledged: ``receive`` hands out a message without removing
    it, and the consumer settles it with ``ack`` once handled or ``nack`` to
    have it delivered again.
    """

    @abstractmethod
    def send(self, queue_name: str, message: str) -> str:
        """Enqueue a message.

        Returns:
            The identifier the backend assigned to the message.
        """
        ...

    @abstractmethod
    def receive(self, queue_name: str) -> tuple[str, str] | None:
        """Next ``(message_id, body)`` on ``queue_name``, or ``None`` when nothing is waiting."""
        ...

    @abstractmethod
    def ack(self, queue_name: str, message_id: str) -> bool:
        """Settle a received message as handled."""
        ...

    @abstractmethod
    def nack(self, queue_name: str, message_id: str) -> bool:
        """Hand a received message back for redelivery."""
        ...

    def ping(self) -> bool:
        """Report whether the backend is reachable."""
        return True
