"""Application tests for the broker-backed queue adapter, against the domain's inline broker."""

import json

import pytest
from protean import current_domain
from storefront.messaging.broker_queue import BrokerQueueAdapter
from storefront.notifications.processor import NotificationProcessor
from storefront.notifications.read_models import StockDisplay

GROUP = "storefront-notifications"


@pytest.fixture()
def broker():
    return current_domain.brokers["default"]


@pytest.fixture()
def adapter():
    return BrokerQueueAdapter(consumer_group=GROUP)


def _in_flight(broker, stream):
    return broker._in_flight[f"{stream}:{GROUP}"]


def _stock_message(new_stock=6, sequence=1):
    return json.dumps(
        {
            "type": "StockUpdated",
            "productId": "prod-1",
            "previousStock": 10,
            "newStock": new_stock,
            "updatedBy": "order-created-Submitted",
            "sequence": sequence,
        }
    )


class TestBrokerQueueAdapter:
    def test_send_wraps_body(self, broker, adapter):
        message_id = adapter.send("stock-updates", '{"type": "StockUpdated"}')

        assert broker._messages["stock-updates"] == [(message_id, {"body": '{"type": "StockUpdated"}'})]

    def test_received_message_stays_in_flight_until_acked(self, broker, adapter):
        message_id = adapter.send("stock-updates", "payload")

        assert adapter.receive("stock-updates") == (message_id, "payload")
        assert message_id in _in_flight(broker, "stock-updates")

        assert adapter.ack("stock-updates", message_id) is True
        assert _in_flight(broker, "stock-updates") == {}

    def test_nack_schedules_redelivery(self, broker, adapter):
        message_id = adapter.send("stock-updates", "payload")
        adapter.receive("stock-updates")

        assert adapter.nack("stock-updates", message_id) is True
        assert _in_flight(broker, "stock-updates") == {}
        [(failed_id, message, retry_count, _)] = broker._failed_messages[f"stock-updates:{GROUP}"]
        assert (failed_id, message, retry_count) == (message_id, {"body": "payload"}, 1)

    def test_receive_empty(self, adapter):
        assert adapter.receive("stock-updates") is None

    def test_ping(self, adapter):
        assert adapter.ping() is True

    def test_missing_broker(self):
        adapter = BrokerQueueAdapter(broker_name="events")

        assert adapter.ping() is False
        with pytest.raises(RuntimeError):
            adapter.send("stock-updates", "{}")


class TestDrainingThroughTheBroker:
    def test_handled_message_is_acked(self, broker, adapter):
        adapter.send("stock-updates", _stock_message())
        processor = NotificationProcessor(adapter)

        assert processor.drain(["stock-updates"]) == 1

        assert _in_flight(broker, "stock-updates") == {}
        assert broker._failed_messages[f"stock-updates:{GROUP}"] == []
        assert current_domain.repository_for(StockDisplay).get("prod-1").stock_available == 6

    def test_failed_message_is_nacked_not_lost(self, broker, adapter, monkeypatch):
        message_id = adapter.send("stock-updates", _stock_message())
        processor = NotificationProcessor(adapter)

        def broken_handle(raw):
            raise ConnectionError("read store unavailable")

        monkeypatch.setattr(processor, "handle", broken_handle)
        with pytest.raises(ConnectionError):
            processor.drain(["stock-updates"])

        assert _in_flight(broker, "stock-updates") == {}
        [(failed_id, *_)] = broker._failed_messages[f"stock-updates:{GROUP}"]
        assert failed_id == message_id
