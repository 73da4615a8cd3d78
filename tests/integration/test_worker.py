"""Integration tests for the notification engine runner."""

from unittest.mock import MagicMock

import pytest
from storefront import worker
from storefront.domain import storefront
from storefront.notifications import subscribers  # noqa: F401


@pytest.fixture()
def engine_cls(monkeypatch):
    engine_cls = MagicMock()
    monkeypatch.setattr(worker, "Engine", engine_cls)
    monkeypatch.setattr(storefront, "init", MagicMock())
    return engine_cls


class TestWorkerMain:
    def test_runs_protean_engine_for_storefront(self, engine_cls, monkeypatch):
        monkeypatch.setattr("sys.argv", ["storefront-worker"])

        worker.main()

        storefront.init.assert_called_once_with()
        engine_cls.assert_called_once_with(storefront, debug=False)
        engine_cls.return_value.run.assert_called_once_with()

    def test_debug_flag(self, engine_cls, monkeypatch):
        monkeypatch.setattr("sys.argv", ["storefront-worker", "--debug"])

        worker.main()

        engine_cls.assert_called_once_with(storefront, debug=True)


class TestSubscriberRegistration:
    def test_both_queues_have_a_subscriber(self):
        streams = {record.cls.meta_.stream for record in storefront.registry.subscribers.values()}

        assert {"stock-updates", "order-notifications"} <= streams
