"""Application tests for the order service: every mutation entry point."""

import json
from datetime import UTC, datetime

import pytest
from protean.exceptions import ValidationError
from storefront.exceptions import ConcurrencyConflict, NotFound, PartialReconciliationFailure
from storefront.ordering.order.order import Order, OrderStatus
from storefront.ordering.order.state_machine import StockReason
from storefront.persistence import load, remove


@pytest.fixture()
def orders(services):
    return services.orders


def _order_events(queue):
    return [json.loads(message) for message in queue.pending("order-notifications")]


def _stock_events(queue):
    return [json.loads(message) for message in queue.pending("stock-updates")]


class TestPlaceOrder:
    def test_writes_order_then_deducts(self, orders, product, stock):
        outcome = orders.place_order("cust-1", product.id, 4, customer_name="Ada Lovelace")

        stored = load(Order, outcome.order_id)
        assert stored.revision == 0
        assert stored.total_price == 50.0
        assert stock(product.id) == 6
        assert [d.reason for d in outcome.deltas] == [StockReason.ORDER_CREATED_SUBMITTED]
        assert outcome.undelivered == []

    def test_publishes_order_created(self, orders, product, queue):
        outcome = orders.place_order("cust-1", product.id, 2, customer_name="Ada")

        [event] = _order_events(queue)
        assert event["type"] == "OrderCreated"
        assert event["orderId"] == outcome.order_id
        assert event["customerName"] == "Ada"
        assert event["quantity"] == 2
        assert event["unitPrice"] == 12.5
        assert event["totalAmount"] == 25.0
        assert event["status"] == "Submitted"
        assert "previousStatus" not in event

    def test_created_in_later_status_uses_status_reason(self, orders, product):
        outcome = orders.place_order("cust-1", product.id, 1, status="Shipped", customer_name="Ada")
        assert outcome.deltas[0].reason is StockReason.ORDER_CREATED_SHIPPED

    def test_created_cancelled_leaves_stock_alone(self, orders, product, stock):
        outcome = orders.place_order("cust-1", product.id, 3, status="Cancelled", customer_name="Ada")

        assert outcome.deltas == []
        assert stock(product.id) == 10

    def test_unknown_product_writes_nothing(self, orders):
        with pytest.raises(NotFound):
            orders.place_order("cust-1", "missing", 1, customer_name="Ada")
        assert orders.list_orders() == []

    def test_invalid_status_writes_nothing(self, orders, product, stock):
        with pytest.raises(ValidationError):
            orders.place_order("cust-1", product.id, 1, status="Teleported", customer_name="Ada")
        assert stock(product.id) == 10

    def test_customer_name_falls_back_to_id(self, orders, product):
        outcome = orders.place_order("cust-1", product.id, 1)
        assert outcome.order.customer_name == "cust-1"


class TestStockScenario:
    def test_create_edit_cancel_delete(self, orders, product, queue, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        assert stock(product.id) == 6

        orders.edit_order(created.order_id, quantity=2)
        assert stock(product.id) == 8

        orders.cancel_order(created.order_id)
        assert stock(product.id) == 10

        deleted = orders.delete_order(created.order_id)
        assert deleted.deltas == []
        assert stock(product.id) == 10

        assert [(e["previousStock"], e["newStock"], e["updatedBy"]) for e in _stock_events(queue)] == [
            (10, 6, "order-created-Submitted"),
            (6, 8, "order-edit-quantity-change"),
            (8, 10, "order-cancelled"),
        ]


class TestEditOrder:
    def test_product_change_swaps_stock(self, orders, make_product, stock):
        mug = make_product(name="Mug", price=8.0, stock=10)
        kettle = make_product(name="Kettle", price=40.0, stock=10)
        created = orders.place_order("cust-1", mug.id, 3, customer_name="Ada")

        outcome = orders.edit_order(created.order_id, product_id=kettle.id, quantity=2)

        assert stock(mug.id) == 10
        assert stock(kettle.id) == 8
        assert outcome.order.unit_price == 40.0
        assert outcome.order.total_price == 80.0

    def test_edit_without_status_change_publishes_order_updated(self, orders, product, queue):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        orders.edit_order(created.order_id, quantity=5)

        assert [e["type"] for e in _order_events(queue)] == ["OrderCreated", "OrderUpdated"]

    def test_nothing_to_change(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")
        with pytest.raises(ValidationError):
            orders.edit_order(created.order_id)

    def test_unknown_replacement_product_leaves_order_alone(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")

        with pytest.raises(NotFound):
            orders.edit_order(created.order_id, product_id="missing")
        assert load(Order, created.order_id).revision == 0

    def test_unknown_order(self, orders):
        with pytest.raises(NotFound):
            orders.edit_order("missing", quantity=2)

    def test_stale_expected_revision_is_rejected(self, orders, product, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        # Another operator edits first
        orders.edit_order(created.order_id, quantity=3, expected_revision=0)

        with pytest.raises(ConcurrencyConflict) as exc_info:
            orders.edit_order(created.order_id, quantity=1, expected_revision=0)

        assert exc_info.value.actual == 1
        assert load(Order, created.order_id).quantity == 3
        assert stock(product.id) == 7

    def test_lost_write_race_is_retried_on_fresh_order(self, orders, product, stock, monkeypatch):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        from storefront.ordering.order import service as service_module

        original_save = service_module.save
        calls = []

        def racing_save(order):
            calls.append(order.revision)
            if len(calls) == 1:
                # Another writer commits between our read and our write
                competitor = load(Order, order.id)
                competitor.revise(quantity=6)
                original_save(competitor)
            return original_save(order)

        monkeypatch.setattr(service_module, "save", racing_save)
        outcome = orders.edit_order(created.order_id, status="Shipped")

        assert calls == [0, 1]
        assert outcome.order.quantity == 6
        assert outcome.order.status == "Shipped"


class TestStatusUpdates:
    def test_cancel_twice_yields_no_second_delta(self, orders, product, stock, queue):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        first = orders.cancel_order(created.order_id)
        second = orders.cancel_order(created.order_id)

        assert len(first.deltas) == 1
        assert second.deltas == []
        assert stock(product.id) == 10
        assert [e["type"] for e in _order_events(queue)] == ["OrderCreated", "order-status-updated"]

    def test_status_event_carries_previous_status(self, orders, product, queue):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")
        orders.update_status(created.order_id, "Shipped")

        event = _order_events(queue)[-1]
        assert event["type"] == "order-status-updated"
        assert event["status"] == "Shipped"
        assert event["previousStatus"] == "Submitted"

    def test_reactivation_deducts_again(self, orders, product, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        orders.cancel_order(created.order_id)
        outcome = orders.update_status(created.order_id, OrderStatus.PROCESSING)

        assert outcome.deltas[0].reason is StockReason.ORDER_STATUS_REACTIVATED
        assert stock(product.id) == 6

    def test_unknown_status(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")
        with pytest.raises(ValidationError):
            orders.update_status(created.order_id, "Lost")


class TestPaymentProof:
    def test_submitted_order_moves_to_processing_without_stock_change(self, orders, product, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada Lovelace")
        uploaded_at = datetime(2024, 2, 3, 4, 5, 6, tzinfo=UTC)

        outcome = orders.record_payment_proof(created.order_id, "receipt.pdf", uploaded_at=uploaded_at)

        assert outcome.order.status == "Processing"
        assert outcome.order.payment_proof == f"20240203_040506_{created.order_id}_Ada_Lovelace_receipt.pdf"
        assert outcome.deltas == []
        assert stock(product.id) == 6

    def test_cancelled_order_is_reactivated_and_deducted(self, orders, product, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        orders.cancel_order(created.order_id)

        outcome = orders.record_payment_proof(created.order_id, "receipt.pdf")

        assert [d.reason for d in outcome.deltas] == [StockReason.PAYMENT_PROOF_UPLOADED]
        assert stock(product.id) == 6

    def test_shipped_order_keeps_status(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, status="Shipped", customer_name="Ada")
        outcome = orders.record_payment_proof(created.order_id, "receipt.pdf")

        assert outcome.order.status == "Shipped"
        assert outcome.order.payment_proof.endswith("receipt.pdf")

    def test_stale_expected_revision_is_rejected(self, orders, product, stock):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        orders.cancel_order(created.order_id)

        with pytest.raises(ConcurrencyConflict) as exc_info:
            orders.record_payment_proof(created.order_id, "receipt.pdf", expected_revision=0)

        assert (exc_info.value.expected, exc_info.value.actual) == (0, 1)
        stored = load(Order, created.order_id)
        assert stored.status == "Cancelled"
        assert stored.payment_proof is None
        assert stock(product.id) == 10

    def test_matching_expected_revision_is_accepted(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")

        outcome = orders.record_payment_proof(created.order_id, "receipt.pdf", expected_revision=0)

        assert outcome.order.status == "Processing"
        assert outcome.order.revision == 1

    def test_missing_file_name(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")
        with pytest.raises(ValidationError):
            orders.record_payment_proof(created.order_id, "")


class TestDeleteOrder:
    def test_deleting_active_order_restores_stock(self, orders, product, stock, queue):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        outcome = orders.delete_order(created.order_id)

        assert outcome.order is None
        assert [d.reason for d in outcome.deltas] == [StockReason.ORDER_DELETED]
        assert stock(product.id) == 10
        with pytest.raises(NotFound):
            orders.get_order(created.order_id)

        event = _order_events(queue)[-1]
        assert event["type"] == "OrderDeleted"
        assert event["sequence"] == 1

    def test_stale_expected_revision(self, orders, product):
        created = orders.place_order("cust-1", product.id, 4, customer_name="Ada")
        orders.edit_order(created.order_id, quantity=2)

        with pytest.raises(ConcurrencyConflict):
            orders.delete_order(created.order_id, expected_revision=0)
        assert orders.get_order(created.order_id).quantity == 2


class TestFailures:
    def test_publish_failure_is_reported_not_raised(self, orders, product, queue, services, stock):
        queue.configure(should_succeed=False)

        outcome = orders.place_order("cust-1", product.id, 4, customer_name="Ada")

        assert stock(product.id) == 6
        assert load(Order, outcome.order_id).revision == 0
        assert len(outcome.undelivered) == 2
        assert services.metrics.failures() == 2

    def test_stock_failure_after_order_write_is_partial(self, orders, product, services, monkeypatch):
        def broken_adjust(product_id, delta):
            raise ConcurrencyConflict("Product", product_id)

        monkeypatch.setattr(services.ledger, "adjust", broken_adjust)

        with pytest.raises(PartialReconciliationFailure) as exc_info:
            orders.place_order("cust-1", product.id, 4, customer_name="Ada")

        failure = exc_info.value
        assert failure.step == "stock"
        assert failure.applied == []
        assert [p.delta for p in failure.pending] == [-4]
        # The order write is not rolled back
        assert load(Order, failure.order_id).quantity == 4


class TestQueries:
    def test_orders_for_customer_newest_first(self, orders, product):
        older = orders.place_order(
            "cust-1", product.id, 1, customer_name="Ada", order_date=datetime(2024, 1, 1, tzinfo=UTC)
        )
        newer = orders.place_order(
            "cust-1", product.id, 1, customer_name="Ada", order_date=datetime(2024, 6, 1, tzinfo=UTC)
        )
        orders.place_order("cust-2", product.id, 1, customer_name="Bob")

        listed = orders.orders_for_customer("cust-1")
        assert [str(o.id) for o in listed] == [newer.order_id, older.order_id]
        assert len(orders.list_orders()) == 3

    def test_removing_a_stale_copy_conflicts(self, orders, product):
        created = orders.place_order("cust-1", product.id, 1, customer_name="Ada")
        stale = load(Order, created.order_id)
        orders.edit_order(created.order_id, quantity=2)

        with pytest.raises(ConcurrencyConflict) as exc_info:
            remove(stale)

        assert exc_info.value.expected == 0
        assert orders.get_order(created.order_id).quantity == 2
