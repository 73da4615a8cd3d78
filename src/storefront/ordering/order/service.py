"""Order entry points: checkout, admin create/edit, status, payment proof, delete.

Every mutation follows the same sequence:

1. validate input and referenced records (nothing written on failure);
2. write the order with a version check (the durable source of truth);
3. reconcile stock through the engine, which publishes ``StockUpdated``;
4. publish the order notification.

A failure in step 3 leaves the order committed; it is logged and raised as
``PartialReconciliationFailure`` for manual follow-up. Publish failures in
steps 3 and 4 are reported on the returned ``OrderOutcome`` instead.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.catalogue.product.product import Product
from storefront.exceptions import (
    ConcurrencyConflict,
    PartialReconciliationFailure,
    PublishFailure,
    ReconciliationFailed,
)
from storefront.identity.customer_api import CustomerDirectory
from storefront.messaging.contracts import (
    ORDER_CREATED,
    ORDER_DELETED,
    ORDER_STATUS_UPDATED,
    ORDER_UPDATED,
    OrderNotification,
)
from storefront.messaging.publisher import EventPublisher
from storefront.ordering.cart.cart import ShoppingCart
from storefront.ordering.cart.items import active_cart_for
from storefront.ordering.order.order import Order, OrderStatus
from storefront.ordering.order.reconciliation import Reconciliation, ReconciliationEngine, StockDelta
from storefront.ordering.order.state_machine import MutationCause
from storefront.persistence import load, remove, save
from storefront.utils.observability import log_conflict_retry, log_partial_reconciliation

logger = structlog.get_logger(__name__)

# One automatic re-read when an unconditional edit loses a write race
_ORDER_WRITE_ATTEMPTS = 2


def _newest_first(orders):
    return sorted(orders, key=lambda order: order.order_date, reverse=True)


@dataclass
class OrderOutcome:
    order_id: str
    order: Order | None
    deltas: list[StockDelta] = field(default_factory=list)
    undelivered: list[str] = field(default_factory=list)


class OrderService:
    def __init__(
        self,
        engine: ReconciliationEngine,
        publisher: EventPublisher,
        order_topic: str = "order-notifications",
        customers: CustomerDirectory | None = None,
    ):
        self.engine = engine
        self.publisher = publisher
        self.order_topic = order_topic
        self.customers = customers or CustomerDirectory()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id) -> Order:
        return load(Order, order_id)

    def list_orders(self) -> list[Order]:
        """All orders, newest first."""
        return _newest_first(current_domain.repository_for(Order)._dao.query.all().items)

    def orders_for_customer(self, customer_id) -> list[Order]:
        orders = current_domain.repository_for(Order)._dao.query.filter(customer_id=str(customer_id)).all().items
        return _newest_first(orders)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def place_order(
        self,
        customer_id,
        product_id,
        quantity,
        status=OrderStatus.SUBMITTED,
        customer_name=None,
        order_date=None,
    ) -> OrderOutcome:
        """Admin entry point: create one order directly in ``status``."""
        status = OrderStatus.parse(status)
        product = load(Product, product_id)
        if not customer_name:
            profile = self.customers.get(customer_id)
            customer_name = profile.display_name if profile else str(customer_id)

        order = Order.place(customer_id, customer_name, product, quantity, status, order_date)
        return self._create(order, MutationCause.ADMIN_CREATE)

    def checkout(self, customer_username) -> list[OrderOutcome]:
        """Turn every line of the customer's cart into a ``Submitted`` order."""
        cart = active_cart_for(customer_username)
        if cart is None or not cart.lines:
            raise ValidationError({"cart": ["Your cart is empty"]})

        # All lines are checked before the first order is written
        products = {}
        for line in cart.lines:
            product = load(Product, line.product_id)
            if product.stock_available < line.quantity:
                raise ValidationError(
                    {"quantity": [f"Insufficient stock for {product.name}. Available: {product.stock_available}"]}
                )
            products[str(line.id)] = product

        customer_id, customer_name = self._resolve_customer(customer_username)
        cart_repo = current_domain.repository_for(ShoppingCart)
        outcomes = []

        for line in list(cart.lines):
            order = Order.place(customer_id, customer_name, products[str(line.id)], line.quantity)
            try:
                outcomes.append(self._create(order, MutationCause.CART_CHECKOUT))
            finally:
                # The order exists once _create got past its write; never place it twice
                if order.state_.is_persisted:
                    cart.remove_line(line.id)
                    cart_repo.add(cart)

        cart.mark_converted()
        cart_repo.add(cart)
        logger.info(
            "Cart checked out",
            customer_username=customer_username,
            orders=[outcome.order_id for outcome in outcomes],
        )
        return outcomes

    def _resolve_customer(self, customer_username) -> tuple[str, str]:
        profile = self.customers.find_by_username(customer_username)
        if profile is None or not profile.customer_id:
            return customer_username, customer_username
        return profile.customer_id, profile.display_name

    def _create(self, order: Order, cause: MutationCause) -> OrderOutcome:
        save(order)
        order_id = str(order.id)
        logger.info(
            "Order placed",
            order_id=order_id,
            product_id=order.product_id,
            quantity=order.quantity,
            status=order.status,
            cause=cause.value,
        )

        reconciliation = self._reconcile(order_id, None, order.snapshot(), cause)
        undelivered = reconciliation.undelivered + self._notify(order, ORDER_CREATED)
        return OrderOutcome(order_id, order, reconciliation.deltas, undelivered)

    # -------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------
    def edit_order(self, order_id, product_id=None, quantity=None, status=None, expected_revision=None):
        """Change product, quantity and/or status of an existing order."""
        if product_id is None and quantity is None and status is None:
            raise ValidationError({"order": ["Nothing to change"]})
        if status is not None:
            status = OrderStatus.parse(status)
        if quantity is not None and quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        product = load(Product, product_id) if product_id is not None else None

        def mutation(order):
            order.revise(product=product, quantity=quantity, status=status)

        return self._mutate(order_id, mutation, MutationCause.ADMIN_EDIT, expected_revision)

    def update_status(self, order_id, status, expected_revision=None) -> OrderOutcome:
        status = OrderStatus.parse(status)

        def mutation(order):
            order.change_status(status)

        return self._mutate(order_id, mutation, MutationCause.STATUS_UPDATE, expected_revision)

    def cancel_order(self, order_id, expected_revision=None) -> OrderOutcome:
        return self.update_status(order_id, OrderStatus.CANCELLED, expected_revision)

    def record_payment_proof(
        self, order_id, file_name, customer_name=None, uploaded_at=None, expected_revision=None
    ) -> OrderOutcome:
        """Attach an uploaded proof of payment and move the order into processing.

        Only ``Submitted`` and ``Cancelled`` orders advance; later statuses keep
        their status and just gain the proof.
        """
        if not file_name:
            raise ValidationError({"file_name": ["A payment proof file is required"]})
        stamp = (uploaded_at or datetime.now(UTC)).strftime("%Y%m%d_%H%M%S")

        def mutation(order):
            customer_part = (customer_name or order.customer_name or "unknown").replace(" ", "_")
            order.attach_payment_proof(f"{stamp}_{order.id}_{customer_part}_{file_name}")
            if order.status_enum in (OrderStatus.SUBMITTED, OrderStatus.CANCELLED):
                order.change_status(OrderStatus.PROCESSING)

        return self._mutate(order_id, mutation, MutationCause.PAYMENT_PROOF, expected_revision)

    def delete_order(self, order_id, expected_revision=None) -> OrderOutcome:
        for attempt in range(1, _ORDER_WRITE_ATTEMPTS + 1):
            order = load(Order, order_id)
            self._check_expected(order, expected_revision)
            before = order.snapshot()
            deleted_revision = order.revision
            try:
                remove(order)
            except ConcurrencyConflict:
                if expected_revision is not None or attempt == _ORDER_WRITE_ATTEMPTS:
                    raise
                log_conflict_retry(kind="Order", identifier=str(order_id), attempt=attempt)
                continue
            break

        logger.info("Order deleted", order_id=str(order_id), status=order.status)
        reconciliation = self._reconcile(str(order_id), before, None, MutationCause.DELETE)
        undelivered = reconciliation.undelivered + self._notify(order, ORDER_DELETED, sequence=deleted_revision + 1)
        return OrderOutcome(str(order_id), None, reconciliation.deltas, undelivered)

    def _mutate(self, order_id, mutation, cause: MutationCause, expected_revision=None) -> OrderOutcome:
        for attempt in range(1, _ORDER_WRITE_ATTEMPTS + 1):
            order = load(Order, order_id)
            self._check_expected(order, expected_revision)
            before = order.snapshot()
            previous_status = order.status
            previous_proof = order.payment_proof

            mutation(order)

            if order.snapshot() == before and order.payment_proof == previous_proof:
                logger.info("Order unchanged, nothing to reconcile", order_id=str(order_id), cause=cause.value)
                return OrderOutcome(str(order_id), order)

            try:
                save(order)
            except ConcurrencyConflict:
                if expected_revision is not None or attempt == _ORDER_WRITE_ATTEMPTS:
                    raise
                log_conflict_retry(kind="Order", identifier=str(order_id), attempt=attempt)
                continue
            break

        logger.info(
            "Order updated",
            order_id=str(order_id),
            previous_status=previous_status,
            status=order.status,
            quantity=order.quantity,
            product_id=order.product_id,
            cause=cause.value,
        )
        reconciliation = self._reconcile(str(order_id), before, order.snapshot(), cause)

        if order.status != previous_status:
            notified = self._notify(order, ORDER_STATUS_UPDATED, previous_status=previous_status)
        else:
            notified = self._notify(order, ORDER_UPDATED)
        return OrderOutcome(str(order_id), order, reconciliation.deltas, reconciliation.undelivered + notified)

    @staticmethod
    def _check_expected(order: Order, expected_revision) -> None:
        if expected_revision is not None and order.revision != expected_revision:
            raise ConcurrencyConflict("Order", str(order.id), expected_revision, order.revision)

    # -------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------
    def _reconcile(self, order_id: str, old, new, cause: MutationCause) -> Reconciliation:
        try:
            return self.engine.reconcile(old, new, cause)
        except ReconciliationFailed as exc:
            log_partial_reconciliation(
                order_id=order_id,
                step="stock",
                error=str(exc),
                applied=[(d.product_id, d.change, d.reason.value) for d in exc.applied],
                pending=[(p.product_id, p.delta, p.reason.value) for p in exc.pending],
            )
            raise PartialReconciliationFailure(order_id, "stock", exc.applied, exc.pending, exc) from exc

    def _notify(self, order: Order, event_type: str, previous_status=None, sequence=None) -> list[str]:
        event = OrderNotification(
            type=event_type,
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            customer_name=order.customer_name,
            product_id=str(order.product_id),
            product_name=order.product_name,
            quantity=order.quantity,
            unit_price=order.unit_price,
            total_amount=order.total_price,
            order_date_utc=order.order_date,
            status=order.status,
            previous_status=previous_status,
            sequence=order.revision if sequence is None else sequence,
        )
        try:
            self.publisher.publish_event(self.order_topic, event)
        except PublishFailure:
            return [event.event_id]
        return []
