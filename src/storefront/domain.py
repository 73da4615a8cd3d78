"""Storefront bounded context: Catalogue stock, Orders and the Shopping Cart.

Every order mutation (checkout, admin create/edit, status change, payment-proof
upload, deletion) funnels through one Reconciliation Engine that keeps product
stock in step with order state and emits stock/order events to the queues.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

storefront = Domain(name="storefront")

logger = get_logger(__name__)
