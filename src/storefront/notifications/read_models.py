"""Read models kept up to date from the stock-updates and order-notifications queues."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront

REASON_MAX_LENGTH = 255


@storefront.projection
class StockDisplay:
    """Last known stock level per product, for catalogue pages."""

    product_id = Identifier(identifier=True, required=True)
    product_name = String(max_length=100)
    stock_available = Integer(default=0)
    last_reason = String(max_length=REASON_MAX_LENGTH)
    # None until a sequenced event arrives; products start at sequence 0
    last_sequence = Integer()
    updated_at = DateTime()


@storefront.projection
class OrderHistory:
    """Customer-facing order timeline, including deleted orders."""

    order_id = Identifier(identifier=True, required=True)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    product_id = Identifier()
    product_name = String(max_length=100)
    quantity = Integer(default=0)
    unit_price = Float(default=0.0)
    total_amount = Float(default=0.0)
    status = String(max_length=20)
    previous_status = String(max_length=20)
    is_deleted = Boolean(default=False)
    last_event = String(max_length=50)
    last_sequence = Integer()
    order_date = DateTime()
    updated_at = DateTime()
