"""FastAPI routes for the Storefront: products, carts and orders.

Thin adapters: schema → command/service call → response. Errors are mapped
to HTTP statuses by the handlers registered in ``storefront.api.app``.
"""

from fastapi import APIRouter, Depends, Request
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CartIdResponse,
    CartLineSchema,
    CartResponse,
    CheckoutResponse,
    CreateOrderRequest,
    EditOrderRequest,
    OrderHistoryEntry,
    OrderHistoryResponse,
    OrderListResponse,
    OrderMutationResponse,
    OrderResponse,
    PaymentProofRequest,
    ProductIdResponse,
    ProductResponse,
    RegisterProductRequest,
    StatusResponse,
    StockDeltaSchema,
    StockDisplayResponse,
    UpdateCartQuantityRequest,
    UpdateStatusRequest,
)
from storefront.bootstrap import Services
from storefront.catalogue.product.management import RegisterProduct
from storefront.catalogue.product.product import Product
from storefront.exceptions import NotFound
from storefront.notifications.read_models import OrderHistory, StockDisplay
from storefront.ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity, active_cart_for
from storefront.ordering.order.service import OrderOutcome
from storefront.persistence import load

product_router = APIRouter(prefix="/products", tags=["products"])
cart_router = APIRouter(prefix="/carts", tags=["carts"])
order_router = APIRouter(prefix="/orders", tags=["orders"])


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------
def _order_response(order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        customer_name=order.customer_name,
        product_id=str(order.product_id),
        product_name=order.product_name,
        quantity=order.quantity,
        unit_price=order.unit_price,
        total_price=order.total_price,
        status=order.status,
        payment_proof=order.payment_proof,
        order_date=order.order_date,
        revision=order.revision,
    )


def _mutation_response(outcome: OrderOutcome) -> OrderMutationResponse:
    return OrderMutationResponse(
        order_id=outcome.order_id,
        order=_order_response(outcome.order) if outcome.order is not None else None,
        stock_changes=[
            StockDeltaSchema(
                product_id=delta.product_id,
                product_name=delta.product_name,
                previous_stock=delta.previous_stock,
                new_stock=delta.new_stock,
                reason=delta.reason.value,
                sequence=delta.sequence,
            )
            for delta in outcome.deltas
        ],
        undelivered_events=outcome.undelivered,
    )


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(
        name=body.name,
        description=body.description,
        price=body.price,
        stock_available=body.stock_available,
        image_url=body.image_url,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    product = load(Product, product_id)
    return ProductResponse(
        product_id=str(product.id),
        name=product.name,
        description=product.description,
        price=product.price,
        stock_available=product.stock_available,
        image_url=product.image_url,
        revision=product.revision,
    )


@product_router.get("/{product_id}/stock", response_model=StockDisplayResponse)
async def get_stock_display(product_id: str) -> StockDisplayResponse:
    """Stock level as last seen by the notification processor."""
    try:
        display = current_domain.repository_for(StockDisplay).get(product_id)
    except ObjectNotFoundError:
        raise NotFound("StockDisplay", product_id) from None
    return StockDisplayResponse(
        product_id=str(display.product_id),
        product_name=display.product_name,
        stock_available=display.stock_available,
        last_reason=display.last_reason,
        updated_at=display.updated_at,
    )


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
@cart_router.get("/{username}", response_model=CartResponse)
async def get_cart(username: str) -> CartResponse:
    cart = active_cart_for(username)
    if cart is None:
        raise NotFound("ShoppingCart", username)
    return CartResponse(
        cart_id=str(cart.id),
        customer_username=cart.customer_username,
        status=cart.status,
        lines=[
            CartLineSchema(line_id=str(line.id), product_id=str(line.product_id), quantity=line.quantity)
            for line in cart.lines
        ],
    )


@cart_router.post("/{username}/items", status_code=201, response_model=CartIdResponse)
async def add_to_cart(username: str, body: AddToCartRequest) -> CartIdResponse:
    command = AddToCart(
        customer_username=username,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    result = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.put("/{username}/items/{line_id}", response_model=StatusResponse)
async def update_cart_quantity(username: str, line_id: str, body: UpdateCartQuantityRequest) -> StatusResponse:
    command = UpdateCartQuantity(customer_username=username, line_id=line_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{username}/items/{line_id}", response_model=StatusResponse)
async def remove_from_cart(username: str, line_id: str) -> StatusResponse:
    command = RemoveFromCart(customer_username=username, line_id=line_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.post("/{username}/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(username: str, services: Services = Depends(get_services)) -> CheckoutResponse:
    outcomes = services.orders.checkout(username)
    return CheckoutResponse(orders=[_mutation_response(outcome) for outcome in outcomes])


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderMutationResponse)
async def create_order(body: CreateOrderRequest, services: Services = Depends(get_services)) -> OrderMutationResponse:
    outcome = services.orders.place_order(
        customer_id=body.customer_id,
        product_id=body.product_id,
        quantity=body.quantity,
        status=body.status,
        customer_name=body.customer_name,
        order_date=body.order_date,
    )
    return _mutation_response(outcome)


@order_router.get("", response_model=OrderListResponse)
async def list_orders(customer_id: str | None = None, services: Services = Depends(get_services)) -> OrderListResponse:
    if customer_id:
        orders = services.orders.orders_for_customer(customer_id)
    else:
        orders = services.orders.list_orders()
    return OrderListResponse(orders=[_order_response(order) for order in orders])


@order_router.get("/history/{customer_id}", response_model=OrderHistoryResponse)
async def get_order_history(customer_id: str) -> OrderHistoryResponse:
    """Customer order timeline built from order notifications."""
    entries = (
        current_domain.repository_for(OrderHistory)
        ._dao.query.filter(customer_id=customer_id)
        .all()
        .items
    )
    entries = sorted(entries, key=lambda entry: entry.order_date, reverse=True)
    return OrderHistoryResponse(
        customer_id=customer_id,
        orders=[
            OrderHistoryEntry(
                order_id=str(entry.order_id),
                product_name=entry.product_name,
                quantity=entry.quantity,
                total_amount=entry.total_amount,
                status=entry.status,
                previous_status=entry.previous_status,
                is_deleted=entry.is_deleted,
                order_date=entry.order_date,
            )
            for entry in entries
        ],
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, services: Services = Depends(get_services)) -> OrderResponse:
    return _order_response(services.orders.get_order(order_id))


@order_router.put("/{order_id}", response_model=OrderMutationResponse)
async def edit_order(
    order_id: str, body: EditOrderRequest, services: Services = Depends(get_services)
) -> OrderMutationResponse:
    outcome = services.orders.edit_order(
        order_id,
        product_id=body.product_id,
        quantity=body.quantity,
        status=body.status,
        expected_revision=body.expected_revision,
    )
    return _mutation_response(outcome)


@order_router.put("/{order_id}/status", response_model=OrderMutationResponse)
async def update_order_status(
    order_id: str, body: UpdateStatusRequest, services: Services = Depends(get_services)
) -> OrderMutationResponse:
    outcome = services.orders.update_status(order_id, body.status, expected_revision=body.expected_revision)
    return _mutation_response(outcome)


@order_router.post("/{order_id}/cancel", response_model=OrderMutationResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest, services: Services = Depends(get_services)
) -> OrderMutationResponse:
    outcome = services.orders.cancel_order(order_id, expected_revision=body.expected_revision)
    return _mutation_response(outcome)


@order_router.post("/{order_id}/payment-proof", response_model=OrderMutationResponse)
async def upload_payment_proof(
    order_id: str, body: PaymentProofRequest, services: Services = Depends(get_services)
) -> OrderMutationResponse:
    outcome = services.orders.record_payment_proof(
        order_id,
        body.file_name,
        customer_name=body.customer_name,
        expected_revision=body.expected_revision,
    )
    return _mutation_response(outcome)


@order_router.delete("/{order_id}", response_model=OrderMutationResponse)
async def delete_order(
    order_id: str, expected_revision: int | None = None, services: Services = Depends(get_services)
) -> OrderMutationResponse:
    outcome = services.orders.delete_order(order_id, expected_revision=expected_revision)
    return _mutation_response(outcome)
