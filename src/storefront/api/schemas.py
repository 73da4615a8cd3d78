"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    description: str | None = None
    price: float = Field(ge=0)
    stock_available: int = Field(ge=0, default=0)
    image_url: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Espresso Beans 1kg",
                    "description": "Dark roast",
                    "price": 24.5,
                    "stock_available": 40,
                }
            ]
        }
    }


class ProductIdResponse(BaseModel):
    product_id: str


class ProductResponse(BaseModel):
    product_id: str
    name: str
    description: str | None = None
    price: float
    stock_available: int
    image_url: str | None = None
    revision: int


class StockDisplayResponse(BaseModel):
    product_id: str
    product_name: str | None = None
    stock_available: int
    last_reason: str | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartIdResponse(BaseModel):
    cart_id: str


class CartLineSchema(BaseModel):
    line_id: str
    product_id: str
    quantity: int


class CartResponse(BaseModel):
    cart_id: str
    customer_username: str
    status: str
    lines: list[CartLineSchema] = []


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    customer_id: str
    customer_name: str | None = None
    product_id: str
    quantity: int = Field(ge=1)
    status: str = "Submitted"
    order_date: datetime | None = None


class EditOrderRequest(BaseModel):
    product_id: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    status: str | None = None
    expected_revision: int | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    expected_revision: int | None = None


class CancelOrderRequest(BaseModel):
    expected_revision: int | None = None


class PaymentProofRequest(BaseModel):
    file_name: str = Field(min_length=1)
    customer_name: str | None = None
    expected_revision: int | None = None


class StockDeltaSchema(BaseModel):
    product_id: str
    product_name: str | None = None
    previous_stock: int
    new_stock: int
    reason: str
    sequence: int | None = None


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    customer_name: str | None = None
    product_id: str
    product_name: str | None = None
    quantity: int
    unit_price: float
    total_price: float
    status: str
    payment_proof: str | None = None
    order_date: datetime | None = None
    revision: int


class OrderMutationResponse(BaseModel):
    order_id: str
    order: OrderResponse | None = None
    stock_changes: list[StockDeltaSchema] = []
    undelivered_events: list[str] = []


class OrderListResponse(BaseModel):
    orders: list[OrderResponse] = []


class CheckoutResponse(BaseModel):
    orders: list[OrderMutationResponse] = []


class OrderHistoryEntry(BaseModel):
    order_id: str
    product_name: str | None = None
    quantity: int
    total_amount: float
    status: str | None = None
    previous_status: str | None = None
    is_deleted: bool = False
    order_date: datetime | None = None


class OrderHistoryResponse(BaseModel):
    customer_id: str
    orders: list[OrderHistoryEntry] = []


class StatusResponse(BaseModel):
    status: str = "ok"
