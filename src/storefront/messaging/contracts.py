"""Wire contracts for the stock-updates and order-notifications queues.

These are external schemas, kept apart from the Protean aggregates. One
schema per event kind, camelCase on the wire. Each event carries an
``eventId`` and the writer's ``sequence`` (the product or order revision after
the write) so consumers can discard redeliveries and stale arrivals.
"""

import json
from datetime import UTC, datetime
from typing import Literal
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

STOCK_UPDATED = "StockUpdated"
ORDER_CREATED = "OrderCreated"
ORDER_UPDATED = "OrderUpdated"
ORDER_STATUS_UPDATED = "order-status-updated"
ORDER_DELETED = "OrderDeleted"

OrderEventType = Literal["OrderCreated", "OrderUpdated", "order-status-updated", "OrderDeleted"]


class MalformedMessage(ValueError):
    """A queue message that is not JSON or does not fit any contract."""


def _new_event_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class WireEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    event_id: str = Field(default_factory=_new_event_id)
    sequence: int | None = None

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StockUpdated(WireEvent):
    type: Literal["StockUpdated"] = STOCK_UPDATED
    product_id: str
    product_name: str | None = None
    previous_stock: int
    new_stock: int
    updated_at_utc: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("updatedAtUtc", "updatedDateUtc", "updated_at_utc"),
    )
    updated_by: str
    order_id: str | None = None


class OrderNotification(WireEvent):
    type: OrderEventType
    order_id: str
    customer_id: str
    customer_name: str | None = None
    product_id: str
    product_name: str | None = None
    quantity: int
    unit_price: float
    total_amount: float
    order_date_utc: datetime
    status: str
    previous_status: str | None = None


def _normalize_keys(payload: dict) -> dict:
    # Legacy emitters wrote PascalCase keys ("ProductId", "Type")
    return {(key[:1].lower() + key[1:]) if key else key: value for key, value in payload.items()}


def parse_message(raw) -> StockUpdated | OrderNotification:
    """Decode a queue message into its contract. Raises ``MalformedMessage``."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedMessage(f"Not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise MalformedMessage("Message must be a JSON object")

    payload = _normalize_keys(raw)
    kind = payload.get("type")
    try:
        if kind == STOCK_UPDATED:
            return StockUpdated.model_validate(payload)
        if kind in (ORDER_CREATED, ORDER_UPDATED, ORDER_STATUS_UPDATED, ORDER_DELETED):
            return OrderNotification.model_validate(payload)
    except ValidationError as exc:
        raise MalformedMessage(f"{kind} message does not match its contract: {exc}") from exc
    raise MalformedMessage(f"Unknown message type: {kind!r}")
