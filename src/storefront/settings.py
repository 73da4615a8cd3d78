"""Application settings for the storefront.

Defaults live in the ``[custom]`` table of ``domain.toml``; every key can be
overridden with a ``STOREFRONT_<KEY>`` environment variable.
"""

import os
from dataclasses import dataclass
from typing import Any


def _custom_config(domain) -> dict[str, Any]:
    custom = domain.config.get("custom") if domain is not None else None
    return dict(custom or {})


def _lookup(custom: dict[str, Any], key: str, default: Any) -> Any:
    env_value = os.getenv(f"STOREFRONT_{key}")
    if env_value is not None:
        return env_value
    return custom.get(key, default)


@dataclass(frozen=True)
class Settings:
    ledger_max_retries: int = 3
    reconcile_retries: int = 1
    stock_queue: str = "stock-updates"
    order_queue: str = "order-notifications"
    queue_backend: str = "memory"
    customer_api_url: str | None = None
    customer_api_timeout: float = 5.0

    @classmethod
    def load(cls, domain=None) -> "Settings":
        """Build settings from the domain's custom config and the environment."""
        custom = _custom_config(domain)
        return cls(
            ledger_max_retries=int(_lookup(custom, "LEDGER_MAX_RETRIES", cls.ledger_max_retries)),
            reconcile_retries=int(_lookup(custom, "RECONCILE_RETRIES", cls.reconcile_retries)),
            stock_queue=str(_lookup(custom, "STOCK_QUEUE", cls.stock_queue)),
            order_queue=str(_lookup(custom, "ORDER_QUEUE", cls.order_queue)),
            queue_backend=str(_lookup(custom, "QUEUE_BACKEND", cls.queue_backend)).lower(),
            customer_api_url=_lookup(custom, "CUSTOMER_API_URL", None) or None,
            customer_api_timeout=float(_lookup(custom, "CUSTOMER_API_TIMEOUT", cls.customer_api_timeout)),
        )
