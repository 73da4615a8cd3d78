"""Protean Engine runner for the storefront's notification subscribers.

Starts an Engine that reads the stock-updates and order-notifications streams
from the configured broker and hands each message to the subscribers in
``storefront.notifications.subscribers``.

Usage:
    python -m storefront.worker            # Run the engine
    python -m storefront.worker --debug    # Run with engine debug logging
"""

import argparse

import structlog
from protean.server.engine import Engine

from storefront.settings import Settings

logger = structlog.get_logger(__name__)


def build_engine(debug=False):
    from storefront.domain import storefront

    storefront.init()

    settings = Settings.load(storefront)
    if settings.queue_backend != "broker":
        # The in-memory queue lives inside the web process; nothing reaches the broker
        logger.warning(
            "Queue backend is not the broker, the engine will see no storefront traffic",
            queue_backend=settings.queue_backend,
        )
    logger.info(
        "Notification engine starting",
        stock_queue=settings.stock_queue,
        order_queue=settings.order_queue,
    )
    return Engine(storefront, debug=debug)


def main():
    parser = argparse.ArgumentParser(description="Storefront notification engine")
    parser.add_argument("--debug", action="store_true", help="Enable engine debug logging")
    args = parser.parse_args()

    engine = build_engine(debug=args.debug)
    engine.run()


if __name__ == "__main__":
    main()
