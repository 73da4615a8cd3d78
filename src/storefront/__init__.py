"""Storefront: order/inventory reconciliation for a small retail shop."""

__version__ = "0.1.0"
