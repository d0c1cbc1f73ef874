"""Fulfillment service: inventory ledger, backorders and shipment packing."""

__version__ = "0.1.0"
