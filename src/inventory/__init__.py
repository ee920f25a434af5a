"""Inventory bounded context — stock ledger and reservations.

Owns the per-product stock invariant: available and reserved never go
negative, and a product is never reserved beyond what it has unless it
accepts backorders.
"""
