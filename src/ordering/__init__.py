"""Ordering bounded context — Shopping Cart and Order Management.

Handles the shopping cart, pricing and coupons, and the order lifecycle from
checkout through payment, shipment and delivery (or cancellation).
"""
