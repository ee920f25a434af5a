"""Payments bounded context — charges, refunds and tax.

The gateway adapter moves money; the tax adapter prices it. Neither holds
order state: the order processor records the outcome on the order.
"""
