"""Notifications bounded context — customer-facing order notifications.

Delivery is fire-and-forget: a failed notification never rolls back the
order change that triggered it.
"""
