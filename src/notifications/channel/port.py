"""Notification channel port — abstract interface for customer notifications.

Delivery (email, SMS, push) is an external concern. Notifying is
fire-and-forget: a failed notification never rolls back the order that
triggered it.
"""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationKind(Enum):
    ORDER_CONFIRMED = "Order_Confirmed"
    ORDER_SHIPPED = "Order_Shipped"
    ORDER_DELIVERED = "Order_Delivered"
    ORDER_CANCELLED = "Order_Cancelled"
    ORDER_REFUNDED = "Order_Refunded"


class NotificationPort(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def send(self, kind: NotificationKind, recipient: str, payload: dict) -> dict:
        """Dispatch one notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
