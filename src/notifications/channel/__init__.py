"""Notification channel registry.

Provides singleton access to the notification adapter. Uses the fake
adapter by default; a real provider can be selected with the
``notifier_adapter`` setting.
"""

from shared.config import get_settings

from notifications.channel.port import NotificationPort

_notifier_instance: NotificationPort | None = None


def get_notifier() -> NotificationPort:
    """Return the configured notification adapter (singleton)."""
    global _notifier_instance
    if _notifier_instance is None:
        adapter = get_settings().notifier_adapter
        if adapter == "fake":
            from notifications.channel.fake_notifier import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _notifier_instance


def set_notifier(notifier: NotificationPort) -> None:
    global _notifier_instance
    _notifier_instance = notifier


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier_instance
    _notifier_instance = None
