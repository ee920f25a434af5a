"""Fake notifier — records notifications in memory for test assertions."""

from uuid import uuid4

from notifications.channel.port import NotificationKind, NotificationPort


class FakeNotifier(NotificationPort):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Notification delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        should_raise: bool = False,
        failure_reason: str = "Notification delivery failed",
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.should_raise = should_raise
        self.failure_reason = failure_reason

    def send(self, kind: NotificationKind, recipient: str, payload: dict) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {
                "message_id": None,
                "status": "failed",
                "error": self.failure_reason,
            }

        message_id = f"notif-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "kind": kind,
                "recipient": recipient,
                "payload": dict(payload),
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def kinds(self) -> list[NotificationKind]:
        return [record["kind"] for record in self.sent]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Notification delivery failed"
