"""In-memory notification sink: records messages for test assertions."""

from uuid import uuid4

from storefront.notification.port import NotificationSink


class FakeNotificationSink(NotificationSink):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True

    def configure(self, should_succeed: bool = True):
        self.should_succeed = should_succeed

    def send(self, to: str, subject: str, body: str) -> dict:
        if not self.should_succeed:
            raise ConnectionError("Mail relay unavailable")

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent.append({"message_id": message_id, "to": to, "subject": subject, "body": body})
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        self.sent.clear()
        self.should_succeed = True
