"""Notification sink port: fire-and-forget customer messages."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> dict:
        """Send a message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
