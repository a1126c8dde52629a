"""Notification sink registry. Defaults to the in-memory sink."""

from storefront.notification.fake_sink import FakeNotificationSink
from storefront.notification.port import NotificationSink

_current_sink: NotificationSink | None = None


def get_sink() -> NotificationSink:
    global _current_sink
    if _current_sink is None:
        _current_sink = FakeNotificationSink()
    return _current_sink


def set_sink(sink: NotificationSink) -> None:
    global _current_sink
    _current_sink = sink


def reset_sink() -> None:
    global _current_sink
    _current_sink = None
