"""Helpers shared by the test modules"""

from datetime import datetime, timezone

from circle_api.services.event_broker import EventBroker


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    """2024-01-<day>T<hour>:<minute>Z"""
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


class RecordingBroker(EventBroker):
    """EventBroker that also remembers everything published, in order."""

    def __init__(self) -> None:
        super().__init__()
        self.published: list[tuple[str, str, dict]] = []

    def publish(self, circle_slug, event_type, data):
        self.published.append((circle_slug, event_type, data))
        return super().publish(circle_slug, event_type, data)

    def types(self) -> list[str]:
        return [event_type for _, event_type, _ in self.published]
