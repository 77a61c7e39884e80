"""Closed-open time intervals and the overlap rule shared by every conflict check"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_

from ...shared.errors import ValidationError


@dataclass(frozen=True)
class Interval:
    """[start, end) with timezone-aware UTC bounds.

    Invariants:
        - start < end
        - both bounds carry a timezone and are normalized to UTC
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        for label, value in (("start", self.start), ("end", self.end)):
            if not isinstance(value, datetime):
                raise ValidationError(f"{label} must be a datetime")
            if value.tzinfo is None or value.utcoffset() is None:
                raise ValidationError(f"{label} must include a timezone offset")

        # frozen: assign normalized values through object.__setattr__
        object.__setattr__(self, "start", self.start.astimezone(timezone.utc))
        object.__setattr__(self, "end", self.end.astimezone(timezone.utc))

        if self.start >= self.end:
            raise ValidationError(
                "End time must be after start time",
                details={"start_time": self.start.isoformat(), "end_time": self.end.isoformat()},
            )

    def overlaps(self, other: "Interval") -> bool:
        """Any shared instant. Adjacent intervals (self.end == other.start) do not overlap."""
        return not (self.end <= other.start or self.start >= other.end)

    def overlap_clause(self, start_column, end_column):
        """SQL form of `overlaps` against stored [start_column, end_column)"""
        return and_(start_column < self.end, end_column > self.start)

    @classmethod
    def at(cls, instant: datetime) -> "Interval":
        """Smallest interval covering a single instant"""
        return cls(instant, instant + timedelta(microseconds=1))
