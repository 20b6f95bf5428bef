"""
Data models for metrics backend queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass
class RangeQuery:
    """Time range and query shaping shared by every chart of a dashboard."""

    start: datetime | None = None
    end: datetime | None = None
    duration: float = 1800.0  # seconds, used when start is not set
    step: float = 15.0  # seconds
    rate_interval: str = "1m"
    rate_func: str = "rate"
    quantiles: list[str] = field(default_factory=list)
    avg: bool = True

    def bounds(self) -> tuple[datetime, datetime]:
        """Return (start, end), defaulting end to now and start to end - duration."""
        end = self.end or datetime.now(timezone.utc)
        start = self.start or end - timedelta(seconds=self.duration)
        return start, end


@dataclass
class SampleStream:
    """One series of a range query result."""

    metric: dict[str, str] = field(default_factory=dict)
    values: list[tuple[float, float]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> SampleStream:
        return cls(
            metric=dict(data.get("metric") or {}),
            values=[(float(ts), float(v)) for ts, v in data.get("values") or []],
        )


# Histogram results: statistic ("avg", "0.99", ...) -> series
Histogram = dict[str, list[SampleStream]]
