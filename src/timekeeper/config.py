"""Configuration models and helpers for the time tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from zoneinfo import ZoneInfo


REFERENCE_TIMEZONE = "Europe/Vienna"

PAUSE_SECONDS = 1800
PAUSE_THRESHOLD = 21600
WEEKLY_TARGET = 138600
SICK_DAY_SECONDS = 28800
INITIAL_OVERTIME_CARRY = 154800

DEFAULT_API_URL = "http://127.0.0.1:8765"


@dataclass(frozen=True, slots=True)
class AggregationSettings:
    """Business rules applied when turning entries into day and week totals."""

    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(REFERENCE_TIMEZONE))
    pause_seconds: int = PAUSE_SECONDS
    pause_threshold: int = PAUSE_THRESHOLD
    weekly_target: int = WEEKLY_TARGET
    sick_day_seconds: int = SICK_DAY_SECONDS
    initial_overtime_carry: int = INITIAL_OVERTIME_CARRY


@dataclass(slots=True)
class ClientSettings:
    """How the CLI reaches the web API."""

    api_url: str = DEFAULT_API_URL
    timeout: timedelta = timedelta(seconds=5)

    @classmethod
    def from_values(
        cls,
        api_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> "ClientSettings":
        return cls(
            api_url=(api_url or DEFAULT_API_URL).rstrip("/"),
            timeout=timedelta(
                seconds=timeout_seconds if timeout_seconds is not None else 5.0
            ),
        )
