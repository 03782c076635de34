"""Domain models for projects, time entries and todos."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Company(str, Enum):
    MERCHANDISING = "merchandising"
    SALESCREW = "salescrew"
    INKOGNITO = "inkognito"


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two aware instants, clamped at 0."""
    delta = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return max(0, int(delta.total_seconds()))


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


@dataclass(slots=True)
class Project:
    name: str
    company: Company
    color: Optional[str] = None
    archived: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company.value,
            "color": self.color,
            "archived": self.archived,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data["name"],
            company=Company(data["company"]),
            color=data.get("color"),
            archived=bool(data.get("archived", False)),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )


@dataclass(slots=True)
class TimeEntry:
    """A block of tracked time; ``end_time`` is ``None`` while the timer runs."""

    company: Company
    start_time: datetime
    end_time: Optional[datetime] = None
    project_id: Optional[str] = None
    session_id: str = field(default_factory=new_id)
    is_sick_day: bool = False
    is_home_office: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    @property
    def duration_seconds(self) -> int:
        """Whole elapsed seconds, never negative; 0 for open entries."""
        if self.end_time is None:
            return 0
        return elapsed_seconds(self.start_time, self.end_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "company": self.company.value,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
            "session_id": self.session_id,
            "project_id": self.project_id,
            "is_sick_day": self.is_sick_day,
            "is_home_office": self.is_home_office,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        return cls(
            id=data["id"],
            company=Company(data["company"]),
            start_time=parse_timestamp(data["start_time"]),
            end_time=parse_timestamp(data.get("end_time")),
            session_id=data.get("session_id") or new_id(),
            project_id=data.get("project_id"),
            is_sick_day=bool(data.get("is_sick_day", False)),
            is_home_office=bool(data.get("is_home_office", False)),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )


@dataclass(slots=True)
class Todo:
    title: str
    description: Optional[str] = None
    source_email_from: Optional[str] = None
    source_email_subject: Optional[str] = None
    priority: str = "medium"
    project: str = "other"
    prompt: Optional[str] = None
    status: str = "open"
    done_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["done_at"] = format_timestamp(self.done_at)
        data["created_at"] = format_timestamp(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Todo":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            source_email_from=data.get("source_email_from"),
            source_email_subject=data.get("source_email_subject"),
            priority=data.get("priority") or "medium",
            project=data.get("project") or "other",
            prompt=data.get("prompt"),
            status=data.get("status") or "open",
            done_at=parse_timestamp(data.get("done_at")),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )


@dataclass(frozen=True, slots=True)
class StatsSummary:
    """Aggregated totals derived from the full entry history."""

    total_seconds: int
    current_iso_week: int
    kw_seconds: int
    avg_per_day_seconds: float
    to_go_seconds: int
    overtime_balance_seconds: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
