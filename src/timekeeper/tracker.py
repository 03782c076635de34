"""Timer intents and reporting on top of a record store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Optional

from .aggregation import DayHistory, compute_stats, daily_history
from .config import AggregationSettings
from .errors import TimerStateError
from .models import (
    Company,
    StatsSummary,
    TimeEntry,
    Todo,
    elapsed_seconds,
    new_id,
    utc_now,
)
from .store import RecordStore

logger = logging.getLogger(__name__)

SICK_DAY_START = time(8, 0)
SICK_DAY_END = time(16, 0)


@dataclass(slots=True)
class ManualBlock:
    """A backfilled block of work given as local ``HH:MM`` times."""

    project_id: str
    start: str
    end: str


class TimeTracker:
    """Start, stop and switch the timer, backfill entries, and report."""

    def __init__(
        self, store: RecordStore, settings: Optional[AggregationSettings] = None
    ) -> None:
        self.store = store
        self.settings = settings or AggregationSettings()

    def active_entry(self) -> Optional[TimeEntry]:
        """The open entry with the latest start, if a timer is running."""
        open_entries = [entry for entry in self.store.list_entries() if not entry.is_completed]
        if not open_entries:
            return None
        return max(open_entries, key=lambda entry: entry.start_time)

    def start(
        self,
        company: Company,
        project_id: str,
        now: Optional[datetime] = None,
        *,
        home_office: bool = False,
    ) -> TimeEntry:
        if self.active_entry() is not None:
            raise TimerStateError("A timer is already running.")
        project = self.store.get_project(project_id)
        if project.company != company:
            raise ValueError(
                f"Project {project.name!r} belongs to {project.company.value}, "
                f"not {company.value}"
            )
        moment = now or utc_now()
        entry = self.store.create_entry(
            TimeEntry(
                company=company,
                start_time=moment,
                project_id=project.id,
                is_home_office=home_office,
                created_at=moment,
            )
        )
        logger.info("Started timer for %s / %s", company.value, project.name)
        return entry

    def stop(self, now: Optional[datetime] = None) -> TimeEntry:
        current = self.active_entry()
        if current is None:
            raise TimerStateError("No timer is running.")
        entry = self.store.update_entry(current.id, end_time=now or utc_now())
        logger.info("Stopped timer after %d seconds", entry.duration_seconds)
        return entry

    def switch_project(
        self, project_id: str, now: Optional[datetime] = None
    ) -> TimeEntry:
        """Close the running entry and continue the session on another project."""
        current = self.active_entry()
        if current is None:
            raise TimerStateError("No timer is running.")
        project = self.store.get_project(project_id)
        if current.project_id == project.id:
            return current

        moment = now or utc_now()
        self.store.update_entry(current.id, end_time=moment)
        entry = self.store.create_entry(
            TimeEntry(
                company=project.company,
                start_time=moment,
                project_id=project.id,
                session_id=current.session_id,
                is_home_office=current.is_home_office,
                created_at=moment,
            )
        )
        logger.info("Switched timer to %s / %s", project.company.value, project.name)
        return entry

    def backfill(
        self,
        day: date,
        blocks: Iterable[ManualBlock],
        *,
        home_office: bool = False,
    ) -> list[TimeEntry]:
        """Record completed entries for a past day in one session."""
        blocks = list(blocks)
        if not blocks:
            raise ValueError("At least one block is required.")

        pending: list[TimeEntry] = []
        session_id = new_id()
        for block in blocks:
            start = self._local_instant(day, _parse_clock(block.start))
            end = self._local_instant(day, _parse_clock(block.end))
            if end <= start:
                raise ValueError(f"Block {block.start}-{block.end} must end after it starts")
            project = self.store.get_project(block.project_id)
            pending.append(
                TimeEntry(
                    company=project.company,
                    start_time=start,
                    end_time=end,
                    project_id=project.id,
                    session_id=session_id,
                    is_home_office=home_office,
                )
            )
        created = [self.store.create_entry(entry) for entry in pending]
        logger.info("Backfilled %d entries for %s", len(created), day.isoformat())
        return created

    def record_sick_day(self, day: date, company: Company) -> TimeEntry:
        entry = self.store.create_entry(
            TimeEntry(
                company=company,
                start_time=self._local_instant(day, SICK_DAY_START),
                end_time=self._local_instant(day, SICK_DAY_END),
                is_sick_day=True,
            )
        )
        logger.info("Recorded sick day on %s", day.isoformat())
        return entry

    def live_elapsed_seconds(
        self, now: Optional[datetime] = None, entries: Optional[list[TimeEntry]] = None
    ) -> int:
        """Seconds since the open entry started, or 0 when stopped."""
        entries = self.store.list_entries() if entries is None else entries
        open_entries = [entry for entry in entries if not entry.is_completed]
        if not open_entries:
            return 0
        current = max(open_entries, key=lambda entry: entry.start_time)
        return elapsed_seconds(current.start_time, now or utc_now())

    def stats(
        self,
        now: Optional[datetime] = None,
        live_elapsed_seconds: Optional[float] = None,
    ) -> StatsSummary:
        moment = now or utc_now()
        entries = self.store.list_entries()
        if live_elapsed_seconds is None:
            live_elapsed_seconds = self.live_elapsed_seconds(moment, entries)
        return compute_stats(entries, moment, live_elapsed_seconds, self.settings)

    def history(self) -> list[DayHistory]:
        return daily_history(self.store.list_entries(), self.settings)

    def set_todo_status(
        self, todo_id: str, status: str, done_at: Optional[datetime] = None
    ) -> Todo:
        if status == "done":
            return self.store.update_todo(
                todo_id, status="done", done_at=done_at or utc_now()
            )
        if status == "open":
            return self.store.update_todo(todo_id, status="open", done_at=None)
        raise ValueError(f"Unknown todo status: {status}")

    def _local_instant(self, day: date, clock: time) -> datetime:
        return datetime.combine(day, clock, tzinfo=self.settings.timezone)


def _parse_clock(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError as exc:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from exc
