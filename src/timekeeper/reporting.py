"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .aggregation import DayHistory
from .models import StatsSummary, Todo
from .tracker import TimeTracker


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, tracker: TimeTracker) -> None:
        self.tracker = tracker

    def print_stats(self, now: Optional[datetime] = None) -> None:
        summary = self.tracker.stats(now)
        for line in render_stats(summary):
            print(line)

    def print_history(self, days: int = 7) -> None:
        history = self.tracker.history()[:days]
        if not history:
            print("No time entries yet. Start tracking to see your history here.")
            return
        for line in render_history(history):
            print(line)

    def print_todos(self, show_done: bool = False) -> None:
        todos = self.tracker.store.list_todos()
        open_todos = [todo for todo in todos if todo.status == "open"]
        if not open_todos:
            print("No open todos.")
        for line in render_todos(open_todos):
            print(line)
        done_todos = [todo for todo in todos if todo.status == "done"]
        if show_done and done_todos:
            print()
            print(f"Done ({len(done_todos)}):")
            for line in render_todos(done_todos):
                print(line)


def render_stats(summary: StatsSummary) -> list[str]:
    return [
        f"Week {summary.current_iso_week}",
        "-" * 40,
        f"This week:      {format_duration(summary.kw_seconds)}",
        f"To go:          {format_duration(summary.to_go_seconds)}",
        f"Average / day:  {format_duration(summary.avg_per_day_seconds)}",
        f"Total:          {format_duration(summary.total_seconds)}",
        f"Overtime:       {format_signed_duration(summary.overtime_balance_seconds)}",
    ]


def render_history(history: Iterable[DayHistory]) -> list[str]:
    lines: list[str] = []
    for day in history:
        label = day.day.strftime("%A, %B %d, %Y")
        suffix = " (sick day)" if day.is_sick_day else ""
        lines.append(f"{label}  {format_duration_short(day.adjusted_seconds)} credited{suffix}")
        for company, seconds in sorted(
            day.company_seconds.items(), key=lambda item: item[1], reverse=True
        ):
            lines.append(f"  {company.value:<14} {format_duration_short(seconds)}")
    return lines


def render_todos(todos: Iterable[Todo]) -> list[str]:
    lines: list[str] = []
    for todo in todos:
        marker = "x" if todo.status == "done" else " "
        lines.append(f"[{marker}] {todo.title}  ({todo.priority}, {todo.project})  {todo.id}")
    return lines


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_signed_duration(seconds: float) -> str:
    sign = "-" if seconds < 0 else "+"
    return f"{sign}{format_duration(abs(seconds))}"


def format_duration_short(seconds: float) -> str:
    total_seconds = int(seconds)
    hours, remainder = divmod(total_seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
