"""Shared values and builders for the test suite."""

from datetime import datetime
from zoneinfo import ZoneInfo

from timekeeper.models import Company, TimeEntry

VIENNA = ZoneInfo("Europe/Vienna")

# Wednesday of ISO week 43; the week runs Monday 2026-10-19 to Sunday 2026-10-25.
NOW = datetime(2026, 10, 21, 12, 0, tzinfo=VIENNA)


def local(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=VIENNA)


def make_entry(start, end, *, company=Company.MERCHANDISING, sick=False, project_id=None):
    return TimeEntry(
        company=company,
        start_time=start,
        end_time=end,
        project_id=project_id,
        is_sick_day=sick,
    )
