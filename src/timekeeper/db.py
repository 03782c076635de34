"""SQLite database layer for projects, time entries and todos."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import RecordNotFoundError
from .models import Company, Project, TimeEntry, Todo, format_timestamp, parse_timestamp

_UNSET = object()


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS projects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            company TEXT NOT NULL
                CHECK (company IN ('merchandising', 'salescrew', 'inkognito')),
            color TEXT,
            archived INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS time_entries (
            id TEXT PRIMARY KEY,
            company TEXT NOT NULL
                CHECK (company IN ('merchandising', 'salescrew', 'inkognito')),
            start_time TEXT NOT NULL,
            end_time TEXT,
            session_id TEXT NOT NULL,
            project_id TEXT REFERENCES projects(id) ON DELETE SET NULL,
            is_sick_day INTEGER NOT NULL DEFAULT 0,
            is_home_office INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_time_entries_session
            ON time_entries(session_id);
        CREATE INDEX IF NOT EXISTS idx_time_entries_start_time
            ON time_entries(start_time DESC);

        CREATE TABLE IF NOT EXISTS todos (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            source_email_from TEXT,
            source_email_subject TEXT,
            priority TEXT NOT NULL DEFAULT 'medium',
            project TEXT NOT NULL DEFAULT 'other',
            prompt TEXT,
            status TEXT NOT NULL DEFAULT 'open',
            done_at TEXT,
            created_at TEXT NOT NULL
        );
        """
    )


def insert_project(conn: sqlite3.Connection, project: Project) -> Project:
    conn.execute(
        """
        INSERT INTO projects (id, name, company, color, archived, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            project.id,
            project.name,
            project.company.value,
            project.color,
            1 if project.archived else 0,
            format_timestamp(project.created_at),
        ),
    )
    return project


def fetch_projects(
    conn: sqlite3.Connection,
    *,
    company: Optional[Company] = None,
    include_archived: bool = False,
) -> list[Project]:
    clauses: list[str] = []
    params: list[object] = []
    if not include_archived:
        clauses.append("archived = 0")
    if company is not None:
        clauses.append("company = ?")
        params.append(company.value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM projects {where} ORDER BY name COLLATE NOCASE", params
    )
    return [_row_to_project(row) for row in rows]


def fetch_project(conn: sqlite3.Connection, project_id: str) -> Project:
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    if row is None:
        raise RecordNotFoundError("project", project_id)
    return _row_to_project(row)


def update_project(
    conn: sqlite3.Connection,
    project_id: str,
    *,
    name: Optional[str] = None,
    color: object = _UNSET,
    archived: Optional[bool] = None,
) -> Project:
    """Update a single project record; pass ``color=None`` to clear it."""
    changes: dict[str, object] = {}
    if name is not None:
        changes["name"] = name
    if color is not _UNSET:
        changes["color"] = color
    if archived is not None:
        changes["archived"] = 1 if archived else 0
    _apply_update(conn, "projects", "project", project_id, changes)
    return fetch_project(conn, project_id)


def insert_entry(conn: sqlite3.Connection, entry: TimeEntry) -> TimeEntry:
    conn.execute(
        """
        INSERT INTO time_entries (
            id,
            company,
            start_time,
            end_time,
            session_id,
            project_id,
            is_sick_day,
            is_home_office,
            created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.id,
            entry.company.value,
            format_timestamp(entry.start_time),
            format_timestamp(entry.end_time),
            entry.session_id,
            entry.project_id,
            1 if entry.is_sick_day else 0,
            1 if entry.is_home_office else 0,
            format_timestamp(entry.created_at),
        ),
    )
    return entry


def fetch_entries(conn: sqlite3.Connection) -> list[TimeEntry]:
    """Fetch every time entry, newest start first."""
    rows = conn.execute("SELECT * FROM time_entries ORDER BY start_time DESC")
    return [_row_to_entry(row) for row in rows]


def fetch_entry(conn: sqlite3.Connection, entry_id: str) -> TimeEntry:
    row = conn.execute(
        "SELECT * FROM time_entries WHERE id = ?", (entry_id,)
    ).fetchone()
    if row is None:
        raise RecordNotFoundError("time entry", entry_id)
    return _row_to_entry(row)


def update_entry(
    conn: sqlite3.Connection, entry_id: str, changes: dict[str, Any]
) -> TimeEntry:
    """Update columns of one time entry; ``changes`` maps field to value."""
    columns: dict[str, object] = {}
    for key, value in changes.items():
        if key in ("start_time", "end_time"):
            columns[key] = format_timestamp(value)
        elif key in ("is_sick_day", "is_home_office"):
            columns[key] = 1 if value else 0
        elif key == "company":
            columns[key] = Company(value).value
        elif key in ("project_id", "session_id"):
            columns[key] = value
        else:
            raise ValueError(f"Unknown time entry field: {key}")
    _apply_update(conn, "time_entries", "time entry", entry_id, columns)
    return fetch_entry(conn, entry_id)


def delete_entry(conn: sqlite3.Connection, entry_id: str) -> None:
    cur = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
    if cur.rowcount == 0:
        raise RecordNotFoundError("time entry", entry_id)


def insert_todo(conn: sqlite3.Connection, todo: Todo) -> Todo:
    conn.execute(
        """
        INSERT INTO todos (
            id,
            title,
            description,
            source_email_from,
            source_email_subject,
            priority,
            project,
            prompt,
            status,
            done_at,
            created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            todo.id,
            todo.title,
            todo.description,
            todo.source_email_from,
            todo.source_email_subject,
            todo.priority,
            todo.project,
            todo.prompt,
            todo.status,
            format_timestamp(todo.done_at),
            format_timestamp(todo.created_at),
        ),
    )
    return todo


def fetch_todos(
    conn: sqlite3.Connection, *, status: Optional[str] = None
) -> list[Todo]:
    if status:
        rows = conn.execute(
            "SELECT * FROM todos WHERE status = ? ORDER BY created_at DESC", (status,)
        )
    else:
        rows = conn.execute("SELECT * FROM todos ORDER BY created_at DESC")
    return [_row_to_todo(row) for row in rows]


def fetch_todo(conn: sqlite3.Connection, todo_id: str) -> Todo:
    row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
    if row is None:
        raise RecordNotFoundError("todo", todo_id)
    return _row_to_todo(row)


def update_todo(
    conn: sqlite3.Connection, todo_id: str, changes: dict[str, Any]
) -> Todo:
    columns: dict[str, object] = {}
    for key, value in changes.items():
        if key == "done_at":
            columns[key] = format_timestamp(value)
        elif key in ("status", "prompt", "priority", "project", "title", "description"):
            columns[key] = value
        else:
            raise ValueError(f"Unknown todo field: {key}")
    _apply_update(conn, "todos", "todo", todo_id, columns)
    return fetch_todo(conn, todo_id)


def delete_todo(conn: sqlite3.Connection, todo_id: str) -> None:
    cur = conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
    if cur.rowcount == 0:
        raise RecordNotFoundError("todo", todo_id)


def _apply_update(
    conn: sqlite3.Connection,
    table: str,
    kind: str,
    record_id: str,
    columns: dict[str, object],
) -> None:
    if not columns:
        if conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (record_id,)).fetchone():
            return
        raise RecordNotFoundError(kind, record_id)
    assignments = ", ".join(f"{column} = ?" for column in columns)
    cur = conn.execute(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        [*columns.values(), record_id],
    )
    if cur.rowcount == 0:
        raise RecordNotFoundError(kind, record_id)


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        company=Company(row["company"]),
        color=row["color"],
        archived=bool(row["archived"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def _row_to_entry(row: sqlite3.Row) -> TimeEntry:
    return TimeEntry(
        id=row["id"],
        company=Company(row["company"]),
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        session_id=row["session_id"],
        project_id=row["project_id"],
        is_sick_day=bool(row["is_sick_day"]),
        is_home_office=bool(row["is_home_office"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def _row_to_todo(row: sqlite3.Row) -> Todo:
    return Todo(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        source_email_from=row["source_email_from"],
        source_email_subject=row["source_email_subject"],
        priority=row["priority"],
        project=row["project"],
        prompt=row["prompt"],
        status=row["status"],
        done_at=parse_timestamp(row["done_at"]),
        created_at=parse_timestamp(row["created_at"]),
    )
