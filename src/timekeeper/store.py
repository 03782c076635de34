"""Record stores: SQLite, remote API, and a local JSON fallback."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

import requests

from . import db
from .config import ClientSettings
from .errors import RecordNotFoundError, StoreUnavailableError
from .models import Company, Project, TimeEntry, Todo, format_timestamp

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Create/read/update/delete over projects, time entries and todos."""

    def list_projects(
        self, company: Optional[Company] = None, include_archived: bool = False
    ) -> list[Project]: ...

    def get_project(self, project_id: str) -> Project: ...

    def create_project(self, project: Project) -> Project: ...

    def update_project(self, project_id: str, **changes: Any) -> Project: ...

    def list_entries(self) -> list[TimeEntry]: ...

    def create_entry(self, entry: TimeEntry) -> TimeEntry: ...

    def update_entry(self, entry_id: str, **changes: Any) -> TimeEntry: ...

    def delete_entry(self, entry_id: str) -> None: ...

    def list_todos(self, status: Optional[str] = None) -> list[Todo]: ...

    def create_todo(self, todo: Todo) -> Todo: ...

    def update_todo(self, todo_id: str, **changes: Any) -> Todo: ...

    def delete_todo(self, todo_id: str) -> None: ...


class SqliteRecordStore:
    """Store backed by the SQLite database used by the web API."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def list_projects(
        self, company: Optional[Company] = None, include_archived: bool = False
    ) -> list[Project]:
        with db.database_connection(self.db_path) as conn:
            return db.fetch_projects(
                conn, company=company, include_archived=include_archived
            )

    def get_project(self, project_id: str) -> Project:
        with db.database_connection(self.db_path) as conn:
            return db.fetch_project(conn, project_id)

    def create_project(self, project: Project) -> Project:
        with db.database_connection(self.db_path) as conn:
            return db.insert_project(conn, project)

    def update_project(self, project_id: str, **changes: Any) -> Project:
        with db.database_connection(self.db_path) as conn:
            return db.update_project(conn, project_id, **changes)

    def list_entries(self) -> list[TimeEntry]:
        with db.database_connection(self.db_path) as conn:
            return db.fetch_entries(conn)

    def create_entry(self, entry: TimeEntry) -> TimeEntry:
        with db.database_connection(self.db_path) as conn:
            return db.insert_entry(conn, entry)

    def update_entry(self, entry_id: str, **changes: Any) -> TimeEntry:
        with db.database_connection(self.db_path) as conn:
            return db.update_entry(conn, entry_id, changes)

    def delete_entry(self, entry_id: str) -> None:
        with db.database_connection(self.db_path) as conn:
            db.delete_entry(conn, entry_id)

    def list_todos(self, status: Optional[str] = None) -> list[Todo]:
        with db.database_connection(self.db_path) as conn:
            return db.fetch_todos(conn, status=status)

    def create_todo(self, todo: Todo) -> Todo:
        with db.database_connection(self.db_path) as conn:
            return db.insert_todo(conn, todo)

    def update_todo(self, todo_id: str, **changes: Any) -> Todo:
        with db.database_connection(self.db_path) as conn:
            return db.update_todo(conn, todo_id, changes)

    def delete_todo(self, todo_id: str) -> None:
        with db.database_connection(self.db_path) as conn:
            db.delete_todo(conn, todo_id)


class LocalRecordStore:
    """Best-effort JSON file store; the last write wins."""

    _SECTIONS = ("projects", "time_entries", "todos")

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def list_projects(
        self, company: Optional[Company] = None, include_archived: bool = False
    ) -> list[Project]:
        projects = [Project.from_dict(item) for item in self._load()["projects"]]
        projects = [
            project
            for project in projects
            if (include_archived or not project.archived)
            and (company is None or project.company == company)
        ]
        return sorted(projects, key=lambda project: project.name.casefold())

    def get_project(self, project_id: str) -> Project:
        return Project.from_dict(self._find("projects", "project", project_id))

    def create_project(self, project: Project) -> Project:
        self._insert("projects", project.to_dict())
        return project

    def update_project(self, project_id: str, **changes: Any) -> Project:
        data = self._update("projects", "project", project_id, changes)
        return Project.from_dict(data)

    def list_entries(self) -> list[TimeEntry]:
        entries = [TimeEntry.from_dict(item) for item in self._load()["time_entries"]]
        return sorted(entries, key=lambda entry: entry.start_time, reverse=True)

    def create_entry(self, entry: TimeEntry) -> TimeEntry:
        self._insert("time_entries", entry.to_dict())
        return entry

    def update_entry(self, entry_id: str, **changes: Any) -> TimeEntry:
        data = self._update("time_entries", "time entry", entry_id, changes)
        return TimeEntry.from_dict(data)

    def delete_entry(self, entry_id: str) -> None:
        self._delete("time_entries", "time entry", entry_id)

    def list_todos(self, status: Optional[str] = None) -> list[Todo]:
        todos = [Todo.from_dict(item) for item in self._load()["todos"]]
        if status:
            todos = [todo for todo in todos if todo.status == status]
        return sorted(todos, key=lambda todo: todo.created_at, reverse=True)

    def create_todo(self, todo: Todo) -> Todo:
        self._insert("todos", todo.to_dict())
        return todo

    def update_todo(self, todo_id: str, **changes: Any) -> Todo:
        return Todo.from_dict(self._update("todos", "todo", todo_id, changes))

    def delete_todo(self, todo_id: str) -> None:
        self._delete("todos", "todo", todo_id)

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        data: dict[str, Any] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable local store at %s", self.path)
                data = {}
        return {section: list(data.get(section) or []) for section in self._SECTIONS}

    def _save(self, data: dict[str, list[dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _find(self, section: str, kind: str, record_id: str) -> dict[str, Any]:
        for item in self._load()[section]:
            if item["id"] == record_id:
                return item
        raise RecordNotFoundError(kind, record_id)

    def _insert(self, section: str, record: dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data[section] = [item for item in data[section] if item["id"] != record["id"]]
            data[section].append(record)
            self._save(data)

    def _update(
        self, section: str, kind: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        with self._lock:
            data = self._load()
            for item in data[section]:
                if item["id"] == record_id:
                    item.update(_serialize_changes(changes))
                    self._save(data)
                    return item
        raise RecordNotFoundError(kind, record_id)

    def _delete(self, section: str, kind: str, record_id: str) -> None:
        with self._lock:
            data = self._load()
            remaining = [item for item in data[section] if item["id"] != record_id]
            if len(remaining) == len(data[section]):
                raise RecordNotFoundError(kind, record_id)
            data[section] = remaining
            self._save(data)


class ApiRecordStore:
    """Store that talks to the Timekeeper web API."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._session = session or requests.Session()

    def list_projects(
        self, company: Optional[Company] = None, include_archived: bool = False
    ) -> list[Project]:
        params: dict[str, Any] = {"include_archived": "true" if include_archived else "false"}
        if company is not None:
            params["company"] = company.value
        payload = self._request("GET", "/api/projects", "project", params=params)
        return [Project.from_dict(item) for item in payload]

    def get_project(self, project_id: str) -> Project:
        payload = self._request(
            "GET", f"/api/projects/{project_id}", "project", record_id=project_id
        )
        return Project.from_dict(payload)

    def create_project(self, project: Project) -> Project:
        payload = self._request(
            "POST", "/api/projects", "project", json=project.to_dict()
        )
        return Project.from_dict(payload)

    def update_project(self, project_id: str, **changes: Any) -> Project:
        payload = self._request(
            "PATCH",
            f"/api/projects/{project_id}",
            "project",
            record_id=project_id,
            json=_serialize_changes(changes),
        )
        return Project.from_dict(payload)

    def list_entries(self) -> list[TimeEntry]:
        payload = self._request("GET", "/api/time-entries", "time entry")
        return [TimeEntry.from_dict(item) for item in payload]

    def create_entry(self, entry: TimeEntry) -> TimeEntry:
        payload = self._request(
            "POST", "/api/time-entries", "time entry", json=entry.to_dict()
        )
        return TimeEntry.from_dict(payload)

    def update_entry(self, entry_id: str, **changes: Any) -> TimeEntry:
        payload = self._request(
            "PATCH",
            f"/api/time-entries/{entry_id}",
            "time entry",
            record_id=entry_id,
            json=_serialize_changes(changes),
        )
        return TimeEntry.from_dict(payload)

    def delete_entry(self, entry_id: str) -> None:
        self._request(
            "DELETE", f"/api/time-entries/{entry_id}", "time entry", record_id=entry_id
        )

    def list_todos(self, status: Optional[str] = None) -> list[Todo]:
        params = {"status": status} if status else None
        payload = self._request("GET", "/api/todos", "todo", params=params)
        return [Todo.from_dict(item) for item in payload]

    def create_todo(self, todo: Todo) -> Todo:
        payload = self._request("POST", "/api/todos", "todo", json=todo.to_dict())
        return Todo.from_dict(payload)

    def update_todo(self, todo_id: str, **changes: Any) -> Todo:
        payload = self._request(
            "PATCH",
            f"/api/todos/{todo_id}",
            "todo",
            record_id=todo_id,
            json=_serialize_changes(changes),
        )
        return Todo.from_dict(payload)

    def delete_todo(self, todo_id: str) -> None:
        self._request("DELETE", f"/api/todos/{todo_id}", "todo", record_id=todo_id)

    def _request(
        self,
        method: str,
        path: str,
        kind: str,
        *,
        record_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self.settings.api_url}{path}"
        try:
            response = self._session.request(
                method, url, timeout=self.settings.timeout.total_seconds(), **kwargs
            )
        except requests.RequestException as exc:
            raise StoreUnavailableError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404 and record_id is not None:
            raise RecordNotFoundError(kind, record_id)
        if response.status_code >= 500:
            raise StoreUnavailableError(
                f"{method} {url} returned HTTP {response.status_code}"
            )
        if response.status_code >= 400:
            raise ValueError(_error_detail(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


class FallbackRecordStore:
    """Use the primary store until it is unreachable, then the local one.

    Once the primary store fails, every later call goes to the fallback for
    the lifetime of this object.
    """

    def __init__(self, primary: RecordStore, fallback: RecordStore) -> None:
        self.primary = primary
        self.fallback = fallback
        self.using_fallback = False

    def _call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        if not self.using_fallback:
            try:
                return getattr(self.primary, name)(*args, **kwargs)
            except StoreUnavailableError as exc:
                logger.warning("API not available, using local storage: %s", exc)
                self.using_fallback = True
        return getattr(self.fallback, name)(*args, **kwargs)

    def list_projects(
        self, company: Optional[Company] = None, include_archived: bool = False
    ) -> list[Project]:
        return self._call("list_projects", company, include_archived)

    def get_project(self, project_id: str) -> Project:
        return self._call("get_project", project_id)

    def create_project(self, project: Project) -> Project:
        return self._call("create_project", project)

    def update_project(self, project_id: str, **changes: Any) -> Project:
        return self._call("update_project", project_id, **changes)

    def list_entries(self) -> list[TimeEntry]:
        return self._call("list_entries")

    def create_entry(self, entry: TimeEntry) -> TimeEntry:
        return self._call("create_entry", entry)

    def update_entry(self, entry_id: str, **changes: Any) -> TimeEntry:
        return self._call("update_entry", entry_id, **changes)

    def delete_entry(self, entry_id: str) -> None:
        self._call("delete_entry", entry_id)

    def list_todos(self, status: Optional[str] = None) -> list[Todo]:
        return self._call("list_todos", status)

    def create_todo(self, todo: Todo) -> Todo:
        return self._call("create_todo", todo)

    def update_todo(self, todo_id: str, **changes: Any) -> Todo:
        return self._call("update_todo", todo_id, **changes)

    def delete_todo(self, todo_id: str) -> None:
        self._call("delete_todo", todo_id)


def _serialize_changes(changes: dict[str, Any]) -> dict[str, Any]:
    serialized: dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, datetime):
            value = format_timestamp(value)
        elif isinstance(value, Company):
            value = value.value
        serialized[key] = value
    return serialized


def _error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)
