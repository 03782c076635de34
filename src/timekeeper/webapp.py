"""FastAPI application that exposes the records, timer and stats over HTTP."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from .aggregation import DayHistory
from .config import AggregationSettings
from .errors import RecordNotFoundError, TimerStateError
from .models import Company, Project, TimeEntry, Todo, new_id, utc_now
from .paths import get_db_path
from .store import SqliteRecordStore
from .tracker import ManualBlock, TimeTracker

logger = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]
TodoProject = Literal["merchandising", "salescrew", "inkognito", "other"]
TodoStatus = Literal["open", "done"]


class ProjectCreate(BaseModel):
    name: str
    company: Company
    color: Optional[str] = None
    id: Optional[str] = None
    archived: bool = False
    created_at: Optional[AwareDatetime] = None

    model_config = ConfigDict(extra="forbid")


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    archived: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class EntryCreate(BaseModel):
    company: Company
    start_time: AwareDatetime
    end_time: Optional[AwareDatetime] = None
    session_id: Optional[str] = None
    project_id: Optional[str] = None
    is_sick_day: bool = False
    is_home_office: bool = False
    id: Optional[str] = None
    created_at: Optional[AwareDatetime] = None

    model_config = ConfigDict(extra="forbid")


class EntryUpdate(BaseModel):
    company: Optional[Company] = None
    start_time: Optional[AwareDatetime] = None
    end_time: Optional[AwareDatetime] = None
    project_id: Optional[str] = None
    is_sick_day: Optional[bool] = None
    is_home_office: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class TimerStart(BaseModel):
    company: Company
    project_id: str
    home_office: bool = False

    model_config = ConfigDict(extra="forbid")


class TimerSwitch(BaseModel):
    project_id: str

    model_config = ConfigDict(extra="forbid")


class BlockPayload(BaseModel):
    project_id: str
    start_time: str = Field(description="Local start time as HH:MM.")
    end_time: str = Field(description="Local end time as HH:MM.")

    model_config = ConfigDict(extra="forbid")


class BackfillPayload(BaseModel):
    day: date
    blocks: List[BlockPayload]
    home_office: bool = False

    model_config = ConfigDict(extra="forbid")


class SickDayPayload(BaseModel):
    day: date
    company: Company

    model_config = ConfigDict(extra="forbid")


class TodoCreate(BaseModel):
    title: str
    description: Optional[str] = None
    source_email_from: Optional[str] = None
    source_email_subject: Optional[str] = None
    priority: Priority = "medium"
    project: TodoProject = "other"
    prompt: Optional[str] = None
    status: TodoStatus = "open"
    done_at: Optional[AwareDatetime] = None
    id: Optional[str] = None
    created_at: Optional[AwareDatetime] = None

    model_config = ConfigDict(extra="forbid")


class TodoUpdate(BaseModel):
    status: Optional[TodoStatus] = None
    done_at: Optional[AwareDatetime] = None
    prompt: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[AggregationSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    store = SqliteRecordStore(resolved_db_path)
    tracker = TimeTracker(store, settings or AggregationSettings())

    app = FastAPI(title="Timekeeper", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.tracker = tracker

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        active = request.app.state.tracker.active_entry()
        return {
            "database_path": str(request.app.state.db_path),
            "timer_running": active is not None,
            "active_entry": active.to_dict() if active else None,
        }

    @app.get("/api/projects")
    def list_projects(
        company: Optional[Company] = Query(default=None),
        include_archived: bool = Query(default=False),
    ) -> List[Dict[str, Any]]:
        projects = store.list_projects(company=company, include_archived=include_archived)
        return [project.to_dict() for project in projects]

    @app.get("/api/projects/{project_id}")
    def get_project(project_id: str) -> Dict[str, Any]:
        with _translate_errors():
            return store.get_project(project_id).to_dict()

    @app.post("/api/projects", status_code=201)
    def create_project(payload: ProjectCreate) -> Dict[str, Any]:
        name = payload.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name and company are required")
        project = Project(
            name=name,
            company=payload.company,
            color=payload.color or None,
            archived=payload.archived,
            id=payload.id or new_id(),
            created_at=payload.created_at or utc_now(),
        )
        with _translate_errors():
            return store.create_project(project).to_dict()

    @app.patch("/api/projects/{project_id}")
    def update_project(project_id: str, payload: ProjectUpdate) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        _reject_nulls(updates, ("name", "archived"))
        with _translate_errors():
            return store.update_project(project_id, **updates).to_dict()

    @app.get("/api/time-entries")
    def list_entries() -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in store.list_entries()]

    @app.post("/api/time-entries", status_code=201)
    def create_entry(payload: EntryCreate) -> Dict[str, Any]:
        if payload.end_time is not None and payload.end_time < payload.start_time:
            raise HTTPException(
                status_code=400, detail="end_time must not be before start_time"
            )
        entry = TimeEntry(
            company=payload.company,
            start_time=payload.start_time,
            end_time=payload.end_time,
            project_id=payload.project_id,
            session_id=payload.session_id or new_id(),
            is_sick_day=payload.is_sick_day,
            is_home_office=payload.is_home_office,
            id=payload.id or new_id(),
            created_at=payload.created_at or utc_now(),
        )
        with _translate_errors():
            return store.create_entry(entry).to_dict()

    @app.patch("/api/time-entries/{entry_id}")
    def update_entry(entry_id: str, payload: EntryUpdate) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        _reject_nulls(updates, ("company", "start_time", "is_sick_day", "is_home_office"))
        with _translate_errors():
            if "start_time" in updates or "end_time" in updates:
                current = _find_entry(store.list_entries(), entry_id)
                start = updates.get("start_time", current.start_time)
                end = updates.get("end_time", current.end_time)
                if end is not None and end < start:
                    raise HTTPException(
                        status_code=400, detail="end_time must not be before start_time"
                    )
            return store.update_entry(entry_id, **updates).to_dict()

    @app.delete("/api/time-entries/{entry_id}", status_code=204)
    def delete_entry(entry_id: str) -> Response:
        with _translate_errors():
            store.delete_entry(entry_id)
        return Response(status_code=204)

    @app.post("/api/time-entries/backfill", status_code=201)
    def backfill(payload: BackfillPayload, request: Request) -> List[Dict[str, Any]]:
        blocks = [
            ManualBlock(project_id=block.project_id, start=block.start_time, end=block.end_time)
            for block in payload.blocks
        ]
        with _translate_errors():
            created = request.app.state.tracker.backfill(
                payload.day, blocks, home_office=payload.home_office
            )
        return [entry.to_dict() for entry in created]

    @app.post("/api/sick-days", status_code=201)
    def sick_day(payload: SickDayPayload, request: Request) -> Dict[str, Any]:
        with _translate_errors():
            entry = request.app.state.tracker.record_sick_day(payload.day, payload.company)
        return entry.to_dict()

    @app.post("/api/timer/start", status_code=201)
    def start_timer(payload: TimerStart, request: Request) -> Dict[str, Any]:
        with _translate_errors():
            entry = request.app.state.tracker.start(
                payload.company, payload.project_id, home_office=payload.home_office
            )
        return entry.to_dict()

    @app.post("/api/timer/stop")
    def stop_timer(request: Request) -> Dict[str, Any]:
        with _translate_errors():
            entry = request.app.state.tracker.stop()
        return entry.to_dict()

    @app.post("/api/timer/switch")
    def switch_timer(payload: TimerSwitch, request: Request) -> Dict[str, Any]:
        with _translate_errors():
            entry = request.app.state.tracker.switch_project(payload.project_id)
        return entry.to_dict()

    @app.get("/api/stats")
    def stats(
        request: Request,
        live_elapsed: Optional[int] = Query(
            default=None,
            ge=0,
            description="Seconds elapsed on the running timer; derived when omitted.",
        ),
    ) -> Dict[str, Any]:
        summary = request.app.state.tracker.stats(live_elapsed_seconds=live_elapsed)
        return summary.to_dict()

    @app.get("/api/history")
    def history(request: Request) -> Dict[str, Any]:
        return {
            "days": [_day_to_payload(day) for day in request.app.state.tracker.history()]
        }

    @app.get("/api/todos")
    def list_todos(status: Optional[TodoStatus] = Query(default=None)) -> List[Dict[str, Any]]:
        return [todo.to_dict() for todo in store.list_todos(status=status)]

    @app.post("/api/todos", status_code=201)
    def create_todo(payload: TodoCreate) -> Dict[str, Any]:
        title = payload.title.strip()
        if not title:
            raise HTTPException(status_code=400, detail="title is required")
        todo = Todo(
            title=title,
            description=payload.description or None,
            source_email_from=payload.source_email_from or None,
            source_email_subject=payload.source_email_subject or None,
            priority=payload.priority,
            project=payload.project,
            prompt=payload.prompt or None,
            status=payload.status,
            done_at=(payload.done_at or utc_now()) if payload.status == "done" else None,
            id=payload.id or new_id(),
            created_at=payload.created_at or utc_now(),
        )
        with _translate_errors():
            return store.create_todo(todo).to_dict()

    @app.patch("/api/todos/{todo_id}")
    def update_todo(todo_id: str, payload: TodoUpdate, request: Request) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        if "done_at" in updates and "status" not in updates:
            raise HTTPException(
                status_code=400, detail="done_at can only be set together with status"
            )
        with _translate_errors():
            todo: Optional[Todo] = None
            if "status" in updates:
                todo = request.app.state.tracker.set_todo_status(
                    todo_id, updates.pop("status"), updates.pop("done_at", None)
                )
            if updates or todo is None:
                todo = store.update_todo(todo_id, **updates)
        return todo.to_dict()

    @app.delete("/api/todos/{todo_id}", status_code=204)
    def delete_todo(todo_id: str) -> Response:
        with _translate_errors():
            store.delete_todo(todo_id)
        return Response(status_code=204)

    logger.debug("Timekeeper app created for %s", resolved_db_path)
    return app


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map store and tracker failures onto HTTP responses."""
    try:
        yield
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TimerStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except sqlite3.IntegrityError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid record: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _reject_nulls(updates: Dict[str, Any], fields: tuple[str, ...]) -> None:
    nulls = [field for field in fields if field in updates and updates[field] is None]
    if nulls:
        raise HTTPException(
            status_code=400, detail=f"{', '.join(nulls)} cannot be null"
        )


def _find_entry(entries: List[TimeEntry], entry_id: str) -> TimeEntry:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    raise RecordNotFoundError("time entry", entry_id)


def _day_to_payload(day: DayHistory) -> Dict[str, Any]:
    return {
        "date": day.day.isoformat(),
        "raw_seconds": day.raw_seconds,
        "adjusted_seconds": day.adjusted_seconds,
        "is_sick_day": day.is_sick_day,
        "companies": [
            {"company": company.value, "seconds": seconds}
            for company, seconds in sorted(
                day.company_seconds.items(), key=lambda item: item[1], reverse=True
            )
        ],
        "entries": [entry.to_dict() for entry in day.entries],
    }
