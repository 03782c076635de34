import pytest

from helpers import local

from timekeeper import db
from timekeeper.errors import RecordNotFoundError
from timekeeper.models import Company, Project, TimeEntry, Todo


@pytest.fixture
def conn(tmp_path):
    with db.database_connection(tmp_path / "records.sqlite3") as connection:
        yield connection


def test_projects_are_filtered_and_sorted(conn):
    db.insert_project(conn, Project(name="zeta", company=Company.SALESCREW))
    db.insert_project(conn, Project(name="Alpha", company=Company.SALESCREW))
    db.insert_project(conn, Project(name="beta", company=Company.INKOGNITO))
    db.insert_project(conn, Project(name="old", company=Company.SALESCREW, archived=True))

    names = [project.name for project in db.fetch_projects(conn, company=Company.SALESCREW)]
    assert names == ["Alpha", "zeta"]

    everything = db.fetch_projects(conn, include_archived=True)
    assert len(everything) == 4


def test_update_project_archives(conn):
    project = db.insert_project(conn, Project(name="Shop", company=Company.MERCHANDISING))
    updated = db.update_project(conn, project.id, archived=True, name="Shop 2")
    assert updated.archived
    assert updated.name == "Shop 2"
    assert db.fetch_projects(conn) == []


def test_update_project_color_clear_and_keep(conn):
    project = db.insert_project(
        conn, Project(name="Shop", company=Company.MERCHANDISING, color="#112233")
    )
    renamed = db.update_project(conn, project.id, name="Shop 2")
    assert renamed.color == "#112233"

    cleared = db.update_project(conn, project.id, color=None)
    assert cleared.color is None
    assert cleared.name == "Shop 2"


def test_entries_round_trip_and_order(conn):
    project = db.insert_project(conn, Project(name="Shop", company=Company.MERCHANDISING))
    early = TimeEntry(
        company=Company.MERCHANDISING,
        start_time=local(2026, 10, 19, 9),
        end_time=local(2026, 10, 19, 12),
        project_id=project.id,
        is_home_office=True,
    )
    late = TimeEntry(company=Company.MERCHANDISING, start_time=local(2026, 10, 20, 9))
    db.insert_entry(conn, early)
    db.insert_entry(conn, late)

    fetched = db.fetch_entries(conn)
    assert [entry.id for entry in fetched] == [late.id, early.id]
    assert fetched[0].end_time is None
    assert fetched[1].start_time == early.start_time
    assert fetched[1].is_home_office
    assert fetched[1].duration_seconds == 3 * 3600


def test_update_entry_sets_end_time(conn):
    entry = db.insert_entry(
        conn, TimeEntry(company=Company.SALESCREW, start_time=local(2026, 10, 20, 9))
    )
    updated = db.update_entry(conn, entry.id, {"end_time": local(2026, 10, 20, 10)})
    assert updated.duration_seconds == 3600


def test_update_entry_rejects_unknown_fields(conn):
    entry = db.insert_entry(
        conn, TimeEntry(company=Company.SALESCREW, start_time=local(2026, 10, 20, 9))
    )
    with pytest.raises(ValueError):
        db.update_entry(conn, entry.id, {"colour": "red"})


def test_missing_records_raise(conn):
    with pytest.raises(RecordNotFoundError):
        db.update_entry(conn, "missing", {"end_time": local(2026, 10, 20, 10)})
    with pytest.raises(RecordNotFoundError):
        db.delete_entry(conn, "missing")
    with pytest.raises(RecordNotFoundError):
        db.fetch_project(conn, "missing")
    with pytest.raises(RecordNotFoundError):
        db.update_todo(conn, "missing", {})


def test_todos_filter_by_status(conn):
    db.insert_todo(conn, Todo(title="Reply to supplier"))
    done = db.insert_todo(conn, Todo(title="Send invoice", status="done"))

    assert [todo.title for todo in db.fetch_todos(conn, status="done")] == ["Send invoice"]
    assert len(db.fetch_todos(conn)) == 2

    db.delete_todo(conn, done.id)
    assert [todo.title for todo in db.fetch_todos(conn)] == ["Reply to supplier"]
