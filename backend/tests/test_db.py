from pathlib import Path

import pytest

from polar_passport import db
from polar_passport.config import settings


@pytest.fixture(autouse=True)
def scoped_database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path}/passport.db")
    db.init_db()


def test_create_and_get_project() -> None:
    project = db.create_project("Весенний запуск", "Йогурт")

    assert db.get_project(project["id"]) == project
    assert db.get_project("missing") is None


def test_latest_draft_is_the_most_recent_insert() -> None:
    project = db.create_project("Запуск")
    db.create_draft(project["id"], {"version": 1}, mode="fallback")
    second = db.create_draft(project["id"], {"version": 2}, mode="llm", model="fake-model")

    latest = db.get_latest_draft(project["id"])

    assert latest is not None
    assert latest["id"] == second["id"]
    assert latest["payload"] == {"version": 2}
    assert latest["mode"] == "llm"
    assert latest["model"] == "fake-model"
    assert [item["id"] for item in db.list_drafts(project["id"])][0] == second["id"]
    assert "payload_json" not in db.list_drafts(project["id"])[0]


def test_payload_round_trips_unicode() -> None:
    project = db.create_project("Паштет")
    payload = {"header": {"name": "Норд-Фреш", "category": "Паштет"}}
    db.create_draft(project["id"], payload, mode="llm")

    assert db.get_latest_draft(project["id"])["payload"] == payload


def test_list_projects_counts_drafts() -> None:
    empty = db.create_project("Пустой")
    busy = db.create_project("Активный")
    db.create_draft(busy["id"], {}, mode="local")
    db.create_draft(busy["id"], {}, mode="local")

    counts = {item["id"]: item["draft_count"] for item in db.list_projects()}

    assert counts == {empty["id"]: 0, busy["id"]: 2}
    assert db.get_latest_draft(empty["id"]) is None


def test_only_sqlite_urls_are_supported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "database_url", "postgresql://localhost/passport")

    with pytest.raises(RuntimeError, match="sqlite"):
        db.init_db()
