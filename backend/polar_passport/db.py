from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Iterator
from uuid import uuid4

from polar_passport.config import settings


def _database_path() -> Path:
    prefix = "sqlite:///"
    if not settings.database_url.startswith(prefix):
        raise RuntimeError("Only sqlite:/// DATABASE_URL is supported.")
    return Path(settings.database_url[len(prefix) :])


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db() -> None:
    db_path = _database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS drafts (
                id TEXT PRIMARY KEY,
                project_id TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                model TEXT,
                mode TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(project_id) REFERENCES projects(id)
            );

            CREATE INDEX IF NOT EXISTS idx_drafts_project_created
                ON drafts(project_id, created_at DESC);
            """
        )


@contextmanager
def get_conn() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(_database_path())
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn
        conn.commit()
    finally:
        conn.close()


def create_project(title: str, category: str = "") -> dict[str, str]:
    project = {
        "id": str(uuid4()),
        "title": title,
        "category": category,
        "created_at": _utc_now_iso(),
    }
    with get_conn() as conn:
        conn.execute(
            "INSERT INTO projects (id, title, category, created_at) VALUES (?, ?, ?, ?)",
            (project["id"], project["title"], project["category"], project["created_at"]),
        )
    return project


def get_project(project_id: str) -> dict[str, str] | None:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT id, title, category, created_at FROM projects WHERE id = ?",
            (project_id,),
        ).fetchone()
    if row is None:
        return None
    return dict(row)


def list_projects() -> list[dict[str, object]]:
    with get_conn() as conn:
        rows = conn.execute(
            """
            SELECT p.id, p.title, p.category, p.created_at, COUNT(d.id) AS draft_count
            FROM projects p
            LEFT JOIN drafts d ON d.project_id = p.id
            GROUP BY p.id
            ORDER BY p.created_at DESC, p.rowid DESC
            """
        ).fetchall()
    return [dict(row) for row in rows]


def create_draft(
    project_id: str,
    payload: dict[str, object],
    *,
    mode: str,
    model: str | None = None,
) -> dict[str, object]:
    draft = {
        "id": str(uuid4()),
        "project_id": project_id,
        "model": model,
        "mode": mode,
        "created_at": _utc_now_iso(),
    }
    with get_conn() as conn:
        conn.execute(
            """
            INSERT INTO drafts (id, project_id, payload_json, model, mode, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                draft["id"],
                project_id,
                json.dumps(payload, ensure_ascii=False),
                model,
                mode,
                draft["created_at"],
            ),
        )
    return {**draft, "payload": payload}


def get_latest_draft(project_id: str) -> dict[str, object] | None:
    with get_conn() as conn:
        row = conn.execute(
            """
            SELECT id, project_id, payload_json, model, mode, created_at
            FROM drafts
            WHERE project_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (project_id,),
        ).fetchone()
    if row is None:
        return None

    record = dict(row)
    record["payload"] = json.loads(str(record.pop("payload_json")))
    return record


def list_drafts(project_id: str) -> list[dict[str, object]]:
    with get_conn() as conn:
        rows = conn.execute(
            """
            SELECT id, project_id, model, mode, created_at
            FROM drafts
            WHERE project_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (project_id,),
        ).fetchall()
    return [dict(row) for row in rows]


def ping() -> None:
    with get_conn() as conn:
        conn.execute("SELECT 1").fetchone()
