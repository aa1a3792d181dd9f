"""
Postgres backing store for guide runs.

Tables:
  guide_runs       — one row per layered update run
  run_guides       — one row per guide per run (append-only)
  layer_summaries  — guide diffs produced by each layer of a run
  guides           — registry of discovered guides

The connection is owned by a RunDatabase instance that callers construct
and close explicitly.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extras

log = logging.getLogger(__name__)

# ── Schema ────────────────────────────────────────────────────────────

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS guide_runs (
    id                TEXT PRIMARY KEY,
    scope             TEXT NOT NULL,
    status            TEXT NOT NULL DEFAULT 'running',
    model             TEXT,
    started_at        TIMESTAMPTZ,
    finished_at       TIMESTAMPTZ,
    total_layers      INTEGER DEFAULT 0,
    guides_updated    INTEGER DEFAULT 0,
    guides_unchanged  INTEGER DEFAULT 0,
    guides_failed     INTEGER DEFAULT 0,
    error             TEXT,
    created_at        TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS run_guides (
    id            SERIAL PRIMARY KEY,
    run_id        TEXT NOT NULL REFERENCES guide_runs(id) ON DELETE CASCADE,
    guide_path    TEXT NOT NULL,
    layer_index   INTEGER NOT NULL,
    status        TEXT NOT NULL,
    error         TEXT,
    diff_summary  TEXT,
    created_at    TIMESTAMPTZ DEFAULT now()
);

CREATE TABLE IF NOT EXISTS layer_summaries (
    run_id       TEXT NOT NULL REFERENCES guide_runs(id) ON DELETE CASCADE,
    layer_index  INTEGER NOT NULL,
    summary      JSONB DEFAULT '{}'::jsonb,
    created_at   TIMESTAMPTZ DEFAULT now(),
    PRIMARY KEY (run_id, layer_index)
);

CREATE TABLE IF NOT EXISTS guides (
    path             TEXT PRIMARY KEY,
    parent_path      TEXT,
    status           TEXT NOT NULL DEFAULT 'active',
    last_hash        TEXT,
    last_updated_at  TIMESTAMPTZ DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_run_guides_run_id ON run_guides(run_id);
CREATE INDEX IF NOT EXISTS idx_guide_runs_status ON guide_runs(status);
"""


class RunDatabase:
    """Single Postgres connection plus the CRUD the run store needs."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self._conn: Any = None

    # ── Connection ────────────────────────────────────────────────────

    def _get_conn(self):
        if self._conn is not None and not self._conn.closed:
            return self._conn
        self._conn = psycopg2.connect(self.dsn)
        self._conn.autocommit = True
        return self._conn

    @contextmanager
    def cursor(self):
        """Yield a dict cursor."""
        cur = self._get_conn().cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        try:
            yield cur
        finally:
            cur.close()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        try:
            with self.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            log.info("Database schema initialized")
        except Exception as e:
            log.error("Failed to initialize database: %s", e)
            raise

    # ── Runs ──────────────────────────────────────────────────────────

    def insert_run(self, run: dict) -> None:
        with self.cursor() as cur:
            cur.execute("""
                INSERT INTO guide_runs (id, scope, status, model, started_at)
                VALUES (%(id)s, %(scope)s, %(status)s, %(model)s, %(started_at)s)
            """, run)

    def finalize_run(self, run_id: str, updates: dict) -> None:
        with self.cursor() as cur:
            cur.execute("""
                UPDATE guide_runs SET
                    status = %(status)s,
                    finished_at = %(finished_at)s,
                    total_layers = %(total_layers)s,
                    guides_updated = %(guides_updated)s,
                    guides_unchanged = %(guides_unchanged)s,
                    guides_failed = %(guides_failed)s,
                    error = %(error)s
                WHERE id = %(id)s
            """, {**updates, "id": run_id})
            if cur.rowcount == 0:
                log.warning("finalize_run: no run with id %s", run_id)

    def get_run(self, run_id: str) -> dict | None:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM guide_runs WHERE id = %s", (run_id,))
            row = cur.fetchone()
            return dict(row) if row else None

    def list_runs(self, limit: int = 50, status: str | None = None) -> list[dict]:
        """List runs, newest first."""
        with self.cursor() as cur:
            if status:
                cur.execute(
                    "SELECT * FROM guide_runs WHERE status = %s ORDER BY started_at DESC LIMIT %s",
                    (status, limit),
                )
            else:
                cur.execute(
                    "SELECT * FROM guide_runs ORDER BY started_at DESC LIMIT %s",
                    (limit,),
                )
            return [dict(row) for row in cur.fetchall()]

    # ── Outcomes & layer summaries ────────────────────────────────────

    def insert_run_guide(self, outcome: dict) -> None:
        with self.cursor() as cur:
            cur.execute("""
                INSERT INTO run_guides (run_id, guide_path, layer_index, status, error, diff_summary)
                VALUES (%(run_id)s, %(guide_path)s, %(layer_index)s, %(status)s,
                        %(error)s, %(diff_summary)s)
            """, outcome)

    def get_run_guides(self, run_id: str) -> list[dict]:
        with self.cursor() as cur:
            cur.execute(
                "SELECT * FROM run_guides WHERE run_id = %s ORDER BY layer_index, guide_path",
                (run_id,),
            )
            return [dict(row) for row in cur.fetchall()]

    def upsert_layer_summary(self, run_id: str, layer_index: int, summary: dict) -> None:
        with self.cursor() as cur:
            cur.execute("""
                INSERT INTO layer_summaries (run_id, layer_index, summary)
                VALUES (%s, %s, %s)
                ON CONFLICT (run_id, layer_index) DO UPDATE SET summary = EXCLUDED.summary
            """, (run_id, layer_index, json.dumps(summary)))

    def get_layer_summaries(self, run_id: str) -> dict[int, dict]:
        with self.cursor() as cur:
            cur.execute(
                "SELECT layer_index, summary FROM layer_summaries WHERE run_id = %s ORDER BY layer_index",
                (run_id,),
            )
            return {row["layer_index"]: row["summary"] for row in cur.fetchall()}

    # ── Guide registry ────────────────────────────────────────────────

    def upsert_guide(self, guide: dict) -> None:
        with self.cursor() as cur:
            cur.execute("""
                INSERT INTO guides (path, parent_path, status, last_hash)
                VALUES (%(path)s, %(parent_path)s, %(status)s, %(last_known_hash)s)
                ON CONFLICT (path) DO UPDATE SET
                    parent_path = EXCLUDED.parent_path,
                    last_hash = EXCLUDED.last_hash,
                    last_updated_at = CASE
                        WHEN guides.last_hash IS DISTINCT FROM EXCLUDED.last_hash THEN now()
                        ELSE guides.last_updated_at
                    END
            """, guide)

    def list_guides(self) -> list[dict]:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM guides ORDER BY path")
            return [dict(row) for row in cur.fetchall()]
