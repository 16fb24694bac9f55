"""SQLiteStore — local file-based changeset store, the default backend.

The UNIQUE (repository_id, scmid) constraint gives insert-if-absent
semantics, so repeated or concurrent syncs never duplicate a changeset.

Schema:
  changesets — one row per imported revision, in import order.
  changes    — one row per path touched by a changeset (indexed on path so
               per-file history does not scan every changeset).
"""

from __future__ import annotations

import logging
import sqlite3

from gitmirror_store.base import BaseStore
from gitmirror_store.models import ChangeRecord, ChangesetRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS changesets (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id   TEXT NOT NULL,
    revision        TEXT NOT NULL,
    scmid           TEXT NOT NULL,
    committer       TEXT,
    committed_on    TEXT,
    comments        TEXT,
    UNIQUE (repository_id, scmid)
);
CREATE TABLE IF NOT EXISTS changes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    changeset_id    INTEGER NOT NULL REFERENCES changesets (id),
    action          TEXT NOT NULL,
    path            TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_changes_changeset ON changes (changeset_id);
CREATE INDEX IF NOT EXISTS idx_changes_path      ON changes (path);
"""


class SQLiteStore(BaseStore):
    """Stores imported changesets in a local SQLite database file.

    The database file path defaults to `.gitmirror.db` in the current working
    directory. Configure via .gitmirror.yml: `store_path: /path/to/gitmirror.db`.
    """

    def __init__(self, db_path: str = ".gitmirror.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: ChangesetRecord) -> bool:
        with self._conn:
            cur = self._conn.execute(
                """
                INSERT OR IGNORE INTO changesets
                  (repository_id, revision, scmid, committer, committed_on, comments)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.repository_id,
                    record.revision,
                    record.scmid,
                    record.committer,
                    record.committed_on,
                    record.comments,
                ),
            )
            if cur.rowcount == 0:
                logger.debug("Changeset %s already stored for %s", record.scmid, record.repository_id)
                return False
            self._conn.executemany(
                "INSERT INTO changes (changeset_id, action, path) VALUES (?, ?, ?)",
                [(cur.lastrowid, c.action, c.path) for c in record.changes],
            )
        return True

    def exists(self, repository_id: str, scmid: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM changesets WHERE repository_id=? AND scmid=?",
            (repository_id, scmid),
        ).fetchone()
        return row is not None

    def latest(self, repository_id: str) -> ChangesetRecord | None:
        row = self._conn.execute(
            "SELECT * FROM changesets WHERE repository_id=? ORDER BY id DESC LIMIT 1",
            (repository_id,),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list_changesets(
        self, repository_id: str, path: str | None = None, limit: int | None = None
    ) -> list[ChangesetRecord]:
        # SQLite treats a negative LIMIT as "no limit".
        sql_limit = -1 if limit is None else limit
        if path:
            rows = self._conn.execute(
                """
                SELECT * FROM changesets
                WHERE repository_id=?
                  AND id IN (SELECT changeset_id FROM changes WHERE path=?)
                ORDER BY committed_on DESC, id DESC
                LIMIT ?
                """,
                (repository_id, path, sql_limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM changesets WHERE repository_id=? ORDER BY committed_on DESC, id DESC LIMIT ?",
                (repository_id, sql_limit),
            ).fetchall()

        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    def _row_to_record(self, row: sqlite3.Row) -> ChangesetRecord:
        changes = [
            ChangeRecord(action=c["action"], path=c["path"])
            for c in self._conn.execute(
                "SELECT action, path FROM changes WHERE changeset_id=? ORDER BY id",
                (row["id"],),
            )
        ]
        return ChangesetRecord(
            repository_id=row["repository_id"],
            revision=row["revision"],
            scmid=row["scmid"],
            committer=row["committer"] or "",
            committed_on=row["committed_on"] or "",
            comments=row["comments"] or "",
            changes=changes,
        )
