"""JSONFileStore — a single human-readable JSON file holding every changeset.

Useful for small repositories, for inspecting what a sync imported, or for
committing a history snapshot alongside other data. Reads load the whole
file, so SQLiteStore is the better choice for large histories.

Data format: a JSON array of ChangesetRecord dicts in import order (oldest
first). Every save rewrites the file via a temporary file and os.replace so a
crash mid-write never leaves a truncated history behind, which makes a bulk
import quadratic in the number of commits.

Saves hold an exclusive fcntl lock on a sibling ``<name>.lock`` file across
the read, the duplicate check and the replace, so concurrent syncs against
the same file never drop each other's changesets. Readers take no lock.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

from gitmirror_store.base import BaseStore
from gitmirror_store.models import ChangeRecord, ChangesetRecord

logger = logging.getLogger(__name__)


class JSONFileStore(BaseStore):
    """Stores changesets as an append-only JSON array in one file.

    The file path defaults to `.gitmirror.json`. Configure via .gitmirror.yml:
    `store: json` and `store_path: /path/to/history.json`.
    """

    def __init__(self, path: str = ".gitmirror.json"):
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    def save(self, record: ChangesetRecord) -> bool:
        """Append a changeset unless its scmid is already in the file."""
        with self._locked():
            existing = self._read_records()
            if any(
                r.get("repository_id") == record.repository_id and r.get("scmid") == record.scmid for r in existing
            ):
                return False
            existing.append(self._to_dict(record))
            self._write_records(existing)
        return True

    def exists(self, repository_id: str, scmid: str) -> bool:
        return any(
            r.get("repository_id") == repository_id and r.get("scmid") == scmid for r in self._read_records()
        )

    def latest(self, repository_id: str) -> ChangesetRecord | None:
        for r in reversed(self._read_records()):
            if r.get("repository_id") == repository_id:
                return self._from_dict(r)
        return None

    def list_changesets(
        self, repository_id: str, path: str | None = None, limit: int | None = None
    ) -> list[ChangesetRecord]:
        records = [r for r in self._read_records() if r.get("repository_id") == repository_id]
        if path:
            records = [r for r in records if any(c.get("path") == path for c in r.get("changes", []))]
        # Stable sort keeps import order among changesets with equal timestamps.
        records = list(reversed(records))
        records.sort(key=lambda r: r.get("committed_on", ""), reverse=True)
        if limit is not None:
            records = records[:limit]
        return [self._from_dict(r) for r in records]

    @contextmanager
    def _locked(self):
        """Hold the store-wide write lock for the duration of the block."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as lock_f:
            fcntl.flock(lock_f.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_f.fileno(), fcntl.LOCK_UN)

    def _read_records(self) -> list[dict]:
        """Read the current JSON array from the file, or return []."""
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt changeset file {self._path}: {e}") from e
        return data if isinstance(data, list) else []

    def _write_records(self, records: list[dict]) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".gitmirror-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    @staticmethod
    def _to_dict(record: ChangesetRecord) -> dict:
        return {
            "repository_id": record.repository_id,
            "revision": record.revision,
            "scmid": record.scmid,
            "committer": record.committer,
            "committed_on": record.committed_on,
            "comments": record.comments,
            "changes": [{"action": c.action, "path": c.path} for c in record.changes],
        }

    @staticmethod
    def _from_dict(d: dict) -> ChangesetRecord:
        return ChangesetRecord(
            repository_id=d.get("repository_id", ""),
            revision=d.get("revision", ""),
            scmid=d.get("scmid", ""),
            committer=d.get("committer", ""),
            committed_on=d.get("committed_on", ""),
            comments=d.get("comments", ""),
            changes=[ChangeRecord(action=c.get("action", "M"), path=c.get("path", "")) for c in d.get("changes", [])],
        )
