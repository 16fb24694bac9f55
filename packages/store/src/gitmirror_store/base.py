"""Abstract store interface.

Any storage backend (SQLite, a JSON file, Postgres) implements this
interface. The CLI depends on BaseStore, not on a concrete backend, so
backends are swappable without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitmirror_store.models import ChangesetRecord


class BaseStore(ABC):
    """Append-only persistence layer for imported changesets.

    Changesets are returned in insertion order (or its reverse). Sync appends
    them oldest first, so insertion order is commit order.
    """

    @abstractmethod
    def save(self, record: ChangesetRecord) -> bool:
        """Persist a changeset unless one with the same scmid already exists.

        Returns True if the record was inserted, False if it was already there.
        """

    @abstractmethod
    def exists(self, repository_id: str, scmid: str) -> bool:
        """Return True if a changeset with this scmid is stored for the repository."""

    @abstractmethod
    def latest(self, repository_id: str) -> ChangesetRecord | None:
        """Return the most recently saved changeset, or None if there is none."""

    @abstractmethod
    def list_changesets(
        self, repository_id: str, path: str | None = None, limit: int | None = None
    ) -> list[ChangesetRecord]:
        """Return changesets newest first, optionally only those touching ``path``.

        Returns an empty list if nothing matches. Never raises for a missing repository.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional. Default is a no-op so callers can always call close() safely.
        """
