"""Incremental import of repository history into a changeset store.

The engine compares the newest revision the store knows about with the
repository tip and imports only what is missing, oldest first, so changesets
are always appended in causal order:

    UNINITIALIZED ──bulk import──▶ SYNCED ──new upstream commits──▶ BEHIND
                                     ▲                                │
                                     └────────incremental import──────┘

The store is the only shared mutable resource. No locking happens here;
concurrent or repeated runs are made safe by the store's insert-if-absent
``persist`` contract.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from gitmirror_core.adapter import GitAdapter
    from gitmirror_core.revision import Revision

logger = logging.getLogger(__name__)


class ChangesetStore(Protocol):
    """What the sync engine needs from a persistence backend."""

    def latest_scmid(self, repository_id: str) -> str | None:
        """Return the scm id of the most recently persisted revision, or None."""

    def exists(self, repository_id: str, scmid: str) -> bool:
        """Return True if a revision with this scm id is already persisted."""

    def persist(self, repository_id: str, revision: Revision) -> bool:
        """Persist a revision unless its scm id is already present.

        Returns False when the revision was already there. Raises on failure.
        """


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"
    BEHIND = "behind"
    UNAVAILABLE = "unavailable"  # repository could not be read


@dataclass
class SyncResult:
    state: SyncState
    imported: int = 0
    skipped: int = 0  # already present in the store
    failed: int = 0  # bulk import only; incremental failures raise


def sync_state(adapter: GitAdapter, store: ChangesetStore, repository_id: str) -> SyncState:
    """Report where the store stands relative to the repository tip."""
    info = adapter.info()
    if info is None:
        return SyncState.UNAVAILABLE
    if store.latest_scmid(repository_id) is None:
        return SyncState.UNINITIALIZED
    if store.exists(repository_id, info.lastrev.scmid):
        return SyncState.SYNCED
    return SyncState.BEHIND


def fetch_changesets(adapter: GitAdapter, store: ChangesetStore, repository_id: str) -> SyncResult:
    """Bring the store up to date with the repository.

    An empty store gets a bulk import of the whole history. Otherwise, if the
    tip is already stored nothing happens; if not, only revisions newer than
    the latest stored one are fetched and persisted in order.
    """
    db_scmid = store.latest_scmid(repository_id)

    info = adapter.info()
    if info is None:
        logger.warning("Repository %s is unavailable; nothing to sync", adapter.url)
        return SyncResult(state=SyncState.UNAVAILABLE)
    scm_scmid = info.lastrev.scmid

    if db_scmid is None:
        return import_all(adapter, store, repository_id)

    if store.exists(repository_id, scm_scmid):
        logger.debug("Repository %s already synced at %s", repository_id, scm_scmid)
        return SyncResult(state=SyncState.SYNCED)

    result = SyncResult(state=SyncState.SYNCED)
    for revision in adapter.revisions("", db_scmid, None, reverse=True):
        if store.exists(repository_id, revision.scmid):
            result.skipped += 1
            continue
        if store.persist(repository_id, revision):
            result.imported += 1
        else:
            result.skipped += 1

    logger.info("Imported %d new revision(s) into %s", result.imported, repository_id)
    return result


def import_all(adapter: GitAdapter, store: ChangesetStore, repository_id: str) -> SyncResult:
    """Import every non-merge revision, oldest first.

    A revision that fails to persist is logged and skipped so one corrupt
    commit cannot block the rest of the history.
    """
    result = SyncResult(state=SyncState.SYNCED)
    for revision in adapter.revisions("", reverse=True):
        if store.exists(repository_id, revision.scmid):
            result.skipped += 1
            continue
        try:
            inserted = store.persist(repository_id, revision)
        except Exception as e:
            logger.error("Could not import revision %s (%s): %s", revision.scmid, type(e).__name__, e)
            result.failed += 1
            continue
        if inserted:
            result.imported += 1
        else:
            result.skipped += 1

    if result.failed:
        logger.warning("Bulk import of %s skipped %d revision(s) that failed", repository_id, result.failed)
    logger.info("Imported %d revision(s) into %s", result.imported, repository_id)
    return result
