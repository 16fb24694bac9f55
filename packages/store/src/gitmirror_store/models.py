"""Changeset data models.

Decoupled from gitmirror_core so the store layer can be used independently
and gitmirror_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ChangeRecord:
    """A single path touched by a changeset."""

    action: str  # "A" | "D" | "M"
    path: str


@dataclass
class ChangesetRecord:
    """A repository revision persisted to the store.

    Created by the CLI layer from a gitmirror_core Revision during sync.
    ``(repository_id, scmid)`` identifies a changeset; a store never holds
    two records with the same pair.
    """

    repository_id: str
    revision: str
    scmid: str
    committer: str  # "name <email>"
    committed_on: str  # ISO-8601 UTC timestamp
    comments: str
    changes: list[ChangeRecord] = field(default_factory=list)
