"""Structured representation of repository history.

These are the shapes every adapter operation returns. They are built fresh
from git output on each query; only Revision is ever persisted, and that
happens outside this package (the CLI maps it to a store record).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from gitmirror_core.git.parsers import CommitRecord


@dataclass(frozen=True)
class Change:
    """One path touched by a commit."""

    action: str  # "A" | "D" | "M"
    path: str


@dataclass(frozen=True)
class Revision:
    """One commit's metadata plus the paths it changed.

    ``identifier`` and ``scmid`` hold the same commit hash for git. They are
    kept apart because the store keys changesets on ``scmid`` while callers
    address revisions by ``identifier``.
    """

    identifier: str
    scmid: str
    author: str  # "name <email>"
    time: datetime | None
    message: str = ""
    paths: tuple[Change, ...] = ()


@dataclass(frozen=True)
class Entry:
    """A file or directory listed by ``entries()``."""

    name: str
    path: str
    kind: str  # "file" | "dir"
    size: int | None = None  # files only
    lastrev: Revision | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"


@dataclass(frozen=True)
class AnnotatedLine:
    content: str
    revision: Revision


@dataclass
class Annotation:
    """Blame result: one attributed line per line of the file."""

    lines: list[AnnotatedLine] = field(default_factory=list)

    def add_line(self, content: str, revision: Revision) -> None:
        self.lines.append(AnnotatedLine(content=content, revision=revision))

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[AnnotatedLine]:
        return iter(self.lines)


@dataclass(frozen=True)
class Info:
    root_url: str
    lastrev: Revision


def build_revision(record: CommitRecord, changes: Iterable = ()) -> Revision:
    """Assemble an immutable Revision from a parsed commit and its changed paths.

    ``changes`` may hold Change objects or anything with ``action`` and
    ``path`` attributes (e.g. FileDiff).
    """
    return Revision(
        identifier=record.id,
        scmid=record.id,
        author=record.author,
        time=record.committed_at,
        message=record.message,
        paths=tuple(c if isinstance(c, Change) else Change(action=c.action, path=c.path) for c in changes),
    )
