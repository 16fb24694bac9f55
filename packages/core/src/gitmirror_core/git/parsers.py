"""Parsers turning git's text output into structured records.

One parser per output shape, each independent of the others:

    parse_log    git log --format=LOG_FORMAT      → CommitRecord
    parse_diff   git show / git diff (patch)       → FileDiff
    parse_tree   git ls-tree -l -z                 → TreeEntry
    parse_blame  git blame -l                      → Annotation

Parsers are tolerant: a record or line that does not have the expected shape
is skipped (and logged) so the rest of the output still produces a result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator

from gitmirror_core.revision import Annotation, Revision
from gitmirror_core.utils.code import is_binary

logger = logging.getLogger(__name__)

RECORD_SEP = "\x1e"
UNIT_SEP = "\x1f"

# hash, parents, author name, author email, committer timestamp, raw body
LOG_FORMAT = "%x1e%H%x1f%P%x1f%an%x1f%ae%x1f%ct%x1f%B"
_LOG_FIELDS = 6

_HASH_RE = re.compile(r"^[0-9a-f]{7,64}$")

# <40-hex> (<author> <date> <lineno>) <content>
# Boundary commits are prefixed with "^" and shortened to 39 hex digits.
BLAME_LINE_RE = re.compile(r"^\^?([0-9a-f]{39,40})\s\((\w*)[^)]*\)\s?(.*)$")

# <mode> SP <type> SP <object> SP+ <size> TAB <path>
_TREE_LINE_RE = re.compile(r"^(\d{6}) (\w+) ([0-9a-f]+)\s+(-|\d+)\t(.+)$", re.DOTALL)

_QUOTED_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\S+')


# --------------------------------------------------------------------------- #
# git log                                                                      #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class CommitRecord:
    """One commit as read from ``git log``, before its changed paths are known."""

    id: str
    parents: tuple[str, ...]
    author_name: str
    author_email: str
    committed_at: datetime
    message: str

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def author(self) -> str:
        return f"{self.author_name} <{self.author_email}>"


def parse_log(lines: Iterable[str]) -> Iterator[CommitRecord]:
    """Yield commits from a ``git log --format=LOG_FORMAT`` stream, in stream order.

    Merge commits are dropped even though the query is expected to pass
    ``--no-merges`` already.
    """
    buffer: list[str] = []
    for line in lines:
        if line.startswith(RECORD_SEP):
            if buffer:
                yield from _emit(buffer)
            buffer = [line[len(RECORD_SEP) :]]
        elif buffer:
            buffer.append(line)
    if buffer:
        yield from _emit(buffer)


def _emit(buffer: list[str]) -> Iterator[CommitRecord]:
    record = _parse_log_record("".join(buffer))
    if record is None:
        return
    if record.is_merge:
        logger.debug("Skipping merge commit %s", record.id)
        return
    yield record


def _parse_log_record(text: str) -> CommitRecord | None:
    fields = text.split(UNIT_SEP, _LOG_FIELDS - 1)
    if len(fields) != _LOG_FIELDS:
        logger.warning("Skipping malformed log record (%d fields): %r", len(fields), text[:80])
        return None

    commit_id, parents, name, email, timestamp, body = fields
    commit_id = commit_id.strip()
    if not _HASH_RE.match(commit_id):
        logger.warning("Skipping log record with invalid commit id: %r", commit_id[:80])
        return None
    try:
        committed_at = datetime.fromtimestamp(int(timestamp.strip()), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning("Skipping commit %s with unparseable timestamp %r", commit_id, timestamp)
        return None

    return CommitRecord(
        id=commit_id,
        parents=tuple(parents.split()),
        author_name=name.strip(),
        author_email=email.strip(),
        committed_at=committed_at,
        message=body.strip(),
    )


# --------------------------------------------------------------------------- #
# unified diff                                                                 #
# --------------------------------------------------------------------------- #


@dataclass
class FileDiff:
    """Header information for one file section of a unified diff."""

    a_path: str | None = None
    b_path: str | None = None
    new_file: bool = False
    deleted_file: bool = False

    @property
    def action(self) -> str:
        if self.new_file:
            return "A"
        if self.deleted_file:
            return "D"
        return "M"

    @property
    def path(self) -> str | None:
        return self.a_path or self.b_path


def parse_diff(lines: Iterable[str]) -> list[FileDiff]:
    """Extract per-file headers from patch output, ignoring hunk bodies.

    Lines before the first ``diff --git`` header (e.g. the commit header that
    ``git show`` prints) are ignored. Once a hunk starts, ``---``/``+++``
    lines belong to the hunk body and are not treated as headers.
    """
    diffs: list[FileDiff] = []
    current: FileDiff | None = None
    in_hunk = False

    for raw in lines:
        line = raw.rstrip("\r\n")
        if line.startswith("diff --git "):
            current = FileDiff()
            current.a_path, current.b_path = _split_diff_header(line[len("diff --git ") :])
            diffs.append(current)
            in_hunk = False
            continue
        if current is None or in_hunk:
            continue
        if line.startswith("@@"):
            in_hunk = True
        elif line.startswith("new file mode"):
            current.new_file = True
        elif line.startswith("deleted file mode"):
            current.deleted_file = True
        elif line.startswith("--- "):
            current.a_path = _side_path(line[4:], "a/")
        elif line.startswith("+++ "):
            current.b_path = _side_path(line[4:], "b/")

    return diffs


def _split_diff_header(rest: str) -> tuple[str | None, str | None]:
    """Split ``a/<path> b/<path>`` into its two paths.

    Without renames both sides name the same path, so an unquoted header is
    split at its midpoint. That stays correct for paths containing spaces.
    """
    if '"' in rest:
        tokens = _QUOTED_TOKEN_RE.findall(rest)
        if len(tokens) == 2:
            return _strip_prefix(_unquote(tokens[0]), "a/"), _strip_prefix(_unquote(tokens[1]), "b/")
        return None, None

    half = (len(rest) - 1) // 2
    a_side, b_side = rest[:half], rest[half + 1 :]
    if a_side.startswith("a/") and b_side.startswith("b/") and a_side[2:] == b_side[2:]:
        return a_side[2:], b_side[2:]

    if " b/" in rest:
        a_side, b_side = rest.split(" b/", 1)
        return _strip_prefix(a_side, "a/"), b_side
    return None, None


def _side_path(value: str, prefix: str) -> str | None:
    value = value.rstrip("\t")
    if value == "/dev/null":
        return None
    return _strip_prefix(_unquote(value), prefix)


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix) :] if path.startswith(prefix) else path


def _unquote(path: str) -> str:
    """Undo git's C-style quoting of unusual path names."""
    if len(path) < 2 or path[0] != '"' or path[-1] != '"':
        return path
    try:
        raw = path[1:-1].encode("utf-8").decode("unicode_escape").encode("latin-1")
    except (UnicodeDecodeError, UnicodeEncodeError):
        return path[1:-1]
    return raw.decode("utf-8", errors="replace")


# --------------------------------------------------------------------------- #
# ls-tree                                                                      #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class TreeEntry:
    mode: str
    type: str  # "blob" | "tree" | "commit" (submodule)
    object_id: str
    size: int | None
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def kind(self) -> str:
        return "file" if self.type == "blob" else "dir"


def parse_tree(records: Iterable[str]) -> list[TreeEntry]:
    """Parse NUL-separated ``git ls-tree -l -z`` records."""
    entries: list[TreeEntry] = []
    for record in records:
        if not record:
            continue
        match = _TREE_LINE_RE.match(record)
        if not match:
            logger.debug("Skipping unrecognised ls-tree record: %r", record[:80])
            continue
        mode, obj_type, object_id, size, path = match.groups()
        entries.append(
            TreeEntry(
                mode=mode,
                type=obj_type,
                object_id=object_id,
                size=int(size) if size != "-" and obj_type == "blob" else None,
                path=path,
            )
        )
    return entries


# --------------------------------------------------------------------------- #
# blame                                                                        #
# --------------------------------------------------------------------------- #


def parse_blame(content: bytes) -> Annotation | None:
    """Build an Annotation from raw ``git blame -l`` output.

    Returns None for binary content, which git happily annotates line by
    meaningless line. Lines that do not match BLAME_LINE_RE are skipped.
    """
    if is_binary(content):
        return None

    annotation = Annotation()
    for line in content.decode("utf-8", errors="replace").split("\n"):
        match = BLAME_LINE_RE.match(line)
        if not match:
            if line:
                logger.debug("Skipping unrecognised blame line: %r", line[:80])
            continue
        commit_id, author, text = match.groups()
        stub = Revision(identifier=commit_id, scmid=commit_id, author=author.strip(), time=None)
        annotation.add_line(text.rstrip(), stub)
    return annotation

