"""Git repository adapter.

One GitAdapter wraps one locally accessible repository (bare, or the ``.git``
directory of a working copy) and answers history and content queries against
it by running git and parsing its output.

Return conventions:
- ``None`` (or ``[]`` for revisions) means git had no answer for the input:
  unknown revision, missing path, binary blame, no differences.
- GitCommandError means git itself could not be run. It propagates from
  every operation except ``info()``, which is the repository health check.
"""

from __future__ import annotations

import logging

from gitmirror_core.git.parsers import (
    LOG_FORMAT,
    CommitRecord,
    parse_blame,
    parse_diff,
    parse_log,
    parse_tree,
)
from gitmirror_core.git.runner import GitCommandError, GitRunner
from gitmirror_core.revision import Annotation, Change, Entry, Info, Revision, build_revision

logger = logging.getLogger(__name__)

# Whole-repository history. A real path is always a non-empty string, so this
# can never collide with a file or directory name.
WHOLE_REPOSITORY = None

_PREFERRED_BRANCH = "master"


class GitAdapter:
    def __init__(
        self,
        url: str,
        *,
        default_branch: str | None = None,
        timeout: float | None = None,
        runner: GitRunner | None = None,
    ):
        self.url = url
        self._default_branch = default_branch
        self._git = runner or GitRunner(url, timeout=timeout)

    # ------------------------------------------------------------------ #
    # Repository                                                          #
    # ------------------------------------------------------------------ #

    def info(self) -> Info | None:
        """Return the newest revision of the repository, or None if it cannot be read.

        Callers use this as an existence check, so it never raises.
        """
        try:
            revs = self.revisions("", limit=1)
        except GitCommandError as e:
            logger.warning("Could not read repository %s: %s", self.url, e)
            return None
        if not revs:
            return None
        return Info(root_url=self.url, lastrev=revs[0])

    def branches(self) -> list[str]:
        """Return the names of all local branches, sorted."""
        result = self._git.run("for-each-ref", "--format=%(refname:short)", "refs/heads")
        if not result.ok:
            return []
        names = result.stdout.decode("utf-8", errors="replace").split("\n")
        return sorted({n.strip() for n in names if n.strip()})

    def default_branch(self) -> str | None:
        """Resolve the branch used when a query names no revision.

        Order: the configured branch, then "master" if it exists, then the
        lexicographically first branch. Resolved on every call because
        branches can be created or deleted between queries.
        """
        if self._default_branch:
            return self._default_branch
        names = self.branches()
        if not names:
            logger.warning("Repository %s has no branches", self.url)
            return None
        if _PREFERRED_BRANCH in names:
            return _PREFERRED_BRANCH
        return names[0]

    def _resolve(self, identifier: str | None) -> str | None:
        return identifier or self.default_branch()

    # ------------------------------------------------------------------ #
    # History                                                             #
    # ------------------------------------------------------------------ #

    def revisions(
        self,
        path: str = "",
        identifier_from: str | None = None,
        identifier_to: str | None = None,
        *,
        limit: int | None = None,
        reverse: bool = False,
    ) -> list[Revision]:
        """Return non-merge revisions, newest first unless ``reverse`` is set.

        An empty ``path`` covers the whole repository: every ref is walked
        unless ``identifier_to`` pins the end of the range. With a path, the
        history of ``identifier_to`` (default branch tip if empty) touching
        that path is returned. ``identifier_from`` excludes it and everything
        reachable from it, so only strictly newer commits are listed.
        """
        scope = path or WHOLE_REPOSITORY
        args = ["log", "--no-merges", "--date-order", f"--format={LOG_FORMAT}"]
        if limit is not None:
            args.append(f"-n{int(limit)}")
        if reverse:
            args.append("--reverse")

        if identifier_to:
            args.append(identifier_to)
        elif scope is WHOLE_REPOSITORY:
            args.append("--all")
        else:
            tip = self.default_branch()
            if tip is None:
                return []
            args.append(tip)
        if identifier_from:
            args.append(f"^{identifier_from}")

        args.append("--")
        if scope is not WHOLE_REPOSITORY:
            args.append(scope)

        records = self._log(args)
        if records is None:
            return []
        return [build_revision(r, self.changes(r.id)) for r in records]

    def _log(self, args: list[str]) -> list[CommitRecord] | None:
        with self._git.stream(*args) as out:
            records = list(parse_log(out))
        if not out.ok:
            logger.warning("git log failed for %s (exit %s)", self.url, out.returncode)
            return None
        return records

    def changes(self, identifier: str) -> list[Change]:
        """Return the paths added, deleted or modified by one commit.

        Renames are reported as a deletion plus an addition. A commit whose
        diff cannot be computed yields an empty list rather than an error.
        """
        with self._git.stream("show", "--format=", "--no-renames", "--no-color", "--no-ext-diff", identifier) as out:
            diffs = parse_diff(out)
        if not out.ok:
            logger.warning("Could not compute changed paths for %s (exit %s)", identifier, out.returncode)
            return []
        return [Change(action=d.action, path=d.path) for d in diffs if d.path]

    def _last_revision(self, path: str, identifier: str) -> Revision | None:
        args = ["log", "--no-merges", "-n1", f"--format={LOG_FORMAT}", identifier, "--", path]
        records = self._log(args)
        if not records:
            return None
        return build_revision(records[0])

    # ------------------------------------------------------------------ #
    # Content                                                             #
    # ------------------------------------------------------------------ #

    def entries(self, path: str = "", identifier: str | None = None) -> list[Entry] | None:
        """List the immediate children of ``path`` at ``identifier``, sorted by name.

        Each entry's ``lastrev`` is the newest commit reachable from
        ``identifier`` that touched it. That costs one ``git log`` per entry.
        Returns None when ``path`` is not a directory at that revision.
        """
        rev = self._resolve(identifier)
        if rev is None:
            return None

        path = path.rstrip("/")
        args = ["ls-tree", "-l", "-z", rev]
        if path:
            # ls-tree lists nothing, successfully, for a missing path or a file
            kind = self._git.run("cat-file", "-t", f"{rev}:{path}")
            if not kind.ok or kind.stdout.strip() != b"tree":
                return None
            args += ["--", path + "/"]
        result = self._git.run(*args)
        if not result.ok:
            return None

        tree = parse_tree(result.stdout.decode("utf-8", errors="replace").split("\0"))
        entries: dict[str, Entry] = {}
        for item in tree:
            entries[item.name] = Entry(
                name=item.name,
                path=item.path,
                kind=item.kind,
                size=item.size,
                lastrev=self._last_revision(item.path, rev),
            )
        return [entries[name] for name in sorted(entries)]

    def diff(self, path: str, identifier_from: str | None, identifier_to: str | None = None) -> list[str] | None:
        """Return unified diff lines, or None when git fails or nothing differs.

        With only ``identifier_from`` the commit is shown against its parent;
        otherwise ``identifier_to`` is diffed against ``identifier_from``.
        """
        rev_from = self._resolve(identifier_from)
        if rev_from is None:
            return None
        if identifier_to:
            args = ["diff", "--no-color", "--no-ext-diff", identifier_to, rev_from]
        else:
            args = ["show", "--no-color", "--no-ext-diff", rev_from]
        if path:
            args += ["--", path]

        result = self._git.run(*args)
        if not result.ok:
            return None
        lines = result.stdout.decode("utf-8", errors="replace").splitlines(keepends=True)
        return lines or None

    def annotate(self, path: str, identifier: str | None = None) -> Annotation | None:
        """Return per-line authorship of ``path``, or None for binary or missing files."""
        rev = self._resolve(identifier)
        if rev is None:
            return None
        result = self._git.run("blame", "-l", "--root", rev, "--", path)
        if not result.ok:
            return None
        return parse_blame(result.stdout)

    def cat(self, path: str, identifier: str | None = None) -> bytes | None:
        """Return the raw content of ``path`` at ``identifier``."""
        rev = self._resolve(identifier)
        if rev is None:
            return None
        result = self._git.run("show", f"{rev}:{path}")
        if not result.ok:
            return None
        return result.stdout
