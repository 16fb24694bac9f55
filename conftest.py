"""Shared fixtures: throwaway git repositories with deterministic history."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

# 2020-01-01T00:00:00Z; each fixture commit is one hour after the previous one.
_BASE_TIMESTAMP = 1577836800


class FixtureRepo:
    """A real repository built commit by commit through the git CLI."""

    def __init__(self, root: Path, home: Path):
        self.root = root
        self.git_dir = str(root / ".git")
        self.commits: list[str] = []
        self._env = {
            **os.environ,
            "HOME": str(home),
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Alice",
            "GIT_AUTHOR_EMAIL": "alice@example.com",
            "GIT_COMMITTER_NAME": "Alice",
            "GIT_COMMITTER_EMAIL": "alice@example.com",
        }
        root.mkdir(parents=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/master")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", "-c", "commit.gpgsign=false", *args],
            cwd=self.root,
            env=self._env,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def commit(self, message: str, files: dict, author: str = "Alice") -> str:
        """Write (str/bytes) or delete (None) files, commit them, and return the hash."""
        for rel, content in files.items():
            target = self.root / rel
            if content is None:
                target.unlink()
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content)

        timestamp = f"{_BASE_TIMESTAMP + 3600 * len(self.commits)} +0000"
        self._env["GIT_AUTHOR_DATE"] = timestamp
        self._env["GIT_COMMITTER_DATE"] = timestamp
        self._env["GIT_AUTHOR_NAME"] = author
        self._env["GIT_AUTHOR_EMAIL"] = f"{author.lower()}@example.com"

        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        sha = self.git("rev-parse", "HEAD")
        self.commits.append(sha)
        return sha


@pytest.fixture
def make_repo(tmp_path):
    """Factory for empty fixture repositories."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    counter = iter(range(1000))

    def _make() -> FixtureRepo:
        return FixtureRepo(tmp_path / f"repo{next(counter)}", home=tmp_path)

    return _make


@pytest.fixture
def three_commit_repo(make_repo) -> FixtureRepo:
    """Three non-merge commits on master: add, modify + add, delete + add."""
    repo = make_repo()
    repo.commit("Initial commit", {"README.md": "hello\n", "src/app.py": "print('hi')\n"})
    repo.commit("Add guide", {"README.md": "hello\nworld\n", "docs/guide.md": "# Guide\n"}, author="Bob")
    repo.commit("Replace app with main", {"src/app.py": None, "src/main.py": "print('main')\n"})
    return repo
