"""Tests for GitAdapter: query building against a mocked runner, then behaviour against real repositories."""

from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from gitmirror_core.adapter import GitAdapter
from gitmirror_core.git.runner import GitCommandError, GitResult, GitRunner
from gitmirror_core.revision import Change

SHA = "0123456789abcdef0123456789abcdef01234567"


class _FakeStream:
    def __init__(self, lines, returncode=0):
        self._lines = lines
        self.returncode = returncode

    def __iter__(self):
        return iter(self._lines)

    @property
    def ok(self):
        return self.returncode == 0


def _streams(*outputs):
    """side_effect for GitRunner.stream yielding each fake output in turn."""
    queue = list(outputs)

    @contextmanager
    def _stream(*args):
        yield queue.pop(0)

    return _stream


def _log_output(sha=SHA, message="Initial commit"):
    return _FakeStream([f"\x1e{sha}\x1f\x1fAlice\x1falice@example.com\x1f1577836800\x1f{message}\n", "\n"])


def _show_output():
    return _FakeStream(
        [
            "diff --git a/README.md b/README.md\n",
            "new file mode 100644\n",
            "--- /dev/null\n",
            "+++ b/README.md\n",
            "@@ -0,0 +1 @@\n",
            "+hello\n",
        ]
    )


def _make_adapter(default_branch=None, branches=b"master\n"):
    runner = MagicMock(spec=GitRunner)
    runner.run.return_value = GitResult(returncode=0, stdout=branches)
    return GitAdapter("/srv/repo.git", default_branch=default_branch, runner=runner), runner


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


class TestBranches:
    def test_sorted_and_deduplicated(self):
        adapter, _ = _make_adapter(branches=b"feature\nmaster\n\nfeature\n")
        assert adapter.branches() == ["feature", "master"]

    def test_failure_returns_empty(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=128, stdout=b"")
        assert adapter.branches() == []

    def test_configured_default_branch_wins(self):
        adapter, runner = _make_adapter(default_branch="develop")
        assert adapter.default_branch() == "develop"
        runner.run.assert_not_called()

    def test_master_preferred(self):
        adapter, _ = _make_adapter(branches=b"alpha\nmaster\nzeta\n")
        assert adapter.default_branch() == "master"

    def test_first_branch_by_name_without_master(self):
        adapter, _ = _make_adapter(branches=b"trunk\nmain\n")
        assert adapter.default_branch() == "main"

    def test_no_branches(self):
        adapter, _ = _make_adapter(branches=b"")
        assert adapter.default_branch() is None


# ---------------------------------------------------------------------------
# History queries
# ---------------------------------------------------------------------------


class TestRevisionQueries:
    def test_whole_repository_walks_all_refs(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_log_output(), _show_output())

        revisions = adapter.revisions("", "abc1234", limit=5, reverse=True)

        log_args = runner.stream.call_args_list[0].args
        assert log_args[0] == "log"
        assert "--no-merges" in log_args
        assert "-n5" in log_args
        assert "--reverse" in log_args
        assert "--all" in log_args
        assert "^abc1234" in log_args
        assert log_args[-1] == "--"
        assert len(revisions) == 1
        assert revisions[0].identifier == SHA
        assert revisions[0].paths == (Change(action="A", path="README.md"),)

    def test_path_query_uses_default_branch(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_log_output(), _show_output())

        adapter.revisions("src/app.py")

        log_args = runner.stream.call_args_list[0].args
        assert "--all" not in log_args
        assert log_args[-3:] == ("master", "--", "src/app.py")

    def test_identifier_to_pins_range_end(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_log_output(), _show_output())

        adapter.revisions("", identifier_to="release")

        log_args = runner.stream.call_args_list[0].args
        assert "release" in log_args
        assert "--all" not in log_args

    def test_failed_log_returns_empty(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_FakeStream([], returncode=128))
        assert adapter.revisions("", identifier_to="nope") == []

    def test_failed_show_gives_no_paths(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_log_output(), _FakeStream([], returncode=128))

        revisions = adapter.revisions("")

        assert revisions[0].paths == ()

    def test_info_is_newest_revision(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_log_output(), _show_output())

        info = adapter.info()

        assert info.root_url == "/srv/repo.git"
        assert info.lastrev.scmid == SHA
        assert info.lastrev.time == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert "-n1" in runner.stream.call_args_list[0].args

    def test_info_swallows_git_errors(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = GitCommandError("git not found")
        assert adapter.info() is None

    def test_info_of_empty_repository(self):
        adapter, runner = _make_adapter()
        runner.stream.side_effect = _streams(_FakeStream([], returncode=128))
        assert adapter.info() is None


# ---------------------------------------------------------------------------
# Content queries
# ---------------------------------------------------------------------------


class TestContentQueries:
    def test_diff_single_revision_uses_show(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=b"diff --git a/x b/x\n+line\n")

        lines = adapter.diff("x", "abc1234")

        assert lines == ["diff --git a/x b/x\n", "+line\n"]
        assert runner.run.call_args.args == ("show", "--no-color", "--no-ext-diff", "abc1234", "--", "x")

    def test_diff_between_revisions_uses_to_as_base(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=b"+line\n")

        adapter.diff("", "new1234", "old1234")

        assert runner.run.call_args.args == ("diff", "--no-color", "--no-ext-diff", "old1234", "new1234")

    def test_diff_without_changes_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=b"")
        assert adapter.diff("", "abc1234", "abc1234") is None

    def test_diff_failure_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=128, stdout=b"")
        assert adapter.diff("", "nope") is None

    def test_cat_reads_blob_at_revision(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=b"\x89PNG")

        assert adapter.cat("logo.png", "abc1234") == b"\x89PNG"
        assert runner.run.call_args.args == ("show", "abc1234:logo.png")

    def test_cat_missing_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=128, stdout=b"")
        assert adapter.cat("missing.txt", "abc1234") is None

    def test_annotate_binary_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=SHA.encode() + b" (Alice 2020-01-01 1) \x00\x01\n")
        assert adapter.annotate("logo.png", "abc1234") is None

    def test_entries_failure_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=128, stdout=b"")
        assert adapter.entries("src", "nope") is None

    def test_entries_lists_directory_contents(self):
        adapter, runner = _make_adapter()
        runner.run.side_effect = [GitResult(returncode=0, stdout=b"tree\n"), GitResult(returncode=0, stdout=b"")]

        assert adapter.entries("src/", "abc1234") == []

        assert runner.run.call_args_list[0].args == ("cat-file", "-t", "abc1234:src")
        assert runner.run.call_args_list[1].args == ("ls-tree", "-l", "-z", "abc1234", "--", "src/")

    def test_entries_of_a_file_returns_none(self):
        adapter, runner = _make_adapter()
        runner.run.return_value = GitResult(returncode=0, stdout=b"blob\n")

        assert adapter.entries("README.md", "abc1234") is None
        runner.run.assert_called_once_with("cat-file", "-t", "abc1234:README.md")

    def test_no_default_branch_returns_none(self):
        adapter, _ = _make_adapter(branches=b"")
        assert adapter.cat("README.md") is None
        assert adapter.entries("") is None
        assert adapter.annotate("README.md") is None


# ---------------------------------------------------------------------------
# Against a real repository
# ---------------------------------------------------------------------------


class TestAgainstRepository:
    def test_info(self, three_commit_repo):
        info = GitAdapter(three_commit_repo.git_dir).info()

        assert info.lastrev.identifier == three_commit_repo.commits[-1]
        assert info.lastrev.author == "Alice <alice@example.com>"
        assert info.lastrev.time == datetime(2020, 1, 1, 2, tzinfo=timezone.utc)
        assert info.lastrev.message == "Replace app with main"

    def test_info_matches_newest_revision(self, three_commit_repo):
        adapter = GitAdapter(three_commit_repo.git_dir)
        assert adapter.revisions("", limit=1) == [adapter.info().lastrev]

    def test_info_of_missing_repository(self, tmp_path):
        assert GitAdapter(str(tmp_path / "missing.git")).info() is None

    def test_revisions_newest_first(self, three_commit_repo):
        revisions = GitAdapter(three_commit_repo.git_dir).revisions()
        assert [r.scmid for r in revisions] == list(reversed(three_commit_repo.commits))

    def test_revisions_reverse(self, three_commit_repo):
        revisions = GitAdapter(three_commit_repo.git_dir).revisions("", reverse=True)
        assert [r.scmid for r in revisions] == three_commit_repo.commits

    def test_changed_paths(self, three_commit_repo):
        first, second, third = GitAdapter(three_commit_repo.git_dir).revisions("", reverse=True)

        assert set(first.paths) == {Change("A", "README.md"), Change("A", "src/app.py")}
        assert set(second.paths) == {Change("M", "README.md"), Change("A", "docs/guide.md")}
        assert set(third.paths) == {Change("D", "src/app.py"), Change("A", "src/main.py")}
        assert second.author == "Bob <bob@example.com>"

    def test_revisions_for_path(self, three_commit_repo):
        revisions = GitAdapter(three_commit_repo.git_dir).revisions("src/app.py")
        commits = three_commit_repo.commits
        assert [r.scmid for r in revisions] == [commits[2], commits[0]]

    def test_identifier_from_is_exclusive(self, three_commit_repo):
        adapter = GitAdapter(three_commit_repo.git_dir)
        commits = three_commit_repo.commits

        assert [r.scmid for r in adapter.revisions("", commits[0], reverse=True)] == commits[1:]
        assert adapter.revisions("", commits[-1]) == []

    def test_unknown_revision_gives_empty_history(self, three_commit_repo):
        assert GitAdapter(three_commit_repo.git_dir).revisions("", identifier_to="no-such-branch") == []

    def test_merge_commits_excluded(self, three_commit_repo):
        repo = three_commit_repo
        repo.git("checkout", "-q", "-b", "feature")
        feature = repo.commit("Feature work", {"feature.txt": "feature\n"})
        repo.git("checkout", "-q", "master")
        repo.commit("Mainline work", {"main.txt": "main\n"})
        repo.git("merge", "-q", "--no-ff", "-m", "Merge feature", "feature")
        merge = repo.git("rev-parse", "HEAD")

        scmids = [r.scmid for r in GitAdapter(repo.git_dir).revisions()]

        assert merge not in scmids
        assert feature in scmids
        assert len(scmids) == 5

    def test_branches(self, three_commit_repo):
        three_commit_repo.git("branch", "topic")
        adapter = GitAdapter(three_commit_repo.git_dir)
        assert adapter.branches() == ["master", "topic"]
        assert adapter.default_branch() == "master"

    def test_default_branch_without_master(self, three_commit_repo):
        three_commit_repo.git("branch", "-m", "trunk")
        assert GitAdapter(three_commit_repo.git_dir).default_branch() == "trunk"

    def test_entries_at_root(self, three_commit_repo):
        commits = three_commit_repo.commits
        entries = GitAdapter(three_commit_repo.git_dir).entries()

        assert [(e.name, e.kind) for e in entries] == [("README.md", "file"), ("docs", "dir"), ("src", "dir")]
        readme = entries[0]
        assert readme.size == len("hello\nworld\n")
        assert readme.lastrev.scmid == commits[1]
        assert entries[2].size is None
        assert entries[2].lastrev.scmid == commits[2]

    def test_entries_of_subdirectory(self, three_commit_repo):
        entries = GitAdapter(three_commit_repo.git_dir).entries("src")
        assert [e.path for e in entries] == ["src/main.py"]

    def test_entries_at_older_revision(self, three_commit_repo):
        commits = three_commit_repo.commits
        entries = GitAdapter(three_commit_repo.git_dir).entries("src", commits[0])

        assert [e.name for e in entries] == ["app.py"]
        assert entries[0].lastrev.scmid == commits[0]

    def test_entries_unknown_revision(self, three_commit_repo):
        assert GitAdapter(three_commit_repo.git_dir).entries("", "no-such-branch") is None

    def test_entries_of_missing_directory(self, three_commit_repo):
        assert GitAdapter(three_commit_repo.git_dir).entries("no/such/dir") is None

    def test_entries_of_a_file(self, three_commit_repo):
        adapter = GitAdapter(three_commit_repo.git_dir)

        assert adapter.entries("README.md") is None
        assert adapter.entries("src/app.py", three_commit_repo.commits[0]) is None
        assert adapter.entries("src") is not None

    def test_diff_of_single_revision(self, three_commit_repo):
        lines = GitAdapter(three_commit_repo.git_dir).diff("", three_commit_repo.commits[1])
        assert "+world\n" in lines
        assert "+# Guide\n" in lines

    def test_diff_limited_to_path(self, three_commit_repo):
        lines = GitAdapter(three_commit_repo.git_dir).diff("README.md", three_commit_repo.commits[1])
        assert "+world\n" in lines
        assert "+# Guide\n" not in lines

    def test_diff_between_revisions(self, three_commit_repo):
        commits = three_commit_repo.commits
        lines = GitAdapter(three_commit_repo.git_dir).diff("", commits[2], commits[0])
        assert "+print('main')\n" in lines
        assert "-print('hi')\n" in lines

    def test_diff_of_identical_revisions(self, three_commit_repo):
        head = three_commit_repo.commits[-1]
        assert GitAdapter(three_commit_repo.git_dir).diff("", head, head) is None

    def test_annotate(self, three_commit_repo):
        commits = three_commit_repo.commits
        annotation = GitAdapter(three_commit_repo.git_dir).annotate("README.md")

        assert [line.content for line in annotation] == ["hello", "world"]
        first, second = annotation.lines
        assert first.revision.identifier == commits[0]
        assert first.revision.author == "Alice"
        assert second.revision.identifier == commits[1]
        assert second.revision.author == "Bob"

    def test_annotate_binary_file(self, three_commit_repo):
        three_commit_repo.commit("Add logo", {"logo.bin": b"\x89PNG\x00\x00\x01\x02\n\x03\x04"})
        assert GitAdapter(three_commit_repo.git_dir).annotate("logo.bin") is None

    def test_annotate_missing_file(self, three_commit_repo):
        assert GitAdapter(three_commit_repo.git_dir).annotate("src/app.py") is None

    def test_cat(self, three_commit_repo):
        adapter = GitAdapter(three_commit_repo.git_dir)

        assert adapter.cat("src/main.py") == b"print('main')\n"
        assert adapter.cat("src/app.py", three_commit_repo.commits[0]) == b"print('hi')\n"
        assert adapter.cat("src/app.py") is None


@pytest.mark.parametrize("path", ["", "docs"])
def test_entries_are_sorted_by_name(three_commit_repo, path):
    three_commit_repo.commit("More files", {"docs/b.md": "b\n", "docs/a.md": "a\n", "Zeta": "z\n", "alpha": "a\n"})
    names = [e.name for e in GitAdapter(three_commit_repo.git_dir).entries(path)]
    assert names == sorted(names)
