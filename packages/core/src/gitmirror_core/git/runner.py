"""Thin process layer around the git executable.

Every invocation is ``git --git-dir <repository> <args...>`` built as an
argument vector, so nothing here ever goes through a shell. Two shapes of
output are offered:

- ``run()`` buffers stdout as bytes. Used where the caller must inspect raw
  content before decoding (blame and cat check for binary data) or where the
  output is small (ls-tree, for-each-ref).
- ``stream()`` yields decoded text lines while git is still running. Used for
  history queries, which can be arbitrarily long.

A non-zero exit is a normal outcome ("git has no answer for this input") and
is reported through the return code. Failing to start git at all, a timeout,
or a signal kill is a broken environment and raises GitCommandError.
"""

from __future__ import annotations

import logging
import signal
import subprocess
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

logger = logging.getLogger(__name__)

# Process-wide executable name. Set once at startup via configure_git_bin().
_git_bin = "git"


def configure_git_bin(name: str) -> None:
    """Set the git executable used by every GitRunner in this process."""
    global _git_bin
    _git_bin = name


def git_bin() -> str:
    return _git_bin


class GitCommandError(Exception):
    """git could not be launched, timed out, or was killed by a signal."""

    def __init__(self, message: str, command: list[str] | None = None):
        super().__init__(message)
        self.command = command or []


@dataclass
class GitResult:
    returncode: int
    stdout: bytes
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitStream:
    """Iterator over the stdout lines of a running git process.

    ``returncode`` is None while the process is running and is filled in
    when the surrounding ``GitRunner.stream()`` block exits. ``exhausted``
    tells whether the consumer read up to end of output.
    """

    def __init__(self, proc: subprocess.Popen):
        self._proc = proc
        self.returncode: int | None = None
        self.exhausted = False

    def __iter__(self) -> Iterator[str]:
        for raw in self._proc.stdout:
            yield raw.decode("utf-8", errors="replace")
        self.exhausted = True

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    def __init__(self, git_dir: str, timeout: float | None = None):
        self.git_dir = git_dir
        self.timeout = timeout

    def _command(self, args: tuple[str, ...]) -> list[str]:
        return [_git_bin, "--git-dir", self.git_dir, *args]

    def run(self, *args: str) -> GitResult:
        """Run git to completion and return its buffered output."""
        cmd = self._command(args)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=self.timeout)
        except OSError as e:
            raise GitCommandError(f"Could not run {cmd[0]!r}: {e}", cmd) from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(f"git {args[0]} timed out after {self.timeout}s", cmd) from e

        if proc.returncode < 0:
            raise GitCommandError(f"git {args[0]} was killed by signal {-proc.returncode}", cmd)
        if proc.returncode != 0:
            logger.debug(
                "git %s exited with %d: %s",
                args[0],
                proc.returncode,
                proc.stderr.decode("utf-8", errors="replace").strip(),
            )
        return GitResult(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

    @contextmanager
    def stream(self, *args: str) -> Iterator[GitStream]:
        """Start git and yield its stdout as lines.

        The timeout covers the whole block: a timer kills git when it runs
        out, which also ends the consumer's read loop. The pipe is closed and
        the process reaped on every exit path, including when the consumer
        raises or stops reading early.
        """
        cmd = self._command(args)
        logger.debug("Streaming %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise GitCommandError(f"Could not run {cmd[0]!r}: {e}", cmd) from e

        expired = threading.Event()

        def _expire() -> None:
            expired.set()
            proc.kill()

        deadline = None
        if self.timeout is not None:
            deadline = threading.Timer(self.timeout, _expire)
            deadline.daemon = True
            deadline.start()

        out = GitStream(proc)
        try:
            yield out
        finally:
            proc.stdout.close()
            out.returncode = proc.wait()
            if deadline is not None:
                deadline.cancel()
            if out.returncode != 0:
                logger.debug("git %s exited with %d", args[0], out.returncode)

        if out.returncode < 0 and expired.is_set():
            raise GitCommandError(f"git {args[0]} timed out after {self.timeout}s", cmd)
        # SIGPIPE is expected when the consumer stopped reading early.
        if out.returncode < 0 and (out.exhausted or out.returncode != -signal.SIGPIPE):
            raise GitCommandError(f"git {args[0]} was killed by signal {-out.returncode}", cmd)
