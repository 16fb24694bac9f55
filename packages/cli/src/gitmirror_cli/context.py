"""Shared plumbing for CLI commands: store and adapter construction.

Both are built lazily on first use so commands that need neither (init) or
only one of them do not touch the other. Objects live on the root click
context and are shared by the whole invocation.
"""

from __future__ import annotations

import functools

import click
from rich.console import Console

from gitmirror_core.git.runner import GitCommandError

console = Console()


def build_store(config: dict):
    """Instantiate the configured store from .gitmirror.yml settings.

    Store selection:
      store: sqlite → SQLiteStore   (store_path or .gitmirror.db) — default
      store: json   → JSONFileStore (store_path or .gitmirror.json)

    This factory lives in the CLI so neither gitmirror_core nor
    gitmirror_store know about the CLI config format.
    """
    store_type = config.get("store") or "sqlite"

    if store_type == "sqlite":
        from gitmirror_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path") or ".gitmirror.db")

    if store_type == "json":
        from gitmirror_store.json_file import JSONFileStore

        return JSONFileStore(path=config.get("store_path") or ".gitmirror.json")

    raise click.UsageError(f"Unknown store type {store_type!r}. Choose 'sqlite' or 'json'.")


def build_adapter(config: dict):
    """Instantiate a GitAdapter for the configured repository."""
    from gitmirror_core.adapter import GitAdapter

    repository = config.get("repository")
    if not repository:
        raise click.UsageError(
            "No repository configured. Pass --repo, set GITMIRROR_REPOSITORY, "
            "or add 'repository: /path/to/repo.git' to .gitmirror.yml."
        )
    return GitAdapter(
        repository,
        default_branch=config.get("default_branch"),
        timeout=config.get("command_timeout"),
    )


def get_config(ctx: click.Context) -> dict:
    return ctx.find_root().obj["config"]


def get_store(ctx: click.Context):
    root = ctx.find_root()
    if root.obj.get("store") is None:
        store = build_store(root.obj["config"])
        root.obj["store"] = store
        root.call_on_close(store.close)
    return root.obj["store"]


def get_adapter(ctx: click.Context):
    root = ctx.find_root()
    if root.obj.get("adapter") is None:
        root.obj["adapter"] = build_adapter(root.obj["config"])
    return root.obj["adapter"]


def get_repository_id(ctx: click.Context) -> str:
    from gitmirror_core.config import repository_id

    try:
        return repository_id(get_config(ctx))
    except ValueError as e:
        raise click.UsageError(f"{e} Pass --repo or set repository_id in .gitmirror.yml.") from e


def reports_git_errors(func):
    """Turn GitCommandError (git missing, timed out, killed) into a clean CLI error."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GitCommandError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


def unavailable(ctx: click.Context, message: str) -> None:
    """Report a query git had no answer for and exit with status 1."""
    console.print(f"[yellow]{message}[/yellow]")
    ctx.exit(1)
