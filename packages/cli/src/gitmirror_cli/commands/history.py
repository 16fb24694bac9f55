"""history command — display imported changesets from the store."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitmirror_cli.context import get_repository_id, get_store

console = Console()

_ACTION_STYLE = {"A": "green", "D": "red", "M": "yellow"}


@click.command("history")
@click.argument("path", default="")
@click.option("--limit", default=20, show_default=True, help="Maximum number of changesets to show.")
@click.pass_context
def history_cmd(ctx, path: str, limit: int):
    """Show imported changesets, newest first, optionally only those touching PATH.

    Reads from the configured store; run `gitmirror sync` first to import
    the repository history.
    """
    repo_id = get_repository_id(ctx)
    store = get_store(ctx)

    records = store.list_changesets(repo_id, path=path or None, limit=limit)
    if not records:
        console.print("[yellow]No changesets found. Run `gitmirror sync` to import history.[/yellow]")
        return

    title = f"History — {path}" if path else f"History — {repo_id}"
    table = Table(title=escape(title), show_header=True, header_style="bold cyan")
    table.add_column("Revision", style="bold", width=10)
    table.add_column("Committed", width=16)
    table.add_column("Committer", max_width=30)
    table.add_column("Changes", max_width=24)
    table.add_column("Message", max_width=40)

    for r in records:
        counts = Counter(c.action for c in r.changes)
        changes = " ".join(
            f"[{_ACTION_STYLE[a]}]{a}{counts[a]}[/{_ACTION_STYLE[a]}]" for a in ("A", "M", "D") if a in counts
        )
        table.add_row(
            r.scmid[:10],
            r.committed_on[:16].replace("T", " "),
            escape(r.committer),
            changes,
            escape(r.comments.splitlines()[0]) if r.comments else "",
        )

    console.print(table)
