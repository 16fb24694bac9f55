"""stats command — aggregate patterns across imported history."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitmirror_cli.context import get_repository_id, get_store

console = Console()


@click.command("stats")
@click.option("--top", default=10, show_default=True, help="Number of top entries to show per category.")
@click.pass_context
def stats_cmd(ctx, top: int):
    """Show aggregated statistics for the imported history.

    Reports the change-type distribution, the most active committers and the
    most frequently changed paths.
    """
    repo_id = get_repository_id(ctx)
    store = get_store(ctx)

    records = store.list_changesets(repo_id)
    if not records:
        console.print("[yellow]No changesets found. Run `gitmirror sync` to import history.[/yellow]")
        return

    total_changesets = len(records)
    action_counter: Counter[str] = Counter()
    committer_counter: Counter[str] = Counter()
    path_counter: Counter[str] = Counter()

    for record in records:
        committer_counter[record.committer] += 1
        for change in record.changes:
            action_counter[change.action] += 1
            path_counter[change.path] += 1

    total_changes = sum(action_counter.values())

    # --- Summary ---
    console.print(f"\n[bold]History stats for [cyan]{escape(repo_id)}[/cyan][/bold]")
    console.print(f"  Total changesets: {total_changesets}")
    console.print(f"  Total changes:    {total_changes}")
    console.print(f"  Oldest commit:    {records[-1].committed_on[:10]}")
    console.print(f"  Newest commit:    {records[0].committed_on[:10]}")

    # --- Change types ---
    if action_counter:
        action_table = Table(title="Change Types", show_header=True)
        action_table.add_column("Action", style="bold")
        action_table.add_column("Count", justify="right")
        action_table.add_column("% of total", justify="right")
        _action_label = {"A": ("added", "green"), "M": ("modified", "yellow"), "D": ("deleted", "red")}
        for action in ["A", "M", "D"]:
            count = action_counter.get(action, 0)
            pct = f"{count / total_changes * 100:.1f}%" if total_changes else "0%"
            label, style = _action_label[action]
            action_table.add_row(f"[{style}]{label}[/{style}]", str(count), pct)
        console.print(action_table)

    # --- Committers ---
    committer_table = Table(title=f"Top {top} Committers", show_header=True)
    committer_table.add_column("Committer")
    committer_table.add_column("Changesets", justify="right")
    for committer, count in committer_counter.most_common(top):
        committer_table.add_row(escape(committer), str(count))
    console.print(committer_table)

    # --- Most changed paths ---
    if path_counter:
        path_table = Table(title=f"Top {top} Most Changed Paths", show_header=True)
        path_table.add_column("Path")
        path_table.add_column("Changes", justify="right")
        for path, count in path_counter.most_common(top):
            path_table.add_row(escape(path), str(count))
        console.print(path_table)
