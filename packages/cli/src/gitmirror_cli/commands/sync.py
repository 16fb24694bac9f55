"""sync / status commands — import history into the configured store."""

from __future__ import annotations

import click
from rich.console import Console

from gitmirror_cli.context import get_adapter, get_repository_id, get_store, reports_git_errors
from gitmirror_core.revision import Revision
from gitmirror_core.sync import SyncState, fetch_changesets, sync_state
from gitmirror_store.models import ChangeRecord, ChangesetRecord

console = Console()


def revision_to_record(repository_id: str, revision: Revision) -> ChangesetRecord:
    """Map a Revision read from git to a ChangesetRecord for the store.

    gitmirror_core has no store knowledge and gitmirror_store has no core
    knowledge, so the mapping lives here.
    """
    return ChangesetRecord(
        repository_id=repository_id,
        revision=revision.identifier,
        scmid=revision.scmid,
        committer=revision.author,
        committed_on=revision.time.isoformat() if revision.time else "",
        comments=revision.message,
        changes=[ChangeRecord(action=c.action, path=c.path) for c in revision.paths],
    )


class StoreWriter:
    """Presents a BaseStore as the ChangesetStore the sync engine expects."""

    def __init__(self, store):
        self._store = store

    def latest_scmid(self, repository_id: str) -> str | None:
        record = self._store.latest(repository_id)
        return record.scmid if record else None

    def exists(self, repository_id: str, scmid: str) -> bool:
        return self._store.exists(repository_id, scmid)

    def persist(self, repository_id: str, revision: Revision) -> bool:
        return self._store.save(revision_to_record(repository_id, revision))


_STATE_STYLE = {
    SyncState.SYNCED: "green",
    SyncState.BEHIND: "yellow",
    SyncState.UNINITIALIZED: "yellow",
    SyncState.UNAVAILABLE: "red",
}


@click.command("sync")
@click.pass_context
@reports_git_errors
def sync_cmd(ctx):
    """Import commits the store has not seen yet.

    The first run imports the whole history (merge commits excluded), oldest
    first. Later runs only fetch commits newer than the last imported one.
    Running sync again with no new upstream commits does nothing.
    """
    adapter = get_adapter(ctx)
    repo_id = get_repository_id(ctx)
    store = get_store(ctx)

    result = fetch_changesets(adapter, StoreWriter(store), repo_id)

    if result.state is SyncState.UNAVAILABLE:
        console.print(f"[red]Repository {adapter.url} could not be read.[/red]")
        ctx.exit(1)

    if result.imported == 0 and result.failed == 0:
        console.print("[green]Already up to date.[/green]")
    else:
        console.print(f"[green]Imported {result.imported} revision(s).[/green]")
    if result.skipped:
        console.print(f"[dim]{result.skipped} revision(s) were already stored.[/dim]")
    if result.failed:
        console.print(f"[yellow]{result.failed} revision(s) could not be imported; see the log.[/yellow]")


@click.command("status")
@click.pass_context
@reports_git_errors
def status_cmd(ctx):
    """Show whether the store is in sync with the repository tip."""
    adapter = get_adapter(ctx)
    state = sync_state(adapter, StoreWriter(get_store(ctx)), get_repository_id(ctx))
    style = _STATE_STYLE.get(state, "white")
    console.print(f"[{style}]{state.value}[/{style}]")
    if state is SyncState.UNAVAILABLE:
        ctx.exit(1)
