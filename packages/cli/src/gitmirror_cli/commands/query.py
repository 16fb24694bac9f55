"""Repository query commands — read straight from git, bypassing the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitmirror_cli.context import get_adapter, reports_git_errors, unavailable

console = Console()


def _first_line(message: str) -> str:
    return escape(message.splitlines()[0]) if message else ""


def _format_time(revision) -> str:
    return revision.time.strftime("%Y-%m-%d %H:%M") if revision and revision.time else ""


@click.command("info")
@click.pass_context
@reports_git_errors
def info_cmd(ctx):
    """Show the newest revision in the repository."""
    adapter = get_adapter(ctx)
    info = adapter.info()
    if info is None:
        unavailable(ctx, f"Repository {adapter.url} could not be read or has no commits.")

    rev = info.lastrev
    console.print(f"[bold]Repository:[/bold] {escape(info.root_url)}", highlight=False)
    console.print(f"[bold]Latest:[/bold]     {rev.identifier}")
    console.print(f"[bold]Author:[/bold]     {escape(rev.author)}", highlight=False)
    console.print(f"[bold]Date:[/bold]       {_format_time(rev)}")
    console.print(f"\n    {_first_line(rev.message)}", highlight=False)


@click.command("branches")
@click.pass_context
@reports_git_errors
def branches_cmd(ctx):
    """List branches; the default branch is marked with '*'."""
    adapter = get_adapter(ctx)
    names = adapter.branches()
    if not names:
        unavailable(ctx, "No branches found.")
    default = adapter.default_branch()
    for name in names:
        marker = "*" if name == default else " "
        click.echo(f"{marker} {name}")


@click.command("log")
@click.argument("path", default="")
@click.option("--from", "identifier_from", default=None, help="Only revisions newer than this one.")
@click.option("--to", "identifier_to", default=None, help="Newest revision to include (default: all branches).")
@click.option("--limit", "-n", type=int, default=None, help="Maximum number of revisions to show.")
@click.option("--reverse", is_flag=True, help="Oldest revision first.")
@click.option("--paths", "show_paths", is_flag=True, help="List the paths each revision changed.")
@click.pass_context
@reports_git_errors
def log_cmd(ctx, path: str, identifier_from, identifier_to, limit, reverse: bool, show_paths: bool):
    """List revisions of the repository, or of PATH only."""
    adapter = get_adapter(ctx)
    revisions = adapter.revisions(path, identifier_from, identifier_to, limit=limit, reverse=reverse)
    if not revisions:
        unavailable(ctx, "No revisions found.")

    if show_paths:
        for rev in revisions:
            header = f"[bold yellow]{rev.identifier[:10]}[/bold yellow] {_first_line(rev.message)}"
            console.print(header, highlight=False)
            for change in rev.paths:
                click.echo(f"    {change.action} {change.path}")
        return

    title = f"Revisions — {path}" if path else "Revisions"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Revision", style="bold", width=10)
    table.add_column("Date", width=16)
    table.add_column("Author", max_width=30)
    table.add_column("Changes", justify="right", width=8)
    table.add_column("Message", max_width=50)

    for rev in revisions:
        table.add_row(
            rev.identifier[:10],
            _format_time(rev),
            escape(rev.author),
            str(len(rev.paths)),
            _first_line(rev.message),
        )

    console.print(table)


@click.command("ls")
@click.argument("path", default="")
@click.option("--rev", "identifier", default=None, help="Revision to list (default: tip of the default branch).")
@click.pass_context
@reports_git_errors
def ls_cmd(ctx, path: str, identifier):
    """List the contents of a directory with the last revision touching each entry."""
    adapter = get_adapter(ctx)
    entries = adapter.entries(path, identifier)
    if entries is None:
        unavailable(ctx, f"Cannot list {path or '/'} at {identifier or 'the default branch'}.")

    table = Table(title=path or "/", show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Size", justify="right", width=10)
    table.add_column("Revision", width=10)
    table.add_column("Date", width=16)
    table.add_column("Author", max_width=30)

    for entry in entries:
        name = f"[bold blue]{escape(entry.name)}/[/bold blue]" if entry.is_dir else escape(entry.name)
        rev = entry.lastrev
        table.add_row(
            name,
            "" if entry.size is None else str(entry.size),
            rev.identifier[:10] if rev else "",
            _format_time(rev),
            escape(rev.author) if rev else "",
        )

    console.print(table)


@click.command("diff")
@click.argument("path", default="")
@click.option("--from", "identifier_from", default=None, help="Revision to show (default: tip of the default branch).")
@click.option("--to", "identifier_to", default=None, help="Compare against this revision instead of the parent.")
@click.pass_context
@reports_git_errors
def diff_cmd(ctx, path: str, identifier_from, identifier_to):
    """Show a revision as a patch, or the difference between two revisions."""
    lines = get_adapter(ctx).diff(path, identifier_from, identifier_to)
    if lines is None:
        unavailable(ctx, "No differences (or unknown revision).")
    click.echo("".join(lines), nl=False)


@click.command("blame")
@click.argument("path")
@click.option("--rev", "identifier", default=None, help="Revision to annotate (default: tip of the default branch).")
@click.pass_context
@reports_git_errors
def blame_cmd(ctx, path: str, identifier):
    """Show the revision and author that last changed each line of PATH."""
    annotation = get_adapter(ctx).annotate(path, identifier)
    if annotation is None:
        unavailable(ctx, f"Cannot annotate {path} (binary, missing, or unknown revision).")

    width = len(str(len(annotation)))
    for lineno, line in enumerate(annotation, start=1):
        click.echo(f"{line.revision.identifier[:8]} {line.revision.author:<12} {lineno:>{width}} {line.content}")


@click.command("cat")
@click.argument("path")
@click.option("--rev", "identifier", default=None, help="Revision to read (default: tip of the default branch).")
@click.pass_context
@reports_git_errors
def cat_cmd(ctx, path: str, identifier):
    """Write the raw content of PATH at a revision to stdout."""
    content = get_adapter(ctx).cat(path, identifier)
    if content is None:
        unavailable(ctx, f"{path} does not exist at {identifier or 'the default branch'}.")
    stdout = click.get_binary_stream("stdout")
    stdout.write(content)
    stdout.flush()
