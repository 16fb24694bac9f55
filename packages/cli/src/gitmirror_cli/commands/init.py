"""init command — interactive setup wizard.

Writes .gitmirror.yml so every later command (sync from cron, ad-hoc
queries) runs without repeating --repo and store options.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from gitmirror_core.git.runner import git_bin

console = Console()
logger = logging.getLogger(__name__)

_CONFIG_FILE = ".gitmirror.yml"


@click.command("init")
@click.option("--repo", "repository", default=None, help="Repository git directory. Auto-detected from cwd.")
def init_cmd(repository: str | None):
    """Set up gitmirror for a repository.

    Creates (or updates) .gitmirror.yml with the repository location and the
    changeset store to import into.
    """
    console.print("\n[bold cyan]gitmirror init[/bold cyan] — setup wizard\n")

    # --- Detect the repository from the current directory ---
    if repository is None:
        detected = _detect_git_dir()
        if detected:
            console.print(f"[dim]Detected repository: {detected}[/dim]")
        repository = click.prompt("Repository git directory", default=detected)

    # --- Choose store backend ---
    console.print("\nChangeset store:")
    console.print("  [bold]sqlite[/bold]  — local SQLite database (default, scales to large histories)")
    console.print("  [bold]json[/bold]    — single JSON file (easy to inspect, small repositories)")
    store_type = click.prompt(
        "Store backend",
        type=click.Choice(["sqlite", "json"]),
        default="sqlite",
    )

    default_path = ".gitmirror.db" if store_type == "sqlite" else ".gitmirror.json"
    store_path = click.prompt("Store path", default=default_path)

    config: dict = {"repository": repository, "store": store_type}
    if store_path != default_path:
        config["store_path"] = store_path

    branch = click.prompt("Default branch (empty = auto-detect)", default="", show_default=False)
    if branch:
        config["default_branch"] = branch

    _write_config(config)
    console.print(f"[green]Created {_CONFIG_FILE}[/green]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Import the history with: [bold]gitmirror sync[/bold]")


def _detect_git_dir() -> str | None:
    """Return the absolute git directory of the repository containing cwd, if any."""
    try:
        result = subprocess.run(
            [git_bin(), "rev-parse", "--absolute-git-dir"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        logger.debug("Not inside a git repository: %s", result.stderr.strip())
        return None
    return result.stdout.strip() or None


def _write_config(config: dict) -> None:
    """Write or update .gitmirror.yml, preserving any existing keys."""
    path = Path(_CONFIG_FILE)
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
