"""CLI entry point for gitmirror.

Commands:
  sync      — import new commits into the changeset store
  status    — compare the store with the repository tip
  info      — show the newest revision of the repository
  branches  — list branches, marking the default one
  log       — list revisions, optionally for one path
  ls        — list a directory with the last revision touching each entry
  diff      — show a commit, or the difference between two revisions
  blame     — show who last changed each line of a file
  cat       — print a file as of a revision
  history   — list imported changesets from the store
  stats     — aggregate committers and most-changed paths from the store
  init      — interactive setup wizard writing .gitmirror.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from gitmirror_cli.commands.history import history_cmd
from gitmirror_cli.commands.init import init_cmd
from gitmirror_cli.commands.query import blame_cmd, branches_cmd, cat_cmd, diff_cmd, info_cmd, log_cmd, ls_cmd
from gitmirror_cli.commands.stats import stats_cmd
from gitmirror_cli.commands.sync import status_cmd, sync_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("gitmirror"),
    prog_name="gitmirror",
)
@click.option(
    "--config",
    "config_path",
    default=".gitmirror.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="GITMIRROR_CONFIG",
)
@click.option(
    "--repo",
    "repository",
    default=None,
    help="Path to the repository's git directory. Overrides config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every git invocation.")
@click.pass_context
def main(ctx: click.Context, config_path: str, repository: str | None, verbose: bool):
    """Mirror a git repository's history into a queryable changeset store."""
    from gitmirror_core.config import load_config
    from gitmirror_core.git.runner import configure_git_bin

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ctx.ensure_object(dict)

    config = load_config(config_path, cli_overrides={"repository": repository})

    # The git executable is process-wide; fix it before any command runs git.
    configure_git_bin(config["git_bin"])

    ctx.obj["config"] = config


main.add_command(sync_cmd)
main.add_command(status_cmd)
main.add_command(info_cmd)
main.add_command(branches_cmd)
main.add_command(log_cmd)
main.add_command(ls_cmd)
main.add_command(diff_cmd)
main.add_command(blame_cmd)
main.add_command(cat_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
main.add_command(init_cmd)
