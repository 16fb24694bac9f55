import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repository": None,  # path to the git-dir (bare repository or a working copy's .git)
    "repository_id": None,  # store key; None = absolute repository path
    "git_bin": "git",
    "default_branch": None,  # None = "master" if present, else first branch by name
    "command_timeout": None,  # seconds per git invocation; None = no limit
    "store": "sqlite",
    "store_path": None,  # None = .gitmirror.db (sqlite) or .gitmirror.json (json)
}


def load_config(config_path: str = ".gitmirror.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .gitmirror.yml in the current directory
      3. CLI argument overrides

    Environment fallbacks are applied last: GITMIRROR_GIT_BIN, when set,
    replaces git_bin, and GITMIRROR_REPOSITORY fills in repository only
    when nothing above set one.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Environment fallbacks
    config["git_bin"] = os.environ.get("GITMIRROR_GIT_BIN") or config["git_bin"]
    if not config.get("repository"):
        config["repository"] = os.environ.get("GITMIRROR_REPOSITORY")

    return config


def repository_id(config: dict) -> str:
    """
    Return the key changesets of the configured repository are stored under.

    Defaults to the absolute repository path so two configs pointing at the
    same repository share one history.
    """
    if config.get("repository_id"):
        return str(config["repository_id"])
    repo = config.get("repository")
    if not repo:
        raise ValueError("No repository configured.")
    return str(Path(repo).expanduser().resolve())
