import os
from pathlib import Path

"""Global constants and configuration path definitions for reposync.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the GitHub API defaults used across the application.
"""

# --- Identity ---
APP_NAME = "reposync"
"""str: The human-readable application name."""

USER_AGENT = "reposync"
"""str: The User-Agent presented to the GitHub API."""

# --- Configuration Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
CONFIG_DIR: Path = (
    Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"
) / "reposync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- GitHub API ---
GITHUB_ACCEPT = "application/vnd.github.v3+json"
"""str: Media type requested from the repository listing endpoint."""

DEFAULT_PER_PAGE = 100
"""int: Page size requested from the listing endpoint (GitHub's maximum)."""

URL_FIELDS = ("clone_url", "ssh_url", "git_url")
"""tuple[str, ...]: Repository payload fields that may serve as the clone source."""

# --- Git / Logic Constants ---
GIT_MARKER = ".git"
"""str: The entry whose presence marks a directory as a git checkout."""

PULL_NOOP_MARKERS = ("Already up to date", "Already up-to-date", "is up to date")
"""
tuple[str, ...]: Fragments of `git pull` stdout meaning nothing was fetched
into the working branch.
"""

NEW_TAG_MARKER = "[new tag]"
"""str: `git pull` output fragment for a fetch that only brought tags."""

# --- Exit Codes ---
EXIT_OK = 0
EXIT_SYNC_FAILURES = 1
EXIT_FATAL = 2
