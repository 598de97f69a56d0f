"""reposync: keep a directory of GitHub team repositories up to date.

This package provides the command-line interface and the reconciliation engine
that lists a team's repositories, pulls the ones already checked out locally,
clones the missing ones concurrently, and reports what happened.
"""

__version__ = "0.1.0"

from . import (  # noqa: E402
    cli,
    config,
    constants,
    engine,
    errors,
    executor,
    git_wrapper,
    models,
    planner,
    remote,
    scanner,
    summary,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "engine",
    "errors",
    "executor",
    "git_wrapper",
    "models",
    "planner",
    "remote",
    "scanner",
    "summary",
]
