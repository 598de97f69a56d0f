"""Scan the root directory for existing git checkouts."""

import logging
from pathlib import Path

from .constants import APP_NAME
from .errors import LocalScanError
from .git_wrapper import is_git_checkout
from .models import LocalEntry

logger = logging.getLogger(APP_NAME)


def scan_local(root: Path) -> list[LocalEntry]:
    """Lists the direct children of `root` that are git checkouts.

    Non-git directories and plain files are skipped.

    Args:
        root (Path): The directory holding all checkouts.

    Returns:
        list[LocalEntry]: Checkouts sorted by directory name.

    Raises:
        LocalScanError: If `root` does not exist, is not a directory, or
                        cannot be listed.
    """
    if not root.exists():
        raise LocalScanError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        raise LocalScanError(f"Root path is not a directory: {root}")

    try:
        children = list(root.iterdir())
    except OSError as e:
        raise LocalScanError(f"Cannot read root directory {root}: {e}") from e

    entries = [
        LocalEntry(name=child.name, path=child)
        for child in children
        if is_git_checkout(child)
    ]
    entries.sort(key=lambda e: e.name)

    logger.debug(f"Found {len(entries)} checkouts under {root}")
    return entries
