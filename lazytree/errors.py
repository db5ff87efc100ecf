"""Error taxonomy for tree rooting and mutation requests.

Enumeration and ignore-evaluation failures are not represented here: the tree
degrades (keeps stale children, fails open) instead of raising for those.
"""

from __future__ import annotations

from pathlib import Path


class TreeError(Exception):
    """Base class for errors surfaced to tree consumers."""


class PathNotFound(TreeError, FileNotFoundError):
    """Requested path does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Path not found: {path}")
        self.path = path


class NotADirectory(TreeError, NotADirectoryError):
    """Requested path exists but is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Not a directory: {path}")
        self.path = path


class MutationFailed(TreeError):
    """A create/rename/delete request failed at the filesystem level."""

    def __init__(self, action: str, path: Path, reason: str = "") -> None:
        message = f"Unable to {action} {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.action = action
        self.path = path


__all__ = [
    "TreeError",
    "PathNotFound",
    "NotADirectory",
    "MutationFailed",
]
