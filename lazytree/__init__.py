"""Public package surface for lazytree.

A lazily populated filesystem tree that keeps node identity across reloads
and refreshes itself from a recursive filesystem watcher.
"""

from __future__ import annotations

from .errors import MutationFailed, NotADirectory, PathNotFound, TreeError
from .ignore import IgnoreEvaluator, IgnorePolicy, PatternIgnoreEvaluator
from .node import DirectoryNode, ReloadResult
from .tree import ChangeSink, Tree
from .watch import WatchSession, WatchState


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = [
    "ChangeSink",
    "DirectoryNode",
    "IgnoreEvaluator",
    "IgnorePolicy",
    "MutationFailed",
    "NotADirectory",
    "PathNotFound",
    "PatternIgnoreEvaluator",
    "ReloadResult",
    "Tree",
    "TreeError",
    "WatchSession",
    "WatchState",
    "main",
]
