"""Gitignore-aware ignore evaluator.

Asks git which entries of a directory listing are ignored, one subprocess per
listing. Results are cached per directory with bounded staleness so repeated
reloads of an unchanged directory do not fork git again.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

GITIGNORE_CACHE_MAX = 64
GITIGNORE_CACHE_TTL_SECONDS = 2.0
GIT_CHECK_IGNORE_TIMEOUT_SECONDS = 2.0


@dataclass(frozen=True)
class _ListingCacheEntry:
    """Ignored names for one directory plus its mtime and insertion timestamp."""

    evaluated: frozenset[str]
    ignored: frozenset[str]
    directory_mtime_ns: int | None
    loaded_at: float


_GITIGNORE_CACHE: OrderedDict[str, _ListingCacheEntry] = OrderedDict()


def clear_gitignore_cache() -> None:
    """Clear cached check-ignore results."""
    _GITIGNORE_CACHE.clear()


def _directory_mtime_ns(directory: Path) -> int | None:
    try:
        return int(directory.stat().st_mtime_ns)
    except OSError:
        return None


def _check_ignore(directory: Path, names: Sequence[str]) -> set[str]:
    """Run ``git check-ignore`` for ``names`` relative to ``directory``.

    Returns an empty set when git is unavailable, ``directory`` is not inside a
    work tree, or the git call fails. Tracked files are never reported.
    """
    if not names or shutil.which("git") is None:
        return set()

    payload = b"".join(name.encode("utf-8", errors="surrogateescape") + b"\0" for name in names)
    try:
        proc = subprocess.run(
            ["git", "-C", str(directory), "check-ignore", "--stdin", "-z"],
            input=payload,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
            timeout=GIT_CHECK_IGNORE_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError):
        logger.debug("git check-ignore failed in %s", directory, exc_info=True)
        return set()

    # 0: some ignored, 1: none ignored, anything else: not a repo or fatal.
    if proc.returncode not in (0, 1):
        return set()

    ignored: set[str] = set()
    for raw in proc.stdout.split(b"\0"):
        if not raw:
            continue
        ignored.add(raw.decode("utf-8", errors="surrogateescape").rstrip("/"))
    return ignored


def ignored_names_in(directory: Path, names: Sequence[str]) -> set[str]:
    """Return cached or freshly queried ignored subset of ``names``."""
    key = str(directory)
    requested = frozenset(names)
    directory_mtime_ns = _directory_mtime_ns(directory)
    now = time.monotonic()

    cached = _GITIGNORE_CACHE.get(key)
    if cached is not None:
        cache_age = now - cached.loaded_at
        if (
            cached.directory_mtime_ns == directory_mtime_ns
            and cache_age <= GITIGNORE_CACHE_TTL_SECONDS
            and requested <= cached.evaluated
        ):
            _GITIGNORE_CACHE.move_to_end(key)
            return set(cached.ignored & requested)

    ignored = _check_ignore(directory, list(names))
    _GITIGNORE_CACHE[key] = _ListingCacheEntry(
        evaluated=requested,
        ignored=frozenset(ignored),
        directory_mtime_ns=directory_mtime_ns,
        loaded_at=now,
    )
    _GITIGNORE_CACHE.move_to_end(key)
    while len(_GITIGNORE_CACHE) > GITIGNORE_CACHE_MAX:
        _GITIGNORE_CACHE.popitem(last=False)
    return ignored


class GitIgnoreEvaluator:
    """Ignore evaluator answering from the repository's ignore rules.

    ``base_directory`` anchors single-name queries, which carry no directory
    context; batched queries use the directory being listed.
    """

    def __init__(self, base_directory: Path | None = None) -> None:
        self.base_directory = base_directory

    def evaluate_ignore(self, filename: str) -> bool:
        directory = self.base_directory or Path.cwd()
        return filename in ignored_names_in(directory, [filename])

    def evaluate_ignore_batch(self, directory: Path, filenames: Sequence[str]) -> set[str]:
        return ignored_names_in(directory, filenames)


__all__ = [
    "GitIgnoreEvaluator",
    "clear_gitignore_cache",
    "ignored_names_in",
]
