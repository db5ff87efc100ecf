"""Filename filtering rules applied while reconciling directory listings.

``IgnorePolicy`` is a pure predicate over a filename plus the two inherited
flags (show-hidden, use-ignore-policy). Names that survive the built-in hidden
and swap-file rules are handed to an optional external evaluator, batched per
directory listing when the evaluator supports it.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Editor swap files are named ``.original-name.sXY`` with XY in "aa".."wp".
SWAP_SUFFIX_MIN = "saa"
SWAP_SUFFIX_MAX = "swp"


@runtime_checkable
class IgnoreEvaluator(Protocol):
    """External "should this filename be hidden" capability.

    Must be deterministic for a given filename and ignore configuration.
    Implementations may also provide ``evaluate_ignore_batch(directory, names)``
    returning the subset of ``names`` to ignore.
    """

    def evaluate_ignore(self, filename: str) -> bool: ...


def is_hidden_name(name: str) -> bool:
    return name.startswith(".")


def is_swap_file_name(name: str) -> bool:
    """Return whether a hidden ``name`` looks like an editor swap file."""
    if not is_hidden_name(name) or len(name) < 4:
        return False
    return SWAP_SUFFIX_MIN <= name[-3:] <= SWAP_SUFFIX_MAX


@dataclass(frozen=True)
class IgnorePolicy:
    """Filtering configuration captured from a node at reload time."""

    show_hidden: bool = False
    use_ignore_policy: bool = True
    evaluator: IgnoreEvaluator | None = None

    def _excluded_by_builtin_rules(self, name: str) -> bool | None:
        """Return a decision from the hidden/swap rules, ``None`` when undecided."""
        if is_hidden_name(name):
            if not self.show_hidden:
                return True
            # Shown hidden files never reach the external evaluator.
            return is_swap_file_name(name)
        return None

    def _wants_evaluator(self) -> bool:
        return self.use_ignore_policy and self.evaluator is not None

    def is_ignored(self, name: str) -> bool:
        """Decide a single ``name``; evaluator faults fail open."""
        decision = self._excluded_by_builtin_rules(name)
        if decision is not None:
            return decision
        if not self._wants_evaluator():
            return False
        assert self.evaluator is not None
        try:
            return bool(self.evaluator.evaluate_ignore(name))
        except Exception:
            logger.debug("ignore evaluation failed for %r", name, exc_info=True)
            return False

    def filter_names(self, directory: Path, names: Sequence[str]) -> list[str]:
        """Return ``names`` minus ignored entries, preserving order.

        All names needing external evaluation go to the evaluator in one batch
        when it exposes ``evaluate_ignore_batch``.
        """
        kept: list[str] = []
        pending: list[str] = []
        for name in names:
            decision = self._excluded_by_builtin_rules(name)
            if decision is True:
                continue
            kept.append(name)
            if decision is None:
                pending.append(name)

        if not pending or not self._wants_evaluator():
            return kept

        assert self.evaluator is not None
        ignored = evaluate_ignored_names(self.evaluator, directory, pending)
        if not ignored:
            return kept
        return [name for name in kept if name not in ignored]


def evaluate_ignored_names(
    evaluator: IgnoreEvaluator,
    directory: Path,
    names: Sequence[str],
) -> set[str]:
    """Return the subset of ``names`` the evaluator ignores.

    Uses ``evaluate_ignore_batch`` when available, otherwise one call per name.
    A failing batch ignores nothing; a failing per-name call keeps that name.
    """
    batch = getattr(evaluator, "evaluate_ignore_batch", None)
    if callable(batch):
        try:
            return set(batch(directory, list(names)))
        except Exception:
            logger.debug("batched ignore evaluation failed in %s", directory, exc_info=True)
            return set()

    ignored: set[str] = set()
    for name in names:
        try:
            if evaluator.evaluate_ignore(name):
                ignored.add(name)
        except Exception:
            logger.debug("ignore evaluation failed for %r", name, exc_info=True)
    return ignored


def parse_patterns(patterns: str | Iterable[str] | None) -> tuple[str, ...]:
    """Normalize a comma-separated pattern string or iterable into a tuple."""
    if patterns is None:
        return ()
    if isinstance(patterns, str):
        raw = patterns.split(",")
    else:
        raw = list(patterns)
    return tuple(item.strip() for item in raw if item and item.strip())


class PatternIgnoreEvaluator:
    """Shell-style filename patterns in the editor "wildignore" format.

    ``PatternIgnoreEvaluator("*.pyc,*.o,build")`` ignores compiled files and any
    entry literally named ``build``. Matching is case-sensitive.
    """

    def __init__(self, patterns: str | Iterable[str] | None = None) -> None:
        self.patterns = parse_patterns(patterns)

    def evaluate_ignore(self, filename: str) -> bool:
        return any(fnmatch.fnmatchcase(filename, pattern) for pattern in self.patterns)

    def evaluate_ignore_batch(self, directory: Path, filenames: Sequence[str]) -> set[str]:
        return {name for name in filenames if self.evaluate_ignore(name)}

    def __repr__(self) -> str:
        return f"PatternIgnoreEvaluator({','.join(self.patterns)!r})"


class ChainedIgnoreEvaluator:
    """Ignore a filename when any of the wrapped evaluators ignores it."""

    def __init__(self, *evaluators: IgnoreEvaluator) -> None:
        self.evaluators = tuple(evaluators)

    def evaluate_ignore(self, filename: str) -> bool:
        return any(evaluator.evaluate_ignore(filename) for evaluator in self.evaluators)

    def evaluate_ignore_batch(self, directory: Path, filenames: Sequence[str]) -> set[str]:
        ignored: set[str] = set()
        for evaluator in self.evaluators:
            ignored.update(evaluate_ignored_names(evaluator, directory, filenames))
        return ignored


__all__ = [
    "SWAP_SUFFIX_MIN",
    "SWAP_SUFFIX_MAX",
    "IgnoreEvaluator",
    "IgnorePolicy",
    "PatternIgnoreEvaluator",
    "ChainedIgnoreEvaluator",
    "evaluate_ignored_names",
    "is_hidden_name",
    "is_swap_file_name",
    "parse_patterns",
]
