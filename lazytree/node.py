"""Lazily populated directory tree nodes with keyed reconciliation.

A ``DirectoryNode`` mirrors one filesystem entry. Children are read on first
access and, on reload, reconciled by name against the previous listing so
node objects held by consumers survive refreshes.
"""

from __future__ import annotations

import enum
import logging
import os
import weakref
from pathlib import Path

from .ignore import IgnoreEvaluator, IgnorePolicy

logger = logging.getLogger(__name__)


class ReloadResult(enum.Enum):
    """Outcome of ``DirectoryNode.reload``."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"

    @property
    def changed(self) -> bool:
        return self is ReloadResult.CHANGED


class _LeafMarker:
    """Children placeholder for entries that can never have children."""

    def __repr__(self) -> str:
        return "LEAF"


LEAF = _LeafMarker()


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Lexically normalize ``path`` to an absolute path (no symlink resolution)."""
    return Path(os.path.normpath(os.path.abspath(os.fspath(path))))


def _scan_directory(directory: Path) -> list[tuple[str, bool]]:
    """Return ``(name, is_dir)`` pairs in directory enumeration order."""
    entries: list[tuple[str, bool]] = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            entries.append((entry.name, is_dir))
    return entries


class DirectoryNode:
    """One file or directory in the tree.

    ``parent`` is held weakly; the parent owns its children. Filtering flags
    are copied from the parent on creation and on every reload, so a subtree
    never keeps a policy its parent no longer has once it has been reloaded.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        parent: DirectoryNode | None = None,
        *,
        show_hidden: bool = False,
        use_ignore_policy: bool = True,
        ignore_evaluator: IgnoreEvaluator | None = None,
    ) -> None:
        self._path = Path(path)
        self._parent_ref: weakref.ReferenceType[DirectoryNode] | None = None
        self._children: list[DirectoryNode] | _LeafMarker | None = None
        self.show_hidden = show_hidden
        self.use_ignore_policy = use_ignore_policy
        self.ignore_evaluator = ignore_evaluator
        self.suppress_next_reload = False
        if parent is not None:
            self._parent_ref = weakref.ref(parent)
            self._inherit_policy(parent)

    def __repr__(self) -> str:
        return f"DirectoryNode({str(self._path)!r})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def parent(self) -> DirectoryNode | None:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def full_path(self) -> Path:
        return self._path

    def relative_path(self) -> str:
        return self._path.name

    def is_root(self) -> bool:
        return self.parent is None

    def is_loaded(self) -> bool:
        return self._children is not None

    def ignore_policy(self) -> IgnorePolicy:
        return IgnorePolicy(
            show_hidden=self.show_hidden,
            use_ignore_policy=self.use_ignore_policy,
            evaluator=self.ignore_evaluator,
        )

    def _inherit_policy(self, parent: DirectoryNode) -> None:
        self.show_hidden = parent.show_hidden
        self.use_ignore_policy = parent.use_ignore_policy
        self.ignore_evaluator = parent.ignore_evaluator

    def children(self) -> list[DirectoryNode]:
        """Return children, loading this level on first access."""
        if self._children is None:
            self._load()
        if isinstance(self._children, _LeafMarker) or self._children is None:
            return []
        return list(self._children)

    def _load(self) -> None:
        if os.path.isdir(self._path):
            # Placeholder so ``reload`` treats this level as loaded.
            self._children = []
            self.reload(recursive=False)
        else:
            self._children = LEAF

    def clear(self) -> None:
        """Forget cached children; the next ``children()`` call reads disk again."""
        if isinstance(self._children, list):
            for child in self._children:
                child._detach()
        self._children = None

    def _detach(self) -> None:
        self._parent_ref = None

    def is_leaf(self) -> bool:
        """Whether this entry has no enumerable children.

        Before the first load this checks the filesystem without populating
        children.
        """
        if self._children is not None:
            return isinstance(self._children, _LeafMarker)
        return not os.path.isdir(self._path)

    def _cached_kind_conflicts(self, is_dir: bool) -> bool:
        if self._children is None:
            return False
        return isinstance(self._children, _LeafMarker) == is_dir

    def number_of_children(self) -> int:
        """Child count, or ``-1`` for leaves."""
        if self.is_leaf():
            return -1
        return len(self.children())

    def child_at_index(self, index: int) -> DirectoryNode:
        return self.children()[index]

    def dir_item(self) -> DirectoryNode:
        """Return ``self`` for directories, the parent for files."""
        if self.is_leaf():
            parent = self.parent
            return parent if parent is not None else self
        return self

    def ancestors(self) -> list[DirectoryNode]:
        """Return ancestors nearest-first, ending at the root."""
        result: list[DirectoryNode] = []
        node = self.parent
        while node is not None:
            result.append(node)
            node = node.parent
        return result

    parents = ancestors

    def reload(self, recursive: bool = False) -> ReloadResult:
        """Re-enumerate this directory and reconcile children by name.

        Levels that were never loaded are left alone. Children whose names are
        still listed keep their identity; the rest are dropped. A listing
        failure keeps the previous children.
        """
        if self._children is None:
            logger.debug("skip reload of unloaded %s", self._path)
            return ReloadResult.UNCHANGED
        if isinstance(self._children, _LeafMarker):
            return ReloadResult.UNCHANGED

        parent = self.parent
        if parent is not None:
            self._inherit_policy(parent)

        try:
            entries = _scan_directory(self._path)
        except OSError as exc:
            logger.warning("Unable to list %s: %s", self._path, exc)
            return ReloadResult.UNCHANGED

        is_dir_by_name = dict(entries)
        names = self.ignore_policy().filter_names(self._path, [name for name, _is_dir in entries])

        existing = {child.name: child for child in self._children}
        reconciled: list[DirectoryNode] = []
        for name in names:
            child = existing.pop(name, None)
            if child is None:
                child = DirectoryNode(self._path / name, parent=self)
            elif child._cached_kind_conflicts(is_dir_by_name[name]):
                # Same name, different type on disk: reload lazily as the new kind.
                child.clear()
            elif recursive and child.is_loaded() and not child.is_leaf():
                child.reload(recursive=True)
            reconciled.append(child)

        for dropped in existing.values():
            dropped._detach()

        self._children = reconciled
        return ReloadResult.CHANGED

    def item_with_name(self, name: str) -> DirectoryNode | None:
        """Return the loaded child called ``name``; never triggers a load."""
        if not isinstance(self._children, list):
            return None
        for child in self._children:
            if child.name == name:
                return child
        return None

    def item_at_path(self, path: str | os.PathLike[str], *, load: bool = False) -> DirectoryNode | None:
        """Resolve ``path`` to a node at or below this one.

        Containment is checked per path component, so ``/a/foo`` never matches
        ``/a/foobar``. Only loaded levels are descended unless ``load`` is set.
        """
        own_parts = normalize_path(self._path).parts
        target_parts = normalize_path(path).parts
        if len(target_parts) < len(own_parts) or target_parts[: len(own_parts)] != own_parts:
            return None

        node: DirectoryNode | None = self
        for component in target_parts[len(own_parts):]:
            assert node is not None
            if load and not node.is_loaded():
                node.children()
            node = node.item_with_name(component)
            if node is None:
                return None
        return node


__all__ = [
    "LEAF",
    "DirectoryNode",
    "ReloadResult",
    "normalize_path",
]
