"""Tree owner: rooting, path resolution, mutations, and change dispatch.

``Tree`` is the surface consumers talk to. It owns the root ``DirectoryNode``
and an optional ``WatchSession``; watch batches come back through
``handle_changed_paths`` on the owner thread, and every successful reload is
pushed to the ``ChangeSink``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from .errors import MutationFailed, NotADirectory, PathNotFound
from .ignore import IgnoreEvaluator
from .node import DirectoryNode, ReloadResult
from .watch import ChangeHandler, WatchSession

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "new file"
DEFAULT_DIRECTORY_NAME = "untitled folder"


class ChangeSink(Protocol):
    """Receiver of "this subtree must be redisplayed" notifications.

    ``recursive_hint`` is ``True`` when ``node`` is the root. Sinks may also
    define ``notify_suppressed(node)`` to observe skipped watcher echoes.
    """

    def notify_changed(self, node: DirectoryNode, recursive_hint: bool) -> None: ...


class CurrentPathProvider(Protocol):
    def request_current_path(self) -> Path | None: ...


WatchFactory = Callable[[ChangeHandler], WatchSession]


def _validate_entry_name(name: str, path: Path) -> None:
    if not name or name in (".", "..") or os.sep in name or (os.altsep and os.altsep in name):
        raise MutationFailed("use name", path, f"invalid name {name!r}")


def _available_path(directory: Path, base_name: str) -> Path:
    """Return ``directory/base_name`` or the first free ``"base_name N"``, N >= 2."""
    candidate = directory / base_name
    suffix = 2
    while os.path.lexists(candidate):
        candidate = directory / f"{base_name} {suffix}"
        suffix += 1
    return candidate


class Tree:
    """Single-root filesystem tree shared with one consumer."""

    def __init__(
        self,
        sink: ChangeSink | None = None,
        *,
        show_hidden: bool = False,
        use_ignore_policy: bool = True,
        ignore_evaluator: IgnoreEvaluator | None = None,
        current_path_provider: CurrentPathProvider | None = None,
        watch_factory: WatchFactory | None = None,
    ) -> None:
        self.sink = sink
        self.show_hidden = show_hidden
        self.use_ignore_policy = use_ignore_policy
        self.ignore_evaluator = ignore_evaluator
        self.current_path_provider = current_path_provider
        self.selection: DirectoryNode | None = None
        self._root: DirectoryNode | None = None
        self._watch: WatchSession | None = None
        if watch_factory is not None:
            self._watch = watch_factory(self.handle_changed_paths)

    @property
    def root(self) -> DirectoryNode | None:
        return self._root

    @property
    def root_path(self) -> Path | None:
        return self._root.path if self._root is not None else None

    @property
    def watch_session(self) -> WatchSession | None:
        return self._watch

    def set_root(self, path: str | os.PathLike[str]) -> DirectoryNode:
        """Replace the root with ``path``; state is unchanged when validation fails."""
        target = Path(path).expanduser()
        try:
            resolved = target.resolve()
        except OSError as exc:
            raise PathNotFound(target) from exc
        if not resolved.exists():
            raise PathNotFound(target)
        if not resolved.is_dir():
            raise NotADirectory(target)

        if self._watch is not None:
            self._watch.stop()
        self._root = DirectoryNode(
            resolved,
            show_hidden=self.show_hidden,
            use_ignore_policy=self.use_ignore_policy,
            ignore_evaluator=self.ignore_evaluator,
        )
        self.selection = None
        logger.info("tree root set to %s", resolved)
        if self._watch is not None:
            self._watch.start(resolved)
        return self._root

    def close(self) -> None:
        if self._watch is not None:
            self._watch.stop()

    def resolve(self, path: str | os.PathLike[str]) -> DirectoryNode | None:
        if self._root is None:
            return None
        return self._root.item_at_path(path)

    def select_initial(self, path: str | os.PathLike[str] | None = None) -> DirectoryNode | None:
        """Locate the node for ``path`` (or the provider's current path), loading ancestors."""
        if self._root is None:
            return None
        if path is None and self.current_path_provider is not None:
            path = self.current_path_provider.request_current_path()
        if not path:
            return None
        node = self._root.item_at_path(path, load=True)
        if node is not None:
            self.selection = node
        return node

    def children(self, node: DirectoryNode) -> list[DirectoryNode]:
        return node.children()

    def item_with_name(self, node: DirectoryNode, name: str) -> DirectoryNode | None:
        return node.item_with_name(name)

    def ancestors(self, node: DirectoryNode) -> list[DirectoryNode]:
        return node.ancestors()

    def reload(self, node: DirectoryNode, recursive: bool = False) -> ReloadResult:
        result = node.reload(recursive=recursive)
        if result.changed:
            self._notify(node)
        return result

    def set_show_hidden(self, show_hidden: bool) -> None:
        self.show_hidden = show_hidden
        if self._root is not None:
            self._root.show_hidden = show_hidden
            self.reload(self._root, recursive=True)

    def set_use_ignore_policy(self, use_ignore_policy: bool) -> None:
        self.use_ignore_policy = use_ignore_policy
        if self._root is not None:
            self._root.use_ignore_policy = use_ignore_policy
            self.reload(self._root, recursive=True)

    def handle_changed_paths(self, paths: Iterable[str | os.PathLike[str]]) -> list[DirectoryNode]:
        """Reload the nodes named by a watch batch; returns the ones reported to the sink."""
        notified: list[DirectoryNode] = []
        root = self._root
        if root is None:
            return notified
        seen: set[int] = set()
        for path in paths:
            node = root.item_at_path(path)
            if node is None:
                logger.debug("no loaded node for change at %s", path)
                continue
            if id(node) in seen:
                continue
            seen.add(id(node))
            if node.suppress_next_reload:
                node.suppress_next_reload = False
                logger.debug("suppressed echo reload of %s", node.path)
                notify_suppressed = getattr(self.sink, "notify_suppressed", None)
                if callable(notify_suppressed):
                    notify_suppressed(node)
                continue
            # The change happened in this directory only.
            if node.reload(recursive=False).changed:
                self._notify(node)
                notified.append(node)
        return notified

    def dispatch_watch_events(self) -> int:
        if self._watch is None:
            return 0
        return self._watch.dispatch_pending()

    def _notify(self, node: DirectoryNode) -> None:
        if self.sink is not None:
            self.sink.notify_changed(node, node is self._root)

    def _require_root(self) -> DirectoryNode:
        if self._root is None:
            raise MutationFailed("modify", Path(), "no root set")
        return self._root

    def _mutate(
        self,
        directory: DirectoryNode,
        action: str,
        target: Path,
        perform: Callable[[], None],
    ) -> None:
        # The flag must be set before the filesystem sees the change.
        previous = directory.suppress_next_reload
        directory.suppress_next_reload = True
        try:
            perform()
        except OSError as exc:
            directory.suppress_next_reload = previous
            logger.warning("Unable to %s %s: %s", action, target, exc)
            raise MutationFailed(action, target, exc.strerror or str(exc)) from exc

    def _refresh_after_mutation(self, directory: DirectoryNode, name: str | None) -> DirectoryNode | None:
        if directory.is_loaded():
            self.reload(directory)
        else:
            directory.children()
            self._notify(directory)
        if name is None:
            return None
        return directory.item_with_name(name)

    def _target_directory(self, node: DirectoryNode | None) -> DirectoryNode:
        directory = node.dir_item() if node is not None else self._require_root()
        if not directory.path.exists():
            raise PathNotFound(directory.path)
        if not directory.path.is_dir():
            raise NotADirectory(directory.path)
        return directory

    def _create_target(self, directory: DirectoryNode, name: str | None, default_name: str) -> Path:
        if name is None:
            return _available_path(directory.path, default_name)
        _validate_entry_name(name, directory.path)
        target = directory.path / name
        if os.path.lexists(target):
            raise MutationFailed("create", target, "already exists")
        return target

    def create_file(self, node: DirectoryNode | None = None, name: str | None = None) -> DirectoryNode | None:
        """Create an empty file in ``node``'s directory (the root by default)."""
        directory = self._target_directory(node)
        target = self._create_target(directory, name, DEFAULT_FILE_NAME)

        def perform() -> None:
            with open(target, "x", encoding="utf-8"):
                pass

        self._mutate(directory, "create", target, perform)
        return self._refresh_after_mutation(directory, target.name)

    def create_directory(self, node: DirectoryNode | None = None, name: str | None = None) -> DirectoryNode | None:
        """Create a directory in ``node``'s directory (the root by default)."""
        directory = self._target_directory(node)
        target = self._create_target(directory, name, DEFAULT_DIRECTORY_NAME)
        self._mutate(directory, "create", target, lambda: os.mkdir(target))
        return self._refresh_after_mutation(directory, target.name)

    def rename(self, node: DirectoryNode, new_name: str) -> DirectoryNode | None:
        """Rename ``node`` inside its parent directory and return the renamed node."""
        if node is self._root:
            raise MutationFailed("rename", node.path, "cannot rename the root")
        parent = node.parent
        if parent is None:
            # Dropped from the tree by an earlier reload.
            raise PathNotFound(node.path)
        _validate_entry_name(new_name, parent.path)
        if new_name == node.name:
            return node
        if not os.path.lexists(node.path):
            raise PathNotFound(node.path)
        target = parent.path / new_name
        if os.path.lexists(target):
            raise MutationFailed("rename", node.path, f"{target} already exists")

        self._mutate(parent, "rename", node.path, lambda: os.rename(node.path, target))
        return self._refresh_after_mutation(parent, new_name)

    def delete(self, node: DirectoryNode) -> None:
        """Remove ``node`` from disk (directories recursively)."""
        if node is self._root:
            raise MutationFailed("delete", node.path, "cannot delete the root")
        parent = node.parent
        if parent is None:
            # Dropped from the tree by an earlier reload.
            raise PathNotFound(node.path)
        path = node.path
        if not os.path.lexists(path):
            raise PathNotFound(path)

        def perform() -> None:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.unlink(path)

        self._mutate(parent, "delete", path, perform)
        self._refresh_after_mutation(parent, None)


__all__ = [
    "DEFAULT_DIRECTORY_NAME",
    "DEFAULT_FILE_NAME",
    "ChangeSink",
    "CurrentPathProvider",
    "Tree",
]
