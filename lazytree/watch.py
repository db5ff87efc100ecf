"""Recursive filesystem watch session with owner-thread delivery.

A background thread runs ``watchfiles.watch`` over the tree root. Each
debounced batch of raw changes is reduced to the set of directories whose
listings changed and queued. The thread that owns the tree drains the queue
with ``dispatch_pending`` so node state is only ever touched from one thread.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from queue import Empty, Queue

from watchfiles import Change, watch

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1500
STOP_JOIN_TIMEOUT_SECONDS = 2.0

ChangeBatch = set[tuple[Change, str]]
WatchFn = Callable[..., Iterable[ChangeBatch]]
ChangeHandler = Callable[[list[Path]], object]


class WatchState(enum.Enum):
    STOPPED = "stopped"
    WATCHING = "watching"


def changed_directories(changes: Iterable[tuple[Change, str]]) -> frozenset[Path]:
    """Map raw ``(change, path)`` pairs to the directories whose listing changed."""
    directories: set[Path] = set()
    for _change, raw_path in changes:
        path = Path(raw_path)
        directories.add(path.parent)
    return frozenset(directories)


class WatchSession:
    """Stopped/watching state machine around one recursive watcher thread.

    ``start`` and ``stop`` are idempotent. Batches produced by a previous
    start (or arriving after ``stop``) are discarded by generation.
    """

    def __init__(
        self,
        handler: ChangeHandler | None = None,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        watch_fn: WatchFn | None = None,
    ) -> None:
        self.handler = handler
        self.debounce_ms = debounce_ms
        self._watch_fn = watch_fn if watch_fn is not None else watch
        self._lock = threading.Lock()
        self._state = WatchState.STOPPED
        self._root: Path | None = None
        self._generation = 0
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._batches: Queue[tuple[int, frozenset[Path]]] = Queue()
        self._held: list[tuple[int, frozenset[Path]]] = []

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def root(self) -> Path | None:
        return self._root

    def is_watching(self) -> bool:
        return self._state is WatchState.WATCHING

    def start(self, root: Path) -> bool:
        """Begin watching ``root``; returns ``False`` when already watching."""
        with self._lock:
            if self._state is WatchState.WATCHING:
                return False
            self._generation += 1
            generation = self._generation
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._root = root
            self._state = WatchState.WATCHING
            thread = threading.Thread(
                target=self._run,
                args=(root, generation, stop_event),
                name="lazytree-watch",
                daemon=True,
            )
            self._thread = thread
        logger.debug("watching %s (debounce %d ms)", root, self.debounce_ms)
        thread.start()
        return True

    def stop(self) -> bool:
        """Stop watching and drop queued batches; returns ``False`` when already stopped."""
        with self._lock:
            if self._state is WatchState.STOPPED:
                return False
            self._state = WatchState.STOPPED
            self._generation += 1
            stop_event = self._stop_event
            thread = self._thread
            self._stop_event = None
            self._thread = None
            root = self._root
            self._root = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT_SECONDS)
        self._discard_queued()
        logger.debug("stopped watching %s", root)
        return True

    def _run(self, root: Path, generation: int, stop_event: threading.Event) -> None:
        try:
            for changes in self._watch_fn(
                root,
                debounce=self.debounce_ms,
                stop_event=stop_event,
                recursive=True,
                watch_filter=None,
                raise_interrupt=False,
            ):
                if stop_event.is_set():
                    break
                directories = changed_directories(changes)
                if directories:
                    self._batches.put((generation, directories))
        except Exception:
            logger.exception("watcher for %s failed", root)
        finally:
            with self._lock:
                if self._generation == generation and self._state is WatchState.WATCHING:
                    self._state = WatchState.STOPPED
                    self._stop_event = None
                    self._thread = None
                    self._root = None

    def _discard_queued(self) -> None:
        self._held.clear()
        while True:
            try:
                self._batches.get_nowait()
            except Empty:
                break

    def pending(self) -> bool:
        return bool(self._held) or not self._batches.empty()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a batch is queued; returns whether one arrived."""
        if self._held:
            return True
        try:
            self._held.append(self._batches.get(timeout=timeout))
        except Empty:
            return False
        return True

    def drain(self) -> list[list[Path]]:
        """Collect queued batches for the current session in arrival order.

        Each debounce window stays its own batch; paths are only deduplicated
        within a batch.
        """
        batches = list(self._held)
        self._held.clear()
        while True:
            try:
                batches.append(self._batches.get_nowait())
            except Empty:
                break

        generation = self._generation
        if self._state is WatchState.STOPPED:
            return []
        return [
            sorted(directories, key=lambda item: (len(item.parts), str(item)))
            for batch_generation, directories in batches
            if batch_generation == generation and directories
        ]

    def dispatch_pending(self) -> int:
        """Hand each queued batch to the handler; returns how many paths were passed."""
        count = 0
        for paths in self.drain():
            if self.handler is not None:
                self.handler(paths)
            count += len(paths)
        return count


__all__ = [
    "DEFAULT_DEBOUNCE_MS",
    "WatchSession",
    "WatchState",
    "changed_directories",
]
