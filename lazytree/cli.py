"""Command-line front door for lazytree.

Parses CLI options, roots a tree at the target directory, and prints it.
With ``--watch`` it keeps the tree live and prints every refreshed subtree.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import TreeSettings, load_settings, save_settings
from .errors import TreeError
from .gitignore import GitIgnoreEvaluator
from .ignore import ChainedIgnoreEvaluator, IgnoreEvaluator, PatternIgnoreEvaluator
from .node import DirectoryNode
from .tree import Tree
from .watch import WatchSession

WATCH_WAIT_SECONDS = 0.5


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def render_tree(node: DirectoryNode, depth: int, indent: int = 0) -> list[str]:
    """Render ``node``'s children as indented lines, expanding ``depth`` levels."""
    lines: list[str] = []
    if depth <= 0:
        return lines
    for child in node.children():
        is_dir = not child.is_leaf()
        lines.append(f"{'  ' * indent}{child.name}{'/' if is_dir else ''}")
        if is_dir:
            lines.extend(render_tree(child, depth - 1, indent + 1))
    return lines


class PrintingSink:
    """Change sink that writes refreshed subtrees to a text stream."""

    def __init__(self, stream=None) -> None:
        self.stream = stream if stream is not None else sys.stdout

    def notify_changed(self, node: DirectoryNode, recursive_hint: bool) -> None:
        label = "root" if recursive_hint else "subtree"
        self.stream.write(f"changed {label}: {node.path}\n")
        for line in render_tree(node, 1, 1):
            self.stream.write(line + "\n")
        self.stream.flush()


def build_ignore_evaluator(patterns: str, use_gitignore: bool, root: Path) -> IgnoreEvaluator | None:
    evaluators: list[IgnoreEvaluator] = []
    if patterns:
        evaluators.append(PatternIgnoreEvaluator(patterns))
    if use_gitignore:
        evaluators.append(GitIgnoreEvaluator(root))
    if not evaluators:
        return None
    if len(evaluators) == 1:
        return evaluators[0]
    return ChainedIgnoreEvaluator(*evaluators)


def _run_watch_loop(tree: Tree) -> None:
    session = tree.watch_session
    assert session is not None
    try:
        while session.is_watching():
            if session.wait(timeout=WATCH_WAIT_SECONDS):
                tree.dispatch_watch_events()
    except KeyboardInterrupt:
        pass
    finally:
        tree.close()


def main(default_path: Path | None = None) -> None:
    """Parse CLI arguments and print (or watch) the tree rooted at a directory.

    ``default_path`` is primarily for tests; when omitted the configured root
    or the current working directory is used.
    """
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Print a lazily loaded directory tree and optionally watch it.")
    parser.add_argument("path", nargs="?", default=None, help="Root directory. Defaults to current directory.")
    parser.add_argument("-a", "--all", action="store_true", help="Show hidden files (swap files stay hidden).")
    parser.add_argument("--no-ignore", action="store_true", help="Do not apply ignore patterns or gitignore rules.")
    parser.add_argument(
        "--ignore",
        default=None,
        metavar="PATTERNS",
        help="Comma-separated filename patterns to hide, e.g. '*.pyc,*.o'.",
    )
    parser.add_argument("--gitignore", action="store_true", help="Hide entries ignored by git.")
    parser.add_argument("--depth", type=_positive_int, default=1, help="Directory levels to expand (default: 1).")
    parser.add_argument("--select", metavar="PATH", default=None, help="Expand ancestors of PATH and report it.")
    parser.add_argument("--watch", action="store_true", help="Keep running and print refreshed subtrees.")
    parser.add_argument(
        "--debounce-ms",
        type=_positive_int,
        default=settings.debounce_ms,
        help="Watcher debounce window in milliseconds.",
    )
    parser.add_argument("--save", action="store_true", help="Remember these options and this root for later runs.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log tree activity to stderr.")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if default_path is None:
        default_path = settings.root if settings.root is not None else Path.cwd()
    root_path = Path(args.path) if args.path else default_path

    patterns = args.ignore if args.ignore is not None else settings.ignore_patterns
    use_gitignore = args.gitignore or settings.use_gitignore
    sink = PrintingSink()
    tree = Tree(
        sink,
        show_hidden=args.all or settings.show_hidden,
        use_ignore_policy=settings.use_ignore_policy and not args.no_ignore,
        ignore_evaluator=build_ignore_evaluator(patterns, use_gitignore, root_path.expanduser().resolve()),
        watch_factory=(lambda handler: WatchSession(handler, debounce_ms=args.debounce_ms)) if args.watch else None,
    )

    try:
        root = tree.set_root(root_path)
    except TreeError as exc:
        raise SystemExit(str(exc)) from exc

    if args.save:
        save_settings(
            TreeSettings(
                show_hidden=tree.show_hidden,
                use_ignore_policy=tree.use_ignore_policy,
                ignore_patterns=patterns,
                use_gitignore=use_gitignore,
                debounce_ms=args.debounce_ms,
                root=root.path,
            )
        )

    if args.select is not None:
        selected = tree.select_initial(Path(args.select).expanduser().resolve())
        if selected is None:
            sys.stdout.write(f"not in tree: {args.select}\n")
        else:
            sys.stdout.write(f"selected: {selected.path}\n")

    sys.stdout.write(f"{root.path}/\n")
    for line in render_tree(root, args.depth, 1):
        sys.stdout.write(line + "\n")
    sys.stdout.flush()

    if args.watch:
        _run_watch_loop(tree)


if __name__ == "__main__":
    main()
