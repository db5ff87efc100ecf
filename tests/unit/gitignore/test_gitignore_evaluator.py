"""Tests for the git-backed ignore evaluator and its listing cache."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazytree.gitignore import GitIgnoreEvaluator, clear_gitignore_cache, ignored_names_in
from lazytree.node import DirectoryNode


class GitIgnoreCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        clear_gitignore_cache()

    def tearDown(self) -> None:
        clear_gitignore_cache()

    def test_cached_result_reused_within_ttl(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            with mock.patch("lazytree.gitignore._check_ignore", return_value={"b"}) as check:
                first = ignored_names_in(root, ["a", "b"])
                second = ignored_names_in(root, ["b"])

            self.assertEqual(first, {"b"})
            self.assertEqual(second, {"b"})
            self.assertEqual(check.call_count, 1)

    def test_new_names_or_mtime_change_trigger_requery(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            with mock.patch("lazytree.gitignore._check_ignore", side_effect=[set(), {"c"}, set()]) as check:
                ignored_names_in(root, ["a"])
                self.assertEqual(ignored_names_in(root, ["a", "c"]), {"c"})
                (root / "new.txt").write_text("x\n", encoding="utf-8")
                ignored_names_in(root, ["a"])

            self.assertEqual(check.call_count, 3)

    def test_requery_after_ttl_expiry(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            with mock.patch(
                "lazytree.gitignore._check_ignore",
                side_effect=[set(), set()],
            ) as check, mock.patch(
                "lazytree.gitignore.time.monotonic",
                side_effect=[100.0, 103.0],
            ):
                ignored_names_in(root, ["a"])
                ignored_names_in(root, ["a"])

            self.assertEqual(check.call_count, 2)

    def test_missing_git_ignores_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("lazytree.gitignore.shutil.which", return_value=None):
                self.assertEqual(ignored_names_in(Path(tmp), ["a"]), set())


@unittest.skipIf(shutil.which("git") is None, "git is required")
class GitIgnoreEvaluatorTests(unittest.TestCase):
    def setUp(self) -> None:
        clear_gitignore_cache()

    def tearDown(self) -> None:
        clear_gitignore_cache()

    def test_reconciliation_hides_gitignored_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            subprocess.run(["git", "init", "-q"], cwd=root, check=True)
            (root / ".gitignore").write_text("*.log\nbuild/\n", encoding="utf-8")
            (root / "app.log").write_text("l\n", encoding="utf-8")
            (root / "build").mkdir()
            (root / "main.py").write_text("x = 1\n", encoding="utf-8")

            evaluator = GitIgnoreEvaluator(root)
            node = DirectoryNode(root, ignore_evaluator=evaluator)

            self.assertEqual([child.name for child in node.children()], ["main.py"])
            self.assertTrue(evaluator.evaluate_ignore("app.log"))
            self.assertFalse(evaluator.evaluate_ignore("main.py"))

    def test_outside_repository_nothing_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            evaluator = GitIgnoreEvaluator(root)

            self.assertEqual(evaluator.evaluate_ignore_batch(root, ["a.log"]), set())


if __name__ == "__main__":
    unittest.main()
