"""CLI argument and output tests for ``lazytree.cli.main``."""

from __future__ import annotations

import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazytree import cli, config
from lazytree.ignore import ChainedIgnoreEvaluator, PatternIgnoreEvaluator
from lazytree.gitignore import GitIgnoreEvaluator
from lazytree.node import DirectoryNode


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._config_dir = tempfile.TemporaryDirectory()
        patcher = mock.patch("lazytree.config.CONFIG_PATH", Path(self._config_dir.name) / "config.json")
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._config_dir.cleanup)

    def _run(self, argv: list[str], default_path: Path | None = None) -> str:
        stdout = io.StringIO()
        with mock.patch.object(sys, "argv", ["lazytree", *argv]), mock.patch("sys.stdout", stdout):
            cli.main(default_path=default_path)
        return stdout.getvalue()

    def test_prints_tree_to_requested_depth(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "dir").mkdir()
            (root / "dir" / "inner.txt").write_text("i\n", encoding="utf-8")
            (root / ".hidden").write_text("h\n", encoding="utf-8")

            shallow = self._run([str(root)])
            deep = self._run([str(root), "--depth", "2", "--all"])

            self.assertEqual(shallow, f"{root}/\n  dir/\n")
            self.assertIn("  dir/\n    inner.txt\n", deep)
            self.assertIn("  .hidden\n", deep)

    def test_defaults_to_current_working_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a.txt").write_text("a\n", encoding="utf-8")
            previous_cwd = Path.cwd()
            try:
                os.chdir(root)
                output = self._run([])
            finally:
                os.chdir(previous_cwd)

            self.assertEqual(output, f"{root}/\n  a.txt\n")

    def test_ignore_patterns_hide_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "keep.py").write_text("k\n", encoding="utf-8")
            (root / "drop.pyc").write_text("d\n", encoding="utf-8")

            filtered = self._run([str(root), "--ignore", "*.pyc"])
            unfiltered = self._run([str(root), "--ignore", "*.pyc", "--no-ignore"])

            self.assertNotIn("drop.pyc", filtered)
            self.assertIn("keep.py", filtered)
            self.assertIn("drop.pyc", unfiltered)

    def test_select_reports_resolved_node(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a" / "b").mkdir(parents=True)
            target = root / "a" / "b" / "c.txt"
            target.write_text("c\n", encoding="utf-8")

            output = self._run([str(root), "--select", str(target), "--depth", "3"])

            self.assertIn(f"selected: {target}\n", output)
            self.assertIn("  a/\n    b/\n      c.txt\n", output)

    def test_missing_or_non_directory_root_exits(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "file.txt").write_text("f\n", encoding="utf-8")

            with self.assertRaises(SystemExit) as missing:
                self._run([str(root / "missing")])
            with self.assertRaises(SystemExit) as not_dir:
                self._run([str(root / "file.txt")])

            self.assertIn("Path not found", str(missing.exception))
            self.assertIn("Not a directory", str(not_dir.exception))

    def test_save_persists_effective_settings_for_later_runs(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".hidden").write_text("h\n", encoding="utf-8")
            (root / "drop.pyc").write_text("d\n", encoding="utf-8")

            self._run([str(root), "--all", "--ignore", "*.pyc", "--debounce-ms", "200", "--save"])
            saved = config.load_settings()
            later = self._run([])

        self.assertEqual(
            saved,
            config.TreeSettings(show_hidden=True, ignore_patterns="*.pyc", debounce_ms=200, root=root),
        )
        self.assertEqual(later, f"{root}/\n  .hidden\n")

    def test_build_ignore_evaluator_combines_sources(self) -> None:
        root = Path("/r")

        self.assertIsNone(cli.build_ignore_evaluator("", False, root))
        self.assertIsInstance(cli.build_ignore_evaluator("*.o", False, root), PatternIgnoreEvaluator)
        self.assertIsInstance(cli.build_ignore_evaluator("", True, root), GitIgnoreEvaluator)
        self.assertIsInstance(cli.build_ignore_evaluator("*.o", True, root), ChainedIgnoreEvaluator)

    def test_printing_sink_writes_refreshed_subtree(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a.txt").write_text("a\n", encoding="utf-8")
            stream = io.StringIO()
            sink = cli.PrintingSink(stream)

            sink.notify_changed(DirectoryNode(root), True)

            self.assertEqual(stream.getvalue(), f"changed root: {root}\n  a.txt\n")


if __name__ == "__main__":
    unittest.main()
