"""Tests for config persistence and input sanitization."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazytree import config
from lazytree.watch import DEFAULT_DEBOUNCE_MS


class SettingsTests(unittest.TestCase):
    def test_missing_config_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("lazytree.config.CONFIG_PATH", Path(tmp) / "absent.json"):
                settings = config.load_settings()

        self.assertEqual(settings, config.TreeSettings())
        self.assertEqual(settings.debounce_ms, DEFAULT_DEBOUNCE_MS)
        self.assertTrue(settings.use_ignore_policy)

    def test_settings_round_trip_and_keep_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "nested" / "config.json"
            expected = config.TreeSettings(
                show_hidden=True,
                use_ignore_policy=False,
                ignore_patterns="*.pyc,*.o",
                use_gitignore=True,
                debounce_ms=250,
                root=Path(tmp) / "project",
            )
            with mock.patch("lazytree.config.CONFIG_PATH", config_path):
                config.save_config({"extra": 1})
                config.save_settings(expected)

                self.assertEqual(config.load_settings(), expected)
                self.assertEqual(config.load_config().get("extra"), 1)

    def test_invalid_values_fall_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            with mock.patch("lazytree.config.CONFIG_PATH", config_path):
                config.save_config(
                    {
                        "show_hidden": "yes",
                        "use_ignore_policy": 0,
                        "ignore_patterns": ["*.pyc"],
                        "debounce_ms": True,
                        "root": "   ",
                    }
                )
                settings = config.load_settings()

        self.assertEqual(settings, config.TreeSettings())

    def test_malformed_json_is_treated_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")
            with mock.patch("lazytree.config.CONFIG_PATH", config_path):
                self.assertEqual(config.load_config(), {})
                config.save_settings(config.TreeSettings(show_hidden=True))
                self.assertTrue(config.load_settings().show_hidden)


if __name__ == "__main__":
    unittest.main()
