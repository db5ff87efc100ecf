"""Persistent JSON config helpers.

Stores tree filtering preferences, the watch debounce, and the last root.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from .watch import DEFAULT_DEBOUNCE_MS

APP_NAME = "lazytree"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class TreeSettings:
    """Validated view of the persisted config."""

    show_hidden: bool = False
    use_ignore_policy: bool = True
    ignore_patterns: str = ""
    use_gitignore: bool = False
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    root: Path | None = None


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Any filesystem/serialization error is ignored to keep runtime behavior
    non-fatal when config cannot be written.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        pass


def _load_bool(data: dict[str, object], key: str, default: bool) -> bool:
    """Only explicit booleans are accepted; anything else yields ``default``."""
    value = data.get(key)
    return value if isinstance(value, bool) else default


def _load_positive_int(data: dict[str, object], key: str, default: int) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _load_root(data: dict[str, object]) -> Path | None:
    value = data.get("root")
    if not isinstance(value, str) or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def load_settings() -> TreeSettings:
    """Return persisted settings with invalid entries replaced by defaults."""
    data = load_config()
    defaults = TreeSettings()
    patterns = data.get("ignore_patterns")
    return TreeSettings(
        show_hidden=_load_bool(data, "show_hidden", defaults.show_hidden),
        use_ignore_policy=_load_bool(data, "use_ignore_policy", defaults.use_ignore_policy),
        ignore_patterns=patterns.strip() if isinstance(patterns, str) else defaults.ignore_patterns,
        use_gitignore=_load_bool(data, "use_gitignore", defaults.use_gitignore),
        debounce_ms=_load_positive_int(data, "debounce_ms", defaults.debounce_ms),
        root=_load_root(data),
    )


def save_settings(settings: TreeSettings) -> None:
    """Merge ``settings`` into the persisted config, keeping unknown keys."""
    config = load_config()
    config["show_hidden"] = bool(settings.show_hidden)
    config["use_ignore_policy"] = bool(settings.use_ignore_policy)
    config["ignore_patterns"] = settings.ignore_patterns
    config["use_gitignore"] = bool(settings.use_gitignore)
    config["debounce_ms"] = max(1, int(settings.debounce_ms))
    if settings.root is not None:
        config["root"] = str(settings.root)
    else:
        config.pop("root", None)
    save_config(config)


__all__ = [
    "CONFIG_PATH",
    "TreeSettings",
    "load_config",
    "load_settings",
    "save_config",
    "save_settings",
]
