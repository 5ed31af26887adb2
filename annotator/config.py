"""
Configuration for the annotator, read from the ``annotator:`` block of config.yaml.
"""

from pathlib import Path
from typing import Optional

import yaml

# Core paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULTS = {
    "content_dir": "content",
    "preview_length": 100,
    "git": {
        "enabled": False,
        "push": True,
        "repo_dir": None,
    },
    "llm": {
        "provider": "anthropic",
        "model": None,
        "max_tokens": 1024,
        "region": "us-east-1",
        "timeout_seconds": 120,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = dict(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load config.yaml; a missing file or block yields the defaults."""
    path = Path(config_path) if config_path else CONFIG_PATH
    raw = {}
    if path.exists():
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return _merge(DEFAULTS, raw.get("annotator") or {})


def resolve_path(value, base: Path = PROJECT_ROOT) -> Path:
    """Resolve a config path relative to the project root."""
    path = Path(value)
    return path if path.is_absolute() else base / path
