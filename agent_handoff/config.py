"""Verbosity presets and user configuration."""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "agent-handoff" / "config.json"
PRESET_ENV_VAR = "AGENT_HANDOFF_PRESET"
DEFAULT_PRESET = "standard"


@dataclass(frozen=True)
class VerbosityConfig:
    """How much of a session providers extract for a handoff."""

    recent_messages: int = 10
    max_highlights: int = 5
    max_pending_tasks: int = 5
    mode: str = "inline"


FIELD_TYPES = {"recent_messages": int, "max_highlights": int, "max_pending_tasks": int, "mode": str}
MODES = ("inline", "reference")


PRESETS: dict[str, VerbosityConfig] = {
    "minimal": VerbosityConfig(recent_messages=4, max_highlights=3, max_pending_tasks=3),
    "standard": VerbosityConfig(),
    "verbose": VerbosityConfig(recent_messages=20, max_highlights=10, max_pending_tasks=10, mode="reference"),
}


def get_preset(name: str) -> VerbosityConfig:
    """Look up a preset by name. Raises ValueError for unknown names."""
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown preset {name!r}; expected one of {', '.join(PRESETS)}") from None


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: expected a JSON object")
        return {}
    return data


def _valid_override(value, expected: type) -> bool:
    if expected is int:
        # bool is an int subclass but never a valid count
        return isinstance(value, int) and not isinstance(value, bool) and value >= 0
    return isinstance(value, expected)


def load_config(path: Optional[Path] = None, preset: Optional[str] = None) -> VerbosityConfig:
    """Resolve the active configuration.

    Priority order for the preset:
    1. `preset` argument (e.g. from the command line)
    2. AGENT_HANDOFF_PRESET environment variable
    3. "preset" key in the config file
    4. "standard"

    Any other key in the config file that names a VerbosityConfig field
    overrides the preset value. Values of the wrong type are ignored with
    a warning.
    """
    config_path = path or CONFIG_PATH
    data = _read_config_file(config_path)
    name = preset or os.environ.get(PRESET_ENV_VAR) or data.get("preset") or DEFAULT_PRESET
    config = get_preset(name)

    overrides = {}
    for f in fields(VerbosityConfig):
        if f.name not in data:
            continue
        value = data[f.name]
        expected = FIELD_TYPES[f.name]
        if f.name == "mode" and value not in MODES:
            logger.warning(f"Ignoring {f.name}={value!r} in {config_path}: expected one of {', '.join(MODES)}")
            continue
        if not _valid_override(value, expected):
            logger.warning(f"Ignoring {f.name}={value!r} in {config_path}: expected {expected.__name__}")
            continue
        overrides[f.name] = value
    if overrides:
        config = replace(config, **overrides)
    return config
