from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml

logger = logging.getLogger(__name__)

VERSION = "1.0"

DEFAULT_USER_AGENT = f"imagepick/{VERSION}"

_DEFAULT_TTL_SECONDS = 3 * 3600  # 3 hours

SETTINGS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "state_dir": {"type": "string", "minLength": 1},
        "cache_ttl_seconds": {"type": "integer", "minimum": 0},
        "feed_ttl_seconds": {"type": "integer", "minimum": 0},
        "min_width": {"type": "integer", "minimum": 0},
        "min_height": {"type": "integer", "minimum": 0},
        "max_attempts": {"type": "integer", "minimum": 1},
        "http_timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
        "user_agent": {"type": "string", "minLength": 1},
        "use_cache": {"type": "boolean"},
        "use_spotlight": {"type": "boolean"},
        "spotlight_timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
    },
}


def default_state_dir() -> Path:
    """Where the file list cache and feed mirrors live.

    $IMAGEPICK_HOME wins; then $XDG_CACHE_HOME; then the platform's
    per-user cache directory.
    """
    home = os.environ.get("IMAGEPICK_HOME", "").strip()
    if home:
        return Path(home).expanduser()
    xdg = os.environ.get("XDG_CACHE_HOME", "").strip()
    if xdg:
        return Path(xdg).expanduser() / "imagepick"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "imagepick"
    return Path.home() / ".cache" / "imagepick"


@dataclass(frozen=True)
class Settings:
    state_dir: Path
    cache_ttl_seconds: int = _DEFAULT_TTL_SECONDS
    feed_ttl_seconds: int = _DEFAULT_TTL_SECONDS
    min_width: int = 255
    min_height: int = 255
    max_attempts: int = 50
    http_timeout_seconds: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    use_cache: bool = True
    use_spotlight: bool = False
    spotlight_timeout_seconds: float = 30.0

    @property
    def file_lists_dir(self) -> Path:
        return self.state_dir / "filelists"

    @property
    def feeds_dir(self) -> Path:
        return self.state_dir / "feeds"


def _read_config(config_path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("ignoring unreadable config %s: %s", config_path, e)
        return {}
    if data is None:
        return {}
    try:
        jsonschema.validate(instance=data, schema=SETTINGS_SCHEMA)
    except jsonschema.ValidationError as e:
        logger.warning("ignoring invalid config %s: %s", config_path, e.message)
        return {}
    return data


def load_settings(config_path: Path | None = None, **overrides: Any) -> Settings:
    """Build Settings from defaults, an optional YAML file, then *overrides*.

    Overrides whose value is None are ignored so argparse defaults can be
    passed straight through.
    """
    settings = Settings(state_dir=default_state_dir())

    values: dict[str, Any] = {}
    if config_path is not None:
        if config_path.exists():
            values.update(_read_config(config_path))
        else:
            logger.warning("config %s not found, using defaults", config_path)
    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise TypeError(f"unknown settings: {', '.join(unknown)}")

    if "state_dir" in values:
        values["state_dir"] = Path(values["state_dir"]).expanduser()
    return replace(settings, **values)
