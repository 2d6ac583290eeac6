"""Persistent JSON defaults and the immutable viewer configuration record.

Saved defaults are one JSON object in the platform config directory. A file
that cannot be used yields the built-in defaults; bad values are dropped one
key at a time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "markpager"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

DEFAULT_IMAGE_CACHE_BYTES = 64 * 1024 * 1024


@dataclass(frozen=True)
class ViewerConfig:
    code_theme: str = "monokai"
    watch: bool = False
    toc_visible: bool = False
    images_enabled: bool = True
    force_halfblock: bool = False
    wrap_width: int | None = None
    image_cache_bytes: int = DEFAULT_IMAGE_CACHE_BYTES
    debounce_seconds: float = 0.1
    debug_log: str | None = None

    def merged(self, **overrides) -> ViewerConfig:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


def load_config() -> dict[str, object]:
    """Raw saved defaults; ``{}`` unless the file holds a JSON object."""
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except Exception:
        logger.debug("ignoring unreadable config at %s", CONFIG_PATH, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Write ``data`` as indented JSON. Failures are logged, never raised."""
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        logger.warning("could not write config to %s", CONFIG_PATH, exc_info=True)


def _coerce_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def _coerce_positive_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _coerce_seconds(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if 0 <= value <= 10 else None


def _coerce_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


_COERCERS = {
    "code_theme": _coerce_text,
    "watch": _coerce_bool,
    "toc_visible": _coerce_bool,
    "images_enabled": _coerce_bool,
    "force_halfblock": _coerce_bool,
    "wrap_width": _coerce_positive_int,
    "image_cache_bytes": _coerce_positive_int,
    "debounce_seconds": _coerce_seconds,
    "debug_log": _coerce_text,
}


def config_from_mapping(data: dict[str, object]) -> ViewerConfig:
    """Build a ``ViewerConfig`` from raw JSON, dropping invalid values."""
    values: dict[str, object] = {}
    for name, coerce in _COERCERS.items():
        if name not in data:
            continue
        value = coerce(data[name])
        if value is None:
            logger.debug("ignoring invalid config value for %s: %r", name, data[name])
            continue
        values[name] = value
    return ViewerConfig(**values)


def load_viewer_config() -> ViewerConfig:
    return config_from_mapping(load_config())


def save_viewer_config(config: ViewerConfig) -> None:
    """Persist ``config`` over the saved defaults, keeping unknown keys."""
    data = load_config()
    for item in fields(ViewerConfig):
        value = asdict(config)[item.name]
        if value is None:
            data.pop(item.name, None)
        else:
            data[item.name] = value
    save_config(data)
