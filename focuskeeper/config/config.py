from __future__ import annotations

"""Configuration loading and validation for focuskeeper.

Loads YAML configuration, applies defaults, and repairs out-of-range or
unknown values with a logged warning instead of failing.
"""

import logging
import math
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

ALLOWED_SCHEDULERS = {"threading", "asyncio", "manual"}
ALLOWED_BACKENDS = {"file", "memory"}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def _positive(section: Dict[str, Any], key: str, default: float, *, allow_zero: bool = False) -> None:
    value = section.get(key, default)
    try:
        num = float(value)
    except (TypeError, ValueError):
        num = -1.0
    if not math.isfinite(num) or num < 0 or (num == 0 and not allow_zero):
        logger.warning("Invalid %s '%s', using %s.", key, value, default)
        section[key] = default


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    for section in ("visibility", "timer", "storage", "history", "logging"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    visibility = cfg["visibility"]
    timer = cfg["timer"]
    storage = cfg["storage"]
    history = cfg["history"]
    log_cfg = cfg["logging"]

    visibility.setdefault("enabled", True)
    visibility.setdefault("min_distraction_seconds", 3)

    timer.setdefault("auto_start", True)
    timer.setdefault("tick_interval_s", 1.0)
    timer.setdefault("scheduler", "threading")

    storage.setdefault("backend", "file")
    storage.setdefault("path", "./.focuskeeper")
    storage.setdefault("key", "focuskeeper_active_session")
    storage.setdefault("stale_after_hours", 24)
    storage.setdefault("autosave_every_s", 10)

    history.setdefault("enabled", False)
    history.setdefault("path", "./focuskeeper_history")

    log_cfg.setdefault("level", "WARNING")

    # Range validations
    _positive(visibility, "min_distraction_seconds", 3, allow_zero=True)
    visibility["min_distraction_seconds"] = int(visibility["min_distraction_seconds"])
    _positive(timer, "tick_interval_s", 1.0)
    timer["tick_interval_s"] = float(timer["tick_interval_s"])
    _positive(storage, "stale_after_hours", 24)
    _positive(storage, "autosave_every_s", 10, allow_zero=True)
    storage["autosave_every_s"] = int(storage["autosave_every_s"])

    # Enum validations
    scheduler = timer.get("scheduler")
    if scheduler not in ALLOWED_SCHEDULERS:
        logger.warning("Unsupported scheduler '%s', using 'threading'.", scheduler)
        timer["scheduler"] = "threading"

    backend = storage.get("backend")
    if backend not in ALLOWED_BACKENDS:
        logger.warning("Unsupported storage backend '%s', using 'file'.", backend)
        storage["backend"] = "file"

    level = str(log_cfg.get("level", "")).upper()
    if level not in ALLOWED_LOG_LEVELS:
        logger.warning("Unsupported logging level '%s', using 'WARNING'.", log_cfg.get("level"))
        level = "WARNING"
    log_cfg["level"] = level

    if not str(storage.get("key") or "").strip():
        logger.warning("Empty storage key, using 'focuskeeper_active_session'.")
        storage["key"] = "focuskeeper_active_session"

    for section, key in ((visibility, "enabled"), (timer, "auto_start"), (history, "enabled")):
        section[key] = bool(section[key])

    return cfg


def stale_after_ms(cfg: Dict[str, Any]) -> int:
    return int(float(cfg["storage"]["stale_after_hours"]) * 60 * 60 * 1000)


def configure_logging(cfg: Dict[str, Any]) -> None:
    """Set the level of the focuskeeper logger hierarchy."""
    level = cfg.get("logging", {}).get("level", "WARNING")
    logging.getLogger("focuskeeper").setLevel(getattr(logging, str(level).upper(), logging.WARNING))
