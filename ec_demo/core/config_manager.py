# ec_demo/core/config_manager.py

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

from .drivers import DRIVERS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / 'config' / 'settings.json'
SUPPORTED_CONFIG_VERSION = "1.0"


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings. Every field has a working default, so the file is optional."""
    tick_ms: int = 1000
    max_logs: int = 1000
    max_samples: int = 60
    queue_capacity: int = 128
    driver: str = "mock"
    bin_path: Optional[Path] = None

    def with_overrides(self, **overrides) -> "AppConfig":
        """Returns a copy with every non-None override applied (command-line options win)."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """
    Reads the settings file into an AppConfig.

    A missing file means defaults. A corrupt file, unknown keys and invalid
    values are reported as warnings and fall back to defaults rather than
    stopping the dashboard from starting.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        logger.info(f"No settings file at {config_path}; using defaults.")
        return AppConfig()

    logger.info(f"Loading settings from: {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read settings file, using defaults: {e}")
        return AppConfig()

    if not isinstance(data, dict):
        logger.warning("Settings file must contain a JSON object; using defaults.")
        return AppConfig()

    version = data.pop("_metadata", {}).get("version", SUPPORTED_CONFIG_VERSION)
    if version != SUPPORTED_CONFIG_VERSION:
        logger.warning(f"Settings version '{version}' is not '{SUPPORTED_CONFIG_VERSION}'; reading it anyway.")

    known = {field.name for field in fields(AppConfig)}
    values = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting '{key}'.")
            continue
        values[key] = value

    return _validated(values)


def _validated(values: dict) -> AppConfig:
    defaults = AppConfig()
    checked = {}
    for key in ("tick_ms", "max_logs", "max_samples", "queue_capacity"):
        if key not in values:
            continue
        value = values[key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            logger.warning(f"Setting '{key}' must be a positive integer, got {value!r}; "
                           f"using {getattr(defaults, key)}.")
            continue
        checked[key] = value

    driver = values.get("driver")
    if driver is not None:
        if driver in DRIVERS:
            checked["driver"] = driver
        else:
            logger.warning(f"Unknown driver '{driver}'; using '{defaults.driver}'.")

    bin_path = values.get("bin_path")
    if bin_path:
        checked["bin_path"] = Path(bin_path)

    return replace(defaults, **checked)
