"""
config.py - Configuration loader for xray-stl.

Loads settings from config.yaml with sensible defaults so that no
folder or tuning parameter is hard-coded inside the batch pipeline or CLI.
The binary format itself (offsets, header size) is not configurable.
"""

import os
import yaml
from typing import Any

# Resolve the config file relative to the repo root, not the CWD,
# unless XRAY_STL_CONFIG points somewhere else.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.environ.get("XRAY_STL_CONFIG", os.path.join(_REPO_ROOT, "config.yaml"))

_DEFAULTS: dict[str, Any] = {
    "paths": {
        "input_folder": "data/raw",
        "output_folder": "data/processed",
    },
    "decoding": {
        "lower_percentile": 0.005,
        "upper_percentile": 0.995,
    },
    "metadata": {
        "date_format": "%d.%m.%Y",
    },
    "export": {
        "png": True,
        "dicom": False,
    },
    "logging": {
        "level": "INFO",
    },
}


def _overlay(defaults: dict, settings: dict) -> dict:
    """Return *defaults* with *settings* laid over it, section by section."""
    merged = dict(defaults)
    for section, value in settings.items():
        current = merged.get(section)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[section] = _overlay(current, value)
        else:
            merged[section] = value
    return merged


def load_config(config_path: str = _CONFIG_PATH) -> dict[str, Any]:
    """
    Read the decoder settings from YAML, filling gaps from ``_DEFAULTS``.

    A missing file, or an empty one, yields the defaults unchanged.

    Parameters
    ----------
    config_path : str
        YAML file to read.  ``$XRAY_STL_CONFIG`` when set, otherwise the
        ``config.yaml`` beside the package.
    """
    settings: dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            settings = yaml.safe_load(f) or {}

    return _overlay(_DEFAULTS, settings)


# Read once at import; the CLI and batch converter share it.
CONFIG = load_config()
