"""
Settings loading: optional YAML file merged over built-in defaults.
CLI flags override these; environment variables (HISTORY_*) feed the client defaults directly.
"""
from typing import Dict, Any, Optional
import os
import importlib.util

SETTINGS_FILENAME = 'settings.yaml'
# shipped as package data of the config package, next to this module
DEFAULT_SETTINGS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config', SETTINGS_FILENAME)

DEFAULT_SETTINGS: Dict[str, Any] = {
    'max_retries': 8,
    'retry_delay': 3.0,
    'page_size': 100,
    'max_pages': 50,
    'request_timeout': 30.0,
    'reconcile': 'distribute',
    'max_workers': 4,
    'output': 'text',
}

_CASTS = {
    'max_retries': int,
    'retry_delay': float,
    'page_size': int,
    'max_pages': int,
    'request_timeout': float,
    'reconcile': str,
    'max_workers': int,
    'output': str,
}


def _coerce(data: Dict[str, Any]) -> Dict[str, Any]:
    merged = DEFAULT_SETTINGS.copy()
    for key, cast in _CASTS.items():
        if data.get(key) is None:
            continue
        try:
            merged[key] = cast(data[key])
        except (TypeError, ValueError):
            # keep the default for unusable values
            pass
    return merged


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from a YAML file if available, otherwise return defaults.
    Unknown keys are ignored. PyYAML is checked for before importing it.
    """
    if not path:
        path = DEFAULT_SETTINGS_PATH
    if os.path.exists(path) and importlib.util.find_spec('yaml') is not None:
        import yaml
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            return DEFAULT_SETTINGS.copy()
        if isinstance(data, dict):
            return _coerce(data)
    return DEFAULT_SETTINGS.copy()
