"""
Configuration loading for the calculation engine.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict = {
    'dilution': {
        'decimal_places': 4,
    },
    'exposure_margin': {
        'human_body_weight_kg': 60.0,
    },
    'dose_conversion': {},
    'mrsd': {
        'safety_factor': 10.0,
        'method': 'km',
        'human_body_weight_kg': 60.0,
    },
    'tk': {
        'min_terminal_points': 3,
    },
    'dosing': {},
    'test_material': {
        'safety_margin_percent': 20.0,
    },
    'species': {},
}


def merge_config(overrides: Optional[Dict] = None, base: Optional[Dict] = None) -> Dict:
    """
    Deep-merge ``overrides`` on top of ``base`` (``DEFAULT_CONFIG`` by default).

    Neither input is modified.
    """
    merged = copy.deepcopy(DEFAULT_CONFIG if base is None else base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(value, merged[key])
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Union[str, Path, None] = None) -> Dict:
    """Load configuration from a YAML file merged over the defaults."""
    if config_path is None:
        return merge_config()

    with open(config_path, 'r', encoding='utf-8') as f:
        user_config = yaml.safe_load(f) or {}

    if not isinstance(user_config, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    logger.info(f"Loaded configuration from {config_path}")
    return merge_config(user_config)
