"""Configuration and validation helpers."""

from .config import DEFAULT_CONFIG, load_config, merge_config
from .validation import optional_positive, require_non_negative, require_positive

__all__ = [
    "DEFAULT_CONFIG",
    "load_config",
    "merge_config",
    "optional_positive",
    "require_non_negative",
    "require_positive",
]
