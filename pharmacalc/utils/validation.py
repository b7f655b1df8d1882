"""
Argument checks shared by the calculators.
"""

import math
from numbers import Real
from typing import Optional

from ..exceptions import InvalidInputError


def _as_float(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite, got {value}")
    return value


def require_positive(name: str, value) -> float:
    """Return ``value`` as float, raising InvalidInputError unless it is > 0."""
    value = _as_float(name, value)
    if value <= 0:
        raise InvalidInputError(f"{name} must be > 0, got {value}")
    return value


def require_non_negative(name: str, value) -> float:
    value = _as_float(name, value)
    if value < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value}")
    return value


def optional_positive(name: str, value, default: Optional[float] = None) -> Optional[float]:
    """Validate an optional argument; ``None`` falls back to ``default``."""
    if value is None:
        return default
    return require_positive(name, value)
