"""
Pharmacology calculation engine for nonclinical study quotation calculators.

This package provides dilution arithmetic, interspecies dose scaling and
exposure margin calculations, each returning numeric results together with
human-readable calculation steps.
"""

__version__ = "1.0.0"

from . import exceptions
from . import models
from . import analysis
from . import utils

__all__ = ["exceptions", "models", "analysis", "utils"]
