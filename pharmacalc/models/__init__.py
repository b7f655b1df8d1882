"""Calculation models."""

from .species import SPECIES_TABLE, SpeciesFactor, build_species_table, calculate_hed, get_species
from .dilution import DilutionCalculator
from .exposure_margin import ADEQUATE_MARGIN, MARGINAL_MARGIN, ExposureMarginCalculator
from .dose_conversion import DoseConverter
from .mrsd import MRSDCalculator
from .tk_parameters import TKAnalyzer
from .dosing import DosingCalculator
from .material_requirement import STUDY_TEMPLATES, TestMaterialCalculator, study_from_template

__all__ = [
    "SPECIES_TABLE",
    "SpeciesFactor",
    "build_species_table",
    "calculate_hed",
    "get_species",
    "DilutionCalculator",
    "ExposureMarginCalculator",
    "ADEQUATE_MARGIN",
    "MARGINAL_MARGIN",
    "DoseConverter",
    "MRSDCalculator",
    "TKAnalyzer",
    "DosingCalculator",
    "TestMaterialCalculator",
    "STUDY_TEMPLATES",
    "study_from_template",
]
