"""Reporting on calculation results."""

from .report import CalculationReporter

__all__ = ["CalculationReporter"]
