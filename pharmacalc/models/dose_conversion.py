"""
Interspecies dose conversion by Km factor, body surface area or allometric
exponent, and mg/kg <-> mg/m² conversion.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional

from ..utils.validation import optional_positive, require_positive
from .species import SPECIES_TABLE, SpeciesFactor, build_species_table, get_species

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoseConversionResult:
    converted_dose: float
    unit: str
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


class DoseConverter:
    """Convert doses between species."""

    def __init__(self, config: Optional[Dict] = None,
                 species_table: Optional[Mapping[str, SpeciesFactor]] = None):
        self.config = config or {}
        if species_table is None:
            species_table = build_species_table(self.config['species']) \
                if self.config.get('species') else SPECIES_TABLE
        self.species_table = species_table

    def convert_dose_by_km(self, dose: float, from_species: str,
                           to_species: str) -> DoseConversionResult:
        """
        Km-based conversion (FDA method).

        Dose_B = Dose_A × (Km_A / Km_B)
        """
        dose = require_positive('dose', dose)
        a = get_species(from_species, self.species_table)
        b = get_species(to_species, self.species_table)

        converted = dose * (a.km / b.km)
        steps = [
            f"[{a.name}] dose: {dose:g} mg/kg",
            f"[{a.name}] Km: {a.km:g}",
            f"[{b.name}] Km: {b.km:g}",
            f"Converted dose = {dose:g} × ({a.km:g} / {b.km:g}) = {converted:.4f} mg/kg",
        ]
        logger.debug(f"Km conversion {a.key} -> {b.key}: {converted:.4f} mg/kg")
        return DoseConversionResult(converted_dose=converted, unit='mg/kg', calculation_steps=steps)

    def convert_dose_by_bsa(self, dose: float, from_species: str,
                            to_species: str) -> DoseConversionResult:
        """
        Body-surface-area ratio conversion.

        Dose_B = Dose_A × (BSA_A / BSA_B)
        """
        dose = require_positive('dose', dose)
        a = get_species(from_species, self.species_table)
        b = get_species(to_species, self.species_table)

        converted = dose * (a.bsa_m2 / b.bsa_m2)
        steps = [
            f"[{a.name}] dose: {dose:g} mg/kg",
            f"[{a.name}] BSA: {a.bsa_m2:g} m²",
            f"[{b.name}] BSA: {b.bsa_m2:g} m²",
            f"Converted dose = {dose:g} × ({a.bsa_m2:g} / {b.bsa_m2:g}) = {converted:.4f} mg/kg",
        ]
        return DoseConversionResult(converted_dose=converted, unit='mg/kg', calculation_steps=steps)

    def convert_dose_allometric(self, dose: float, from_species: str, to_species: str,
                                from_weight: Optional[float] = None,
                                to_weight: Optional[float] = None) -> DoseConversionResult:
        """
        Allometric conversion using the source species' exponent.

        Dose_B = Dose_A × (W_A / W_B) ^ (1 - b_A)
        """
        dose = require_positive('dose', dose)
        a = get_species(from_species, self.species_table)
        b = get_species(to_species, self.species_table)
        w_a = optional_positive('from_weight', from_weight, a.default_body_weight_kg)
        w_b = optional_positive('to_weight', to_weight, b.default_body_weight_kg)

        exponent = 1.0 - a.allometric_exponent
        converted = dose * (w_a / w_b) ** exponent
        steps = [
            f"[{a.name}] dose: {dose:g} mg/kg, body weight {w_a:g} kg",
            f"[{b.name}] body weight {w_b:g} kg",
            f"Converted dose = {dose:g} × ({w_a:g} / {w_b:g}) ^ {exponent:.2f} = {converted:.4f} mg/kg",
        ]
        return DoseConversionResult(converted_dose=converted, unit='mg/kg', calculation_steps=steps)

    def mg_per_kg_to_mg_per_m2(self, dose_mg_per_kg: float, species: str) -> DoseConversionResult:
        dose = require_positive('dose_mg_per_kg', dose_mg_per_kg)
        s = get_species(species, self.species_table)
        converted = dose * s.km
        steps = [
            f"Dose (mg/kg): {dose:g}",
            f"Km ({s.name}): {s.km:g}",
            f"mg/m² = mg/kg × Km = {dose:g} × {s.km:g} = {converted:.4f} mg/m²",
        ]
        return DoseConversionResult(converted_dose=converted, unit='mg/m²', calculation_steps=steps)

    def mg_per_m2_to_mg_per_kg(self, dose_mg_per_m2: float, species: str) -> DoseConversionResult:
        dose = require_positive('dose_mg_per_m2', dose_mg_per_m2)
        s = get_species(species, self.species_table)
        converted = dose / s.km
        steps = [
            f"Dose (mg/m²): {dose:g}",
            f"Km ({s.name}): {s.km:g}",
            f"mg/kg = mg/m² ÷ Km = {dose:g} ÷ {s.km:g} = {converted:.4f} mg/kg",
        ]
        return DoseConversionResult(converted_dose=converted, unit='mg/kg', calculation_steps=steps)
