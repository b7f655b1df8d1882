"""
Body-weight-based dosing arithmetic for animal studies.
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from ..exceptions import InvalidInputError
from ..utils.validation import optional_positive, require_non_negative, require_positive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DosingResult:
    total_dose: float
    volume: float
    daily_dose: Optional[float]
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class RequiredConcentrationResult:
    required_concentration: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class VolumeLimitResult:
    max_dose: float
    max_volume: float
    max_dose_per_kg: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class GroupDosingResult:
    animals: pd.DataFrame = field(repr=False)
    total_dose: float
    total_volume: float
    mean_weight: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return {
            'animals': self.animals.to_dict(orient='records'),
            'total_dose': self.total_dose,
            'total_volume': self.total_volume,
            'mean_weight': self.mean_weight,
            'calculation_steps': list(self.calculation_steps),
        }


class DosingCalculator:
    """Dose amounts and administration volumes from body weight."""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}

    def calculate_dose(self, body_weight_kg: float, dose_per_kg: float,
                       concentration: float, frequency: Optional[int] = None) -> DosingResult:
        """
        Dose (mg) and volume (mL) for one administration.

        Parameters
        ----------
        body_weight_kg : float
            Body weight (kg).
        dose_per_kg : float
            Dose level (mg/kg).
        concentration : float
            Formulation concentration (mg/mL).
        frequency : int, optional
            Administrations per day; adds the daily dose.

        Returns
        -------
        DosingResult
        """
        body_weight = require_positive('body_weight_kg', body_weight_kg)
        dose_per_kg = require_non_negative('dose_per_kg', dose_per_kg)
        concentration = require_positive('concentration', concentration)
        frequency = optional_positive('frequency', frequency)

        total_dose = body_weight * dose_per_kg
        volume = total_dose / concentration
        steps = [
            'Total dose = body weight × dose',
            f"= {body_weight:g} kg × {dose_per_kg:g} mg/kg",
            f"= {total_dose:.2f} mg",
            '',
            'Dose volume = total dose ÷ concentration',
            f"= {total_dose:.2f} mg ÷ {concentration:g} mg/mL",
            f"= {volume:.3f} mL",
        ]

        daily_dose = None
        if frequency is not None:
            daily_dose = total_dose * frequency
            steps.append('')
            steps.append('Daily dose = dose per administration × administrations per day')
            steps.append(f"= {total_dose:.2f} mg × {frequency:g}")
            steps.append(f"= {daily_dose:.2f} mg/day")

        return DosingResult(total_dose=total_dose, volume=volume, daily_dose=daily_dose,
                            calculation_steps=steps)

    def calculate_required_concentration(self, body_weight_kg: float, dose_per_kg: float,
                                         max_volume_ml: float) -> RequiredConcentrationResult:
        """Formulation concentration that delivers the dose within ``max_volume_ml``."""
        body_weight = require_positive('body_weight_kg', body_weight_kg)
        dose_per_kg = require_positive('dose_per_kg', dose_per_kg)
        max_volume = require_positive('max_volume_ml', max_volume_ml)

        total_dose = body_weight * dose_per_kg
        required = total_dose / max_volume
        steps = [
            f"Total dose = {body_weight:g} kg × {dose_per_kg:g} mg/kg = {total_dose:.2f} mg",
            f"Required concentration = {total_dose:.2f} mg ÷ {max_volume:g} mL = {required:.4f} mg/mL",
        ]
        return RequiredConcentrationResult(required_concentration=required, calculation_steps=steps)

    def calculate_max_dose_by_volume(self, body_weight_kg: float, max_volume_per_kg: float,
                                     concentration: float) -> VolumeLimitResult:
        """Largest dose deliverable under a dose-volume limit (mL/kg)."""
        body_weight = require_positive('body_weight_kg', body_weight_kg)
        max_volume_per_kg = require_positive('max_volume_per_kg', max_volume_per_kg)
        concentration = require_positive('concentration', concentration)

        max_volume = body_weight * max_volume_per_kg
        max_dose = max_volume * concentration
        max_dose_per_kg = max_dose / body_weight
        steps = [
            f"Max dose volume = {body_weight:g} kg × {max_volume_per_kg:g} mL/kg = {max_volume:.2f} mL",
            f"Max dose = {max_volume:.2f} mL × {concentration:g} mg/mL = {max_dose:.2f} mg",
            f"Max dose level = {max_dose:.2f} mg ÷ {body_weight:g} kg = {max_dose_per_kg:.4f} mg/kg",
        ]
        return VolumeLimitResult(max_dose=max_dose, max_volume=max_volume,
                                 max_dose_per_kg=max_dose_per_kg, calculation_steps=steps)

    def calculate_group_dosing(self, animals: Sequence[Mapping], dose_per_kg: float,
                               concentration: float) -> GroupDosingResult:
        """
        Per-animal dose and volume for a dose group.

        Parameters
        ----------
        animals : Sequence[Mapping]
            Entries with ``id`` and ``weight`` (kg).
        dose_per_kg : float
            Dose level (mg/kg).
        concentration : float
            Formulation concentration (mg/mL).

        Returns
        -------
        GroupDosingResult
            ``animals`` is a DataFrame with columns id, weight, dose, volume.
        """
        if not animals:
            raise InvalidInputError("animals must not be empty")
        dose_per_kg = require_non_negative('dose_per_kg', dose_per_kg)
        concentration = require_positive('concentration', concentration)

        records = []
        for i, animal in enumerate(animals):
            if 'weight' not in animal:
                raise InvalidInputError(f"animals[{i}] needs a 'weight'")
            weight = require_positive(f"animals[{i}].weight", animal['weight'])
            records.append({'id': animal.get('id', str(i + 1)), 'weight': weight})

        df = pd.DataFrame(records, columns=['id', 'weight'])
        df['dose'] = df['weight'] * dose_per_kg
        df['volume'] = df['dose'] / concentration

        total_dose = float(df['dose'].sum())
        total_volume = float(df['volume'].sum())
        mean_weight = float(df['weight'].mean())

        steps = [
            f"Dose level: {dose_per_kg:g} mg/kg, concentration: {concentration:g} mg/mL",
            'Dose = weight × dose level; volume = dose ÷ concentration',
            '',
        ]
        for row in df.itertuples(index=False):
            steps.append(f"[{row.id}] {row.weight:g} kg × {dose_per_kg:g} mg/kg = {row.dose:.2f} mg "
                         f"-> {row.volume:.3f} mL")
        steps.append('')
        steps.append(f"Group total: {total_dose:.2f} mg, {total_volume:.3f} mL "
                     f"({len(df)} animals, mean weight {mean_weight:.3f} kg)")

        logger.debug(f"Group dosing for {len(df)} animals at {dose_per_kg:g} mg/kg")

        return GroupDosingResult(
            animals=df,
            total_dose=total_dose,
            total_volume=total_volume,
            mean_weight=mean_weight,
            calculation_steps=steps,
        )
