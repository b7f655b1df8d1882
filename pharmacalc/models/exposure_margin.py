"""
Exposure (safety) margin calculations.

Converts an animal NOAEL to a Human Equivalent Dose (HED) by body-surface-area
scaling and compares it with an intended human dose, for one species or for
several species at once, and solves the reverse problem of the largest human
dose that keeps a target margin.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..exceptions import InvalidInputError, UnsupportedUnitError
from ..utils.validation import optional_positive, require_positive
from .species import (
    DEFAULT_HUMAN_BODY_WEIGHT_KG,
    SPECIES_TABLE,
    SpeciesFactor,
    allometric_factor,
    build_species_table,
    calculate_hed,
    get_animal_species,
)

logger = logging.getLogger(__name__)

# Margin classification thresholds (fold), applied to the HED-based margin.
ADEQUATE_MARGIN = 10.0
MARGINAL_MARGIN = 3.0

DOSE_UNITS = ('kg', 'person')


@dataclass(frozen=True)
class SafetyMarginResult:
    safety_margin: float
    hed_based_margin: float
    auc_based_margin: Optional[float]
    human_dose_per_kg: float
    hed: float
    risk_level: str
    recommendation: str
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SpeciesMargin:
    species: str
    species_name: str
    noael: float
    hed: float
    margin: float
    auc_margin: Optional[float] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MultiSpeciesMarginResult:
    results: List[SpeciesMargin]
    most_conservative: str
    most_conservative_name: str
    human_dose_per_kg: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ReverseDoseResult:
    max_dose_per_kg: float
    max_dose_per_person: float
    hed: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


def classify_margin(margin: float) -> str:
    """Map an HED-based margin to 'adequate', 'marginal' or 'inadequate'."""
    if margin >= ADEQUATE_MARGIN:
        return 'adequate'
    if margin >= MARGINAL_MARGIN:
        return 'marginal'
    return 'inadequate'


def margin_recommendation(margin: float) -> str:
    risk_level = classify_margin(margin)
    if risk_level == 'adequate':
        return (f"Adequate margin: HED-based margin is {margin:.1f}x, at or above "
                f"the conventional {ADEQUATE_MARGIN:g}x safety margin.")
    if risk_level == 'marginal':
        return (f"Marginal, use caution: HED-based margin is {margin:.1f}x. "
                f"Additional safety evaluation is recommended.")
    return (f"Inadequate, high risk: HED-based margin is only {margin:.1f}x. "
            f"Consider reducing the dose or additional toxicity studies.")


class ExposureMarginCalculator:
    """Calculate HED-based exposure margins between animal and human doses."""

    def __init__(self, config: Optional[Dict] = None,
                 species_table: Optional[Mapping[str, SpeciesFactor]] = None):
        """
        Initialize ExposureMarginCalculator.

        Parameters
        ----------
        config : Dict, optional
            Exposure margin configuration (``human_body_weight_kg``).
        species_table : Mapping, optional
            Species reference table; built from ``config['species']`` or the
            default table when omitted.
        """
        self.config = config or {}
        self.human_body_weight = require_positive(
            'human_body_weight_kg',
            self.config.get('human_body_weight_kg', DEFAULT_HUMAN_BODY_WEIGHT_KG)
        )
        if species_table is None:
            species_table = build_species_table(self.config['species']) \
                if self.config.get('species') else SPECIES_TABLE
        self.species_table = species_table

    def _human_dose_per_kg(self, human_dose: float, human_dose_unit: str,
                           human_weight: float) -> float:
        human_dose = require_positive('human_dose', human_dose)
        if human_dose_unit not in DOSE_UNITS:
            raise UnsupportedUnitError(
                f"Unsupported human dose unit: {human_dose_unit!r} (expected 'kg' or 'person')"
            )
        if human_dose_unit == 'person':
            return human_dose / human_weight
        return human_dose

    def human_equivalent_dose(self, noael: float, species: str,
                              human_weight: Optional[float] = None,
                              animal_weight: Optional[float] = None) -> float:
        """
        Convert an animal NOAEL (mg/kg) to a Human Equivalent Dose (mg/kg).

        HED = NOAEL × (W_animal / W_human) ^ (1 - b)
        """
        factor = get_animal_species(species, self.species_table)
        human_weight = optional_positive('human_weight', human_weight, self.human_body_weight)
        return calculate_hed(noael, factor, human_weight, animal_weight)

    def calculate_safety_margin(self, animal_noael: float, animal_species: str,
                                human_dose: float, human_dose_unit: str = 'kg',
                                human_weight: Optional[float] = None,
                                animal_auc: Optional[float] = None,
                                human_auc: Optional[float] = None,
                                animal_weight: Optional[float] = None) -> SafetyMarginResult:
        """
        Calculate dose-, HED- and AUC-based safety margins.

        Parameters
        ----------
        animal_noael : float
            Animal NOAEL (mg/kg/day).
        animal_species : str
            Species key of the animal study.
        human_dose : float
            Intended human dose, per kg or per person depending on
            ``human_dose_unit``.
        human_dose_unit : str
            ``'kg'`` (mg/kg/day) or ``'person'`` (mg/person/day).
        human_weight : float, optional
            Human body weight (kg), default 60.
        animal_auc, human_auc : float, optional
            Exposures used for the AUC-based margin; both are required for it.
        animal_weight : float, optional
            Animal body weight (kg); the species default when omitted.

        Returns
        -------
        SafetyMarginResult
        """
        species = get_animal_species(animal_species, self.species_table)
        animal_noael = require_positive('animal_noael', animal_noael)
        human_weight = optional_positive('human_weight', human_weight, self.human_body_weight)
        animal_weight = optional_positive('animal_weight', animal_weight, species.default_body_weight_kg)
        animal_auc = optional_positive('animal_auc', animal_auc)
        human_auc = optional_positive('human_auc', human_auc)
        human_dose_per_kg = self._human_dose_per_kg(human_dose, human_dose_unit, human_weight)

        steps = ['=== Input ===']
        steps.append(f"Animal NOAEL: {animal_noael:g} mg/kg/day ({species.name}, {animal_weight:g} kg)")
        steps.append(f"Human dose: {human_dose:g} mg/{human_dose_unit}/day")
        if human_dose_unit == 'person':
            steps.append(f"  -> {human_dose_per_kg:.4f} mg/kg/day (body weight {human_weight:g} kg)")

        scaling = allometric_factor(species, human_weight, animal_weight)
        hed = animal_noael * scaling
        exponent = 1.0 - species.allometric_exponent

        steps.append('')
        steps.append('=== HED ===')
        steps.append('HED = NOAEL × (W_animal / W_human) ^ (1 - b)')
        steps.append(f"    = {animal_noael:g} × ({animal_weight:g} / {human_weight:g}) ^ {exponent:.2f}")
        steps.append(f"    = {hed:.4f} mg/kg/day")

        safety_margin = animal_noael / human_dose_per_kg
        steps.append('')
        steps.append('=== Safety margin (dose based) ===')
        steps.append('SM = NOAEL / Human dose')
        steps.append(f"   = {animal_noael:g} / {human_dose_per_kg:.4f}")
        steps.append(f"   = {safety_margin:.2f}x")

        hed_based_margin = hed / human_dose_per_kg
        steps.append('')
        steps.append('=== HED-based margin ===')
        steps.append('HED margin = HED / Human dose')
        steps.append(f"           = {hed:.4f} / {human_dose_per_kg:.4f}")
        steps.append(f"           = {hed_based_margin:.2f}x")

        auc_based_margin = None
        if animal_auc is not None and human_auc is not None:
            auc_based_margin = animal_auc / human_auc
            steps.append('')
            steps.append('=== AUC-based margin ===')
            steps.append('AUC margin = Animal AUC / Human AUC')
            steps.append(f"           = {animal_auc:g} / {human_auc:g}")
            steps.append(f"           = {auc_based_margin:.2f}x")

        risk_level = classify_margin(hed_based_margin)
        recommendation = margin_recommendation(hed_based_margin)
        steps.append('')
        steps.append('=== Assessment ===')
        steps.append(recommendation)

        logger.info(f"Safety margin ({species.key}): SM={safety_margin:.2f}x, "
                    f"HED margin={hed_based_margin:.2f}x, {risk_level}")

        return SafetyMarginResult(
            safety_margin=safety_margin,
            hed_based_margin=hed_based_margin,
            auc_based_margin=auc_based_margin,
            human_dose_per_kg=human_dose_per_kg,
            hed=hed,
            risk_level=risk_level,
            recommendation=recommendation,
            calculation_steps=steps,
        )

    def compare_multi_species_margin(self, species_inputs: Sequence[Mapping],
                                     human_dose: float, human_dose_unit: str = 'kg',
                                     human_weight: Optional[float] = None,
                                     human_auc: Optional[float] = None) -> MultiSpeciesMarginResult:
        """
        Compare HED-based margins across species.

        Parameters
        ----------
        species_inputs : Sequence[Mapping]
            Entries with ``species`` and ``noael`` keys and optional ``auc``
            and ``body_weight`` keys.
        human_dose, human_dose_unit, human_weight, human_auc
            As for :meth:`calculate_safety_margin`.

        Returns
        -------
        MultiSpeciesMarginResult
            ``most_conservative`` is the species with the lowest margin; the
            first one in input order wins a tie.
        """
        if not species_inputs:
            raise InvalidInputError("species_inputs must not be empty")

        human_dose_per_kg = self._human_dose_per_kg(
            human_dose, human_dose_unit,
            optional_positive('human_weight', human_weight, self.human_body_weight)
        )

        results = []
        for i, entry in enumerate(species_inputs):
            if 'species' not in entry or 'noael' not in entry:
                raise InvalidInputError(f"species_inputs[{i}] needs 'species' and 'noael'")

            single = self.calculate_safety_margin(
                animal_noael=entry['noael'],
                animal_species=entry['species'],
                human_dose=human_dose,
                human_dose_unit=human_dose_unit,
                human_weight=human_weight,
                animal_auc=entry.get('auc'),
                human_auc=human_auc,
                animal_weight=entry.get('body_weight'),
            )
            species = self.species_table[entry['species']]
            results.append(SpeciesMargin(
                species=species.key,
                species_name=species.name,
                noael=float(entry['noael']),
                hed=single.hed,
                margin=single.hed_based_margin,
                auc_margin=single.auc_based_margin,
            ))

        # argmin returns the first index among equal minima
        worst = results[int(np.argmin([r.margin for r in results]))]
        steps = [f"Human dose: {human_dose_per_kg:.4f} mg/kg/day", '']
        for r in results:
            line = (f"[{r.species_name}] NOAEL: {r.noael:g} mg/kg -> HED: {r.hed:.4f} mg/kg "
                    f"-> margin: {r.margin:.2f}x")
            if r.auc_margin is not None:
                line += f" (AUC margin: {r.auc_margin:.2f}x)"
            steps.append(line)
        steps.append('')
        steps.append(f"Most conservative: {worst.species_name} (margin {worst.margin:.2f}x)")

        logger.info(f"Multi-species comparison over {len(results)} species: "
                    f"most conservative {worst.species} ({worst.margin:.2f}x)")

        return MultiSpeciesMarginResult(
            results=results,
            most_conservative=worst.species,
            most_conservative_name=worst.species_name,
            human_dose_per_kg=human_dose_per_kg,
            calculation_steps=steps,
        )

    def calculate_max_human_dose(self, animal_noael: float, animal_species: str,
                                 target_margin: float,
                                 human_weight: Optional[float] = None,
                                 animal_weight: Optional[float] = None) -> ReverseDoseResult:
        """
        Largest human dose that keeps the HED-based margin at ``target_margin``.

        max dose (mg/kg) = HED / target margin
        """
        target_margin = require_positive('target_margin', target_margin)
        species = get_animal_species(animal_species, self.species_table)
        animal_noael = require_positive('animal_noael', animal_noael)
        human_weight = optional_positive('human_weight', human_weight, self.human_body_weight)

        hed = animal_noael * allometric_factor(species, human_weight, animal_weight)
        max_dose_per_kg = hed / target_margin
        max_dose_per_person = max_dose_per_kg * human_weight

        steps = [
            f"Animal NOAEL: {animal_noael:g} mg/kg/day ({species.name})",
            f"HED: {hed:.4f} mg/kg/day",
            f"Target margin: {target_margin:g}x",
            '',
            'Max human dose = HED / target margin',
            f"               = {hed:.4f} / {target_margin:g}",
            f"               = {max_dose_per_kg:.4f} mg/kg/day",
            f"               = {max_dose_per_person:.2f} mg/person/day ({human_weight:g} kg)",
        ]

        logger.info(f"Max human dose ({species.key}, {target_margin:g}x): "
                    f"{max_dose_per_kg:.4f} mg/kg/day")

        return ReverseDoseResult(
            max_dose_per_kg=max_dose_per_kg,
            max_dose_per_person=max_dose_per_person,
            hed=hed,
            calculation_steps=steps,
        )
