"""
Maximum Recommended Starting Dose (MRSD) estimation for first-in-human trials.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..exceptions import InvalidInputError
from ..utils.validation import optional_positive, require_positive
from .species import (
    DEFAULT_HUMAN_BODY_WEIGHT_KG,
    HUMAN,
    SPECIES_TABLE,
    SpeciesFactor,
    allometric_factor,
    build_species_table,
    get_animal_species,
)

logger = logging.getLogger(__name__)

HED_METHODS = ('km', 'allometric')
ROUTES = ('oral', 'iv', 'sc', 'im', 'ip', 'dermal', 'inhalation')
PAD_BASES = ('animal', 'invitro', 'pk', 'literature')


@dataclass(frozen=True)
class MRSDSpeciesResult:
    species: str
    species_name: str
    noael: float
    route: str
    bioavailability: float
    corrected_noael: float
    hed: float
    mrsd: float
    mrsd_total: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class PADComparison:
    pad_value: float
    pad_basis: str
    mrsd: float
    ratio: float
    recommendation: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MRSDResult:
    human_weight: float
    safety_factor: float
    method: str
    results: List[MRSDSpeciesResult]
    most_conservative: MRSDSpeciesResult
    pad_comparison: Optional[PADComparison]
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class RequiredNoaelResult:
    required_noael: float
    hed: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


class MRSDCalculator:
    """Estimate MRSD from animal NOAELs and solve for the NOAEL a target MRSD needs."""

    def __init__(self, config: Optional[Dict] = None,
                 species_table: Optional[Mapping[str, SpeciesFactor]] = None):
        """
        Initialize MRSDCalculator.

        Parameters
        ----------
        config : Dict, optional
            MRSD configuration: ``safety_factor`` (default 10), ``method``
            (``'km'`` or ``'allometric'``) and ``human_body_weight_kg``.
        species_table : Mapping, optional
            Species reference table.
        """
        self.config = config or {}
        self.safety_factor = require_positive('safety_factor', self.config.get('safety_factor', 10.0))
        self.method = self._check_method(self.config.get('method', 'km'))
        self.human_body_weight = require_positive(
            'human_body_weight_kg',
            self.config.get('human_body_weight_kg', DEFAULT_HUMAN_BODY_WEIGHT_KG)
        )
        if species_table is None:
            species_table = build_species_table(self.config['species']) \
                if self.config.get('species') else SPECIES_TABLE
        self.species_table = species_table

    @staticmethod
    def _check_method(method: str) -> str:
        if method not in HED_METHODS:
            raise InvalidInputError(f"Unknown HED method: {method!r} (expected one of {HED_METHODS})")
        return method

    def _hed_factor(self, species: SpeciesFactor, method: str, human_weight: float) -> float:
        if method == 'km':
            return species.km / self.species_table[HUMAN].km
        return allometric_factor(species, human_weight)

    def calculate_mrsd(self, inputs: Sequence[Mapping],
                       human_weight: Optional[float] = None,
                       safety_factor: Optional[float] = None,
                       pad_value: Optional[float] = None,
                       pad_basis: str = 'animal',
                       method: Optional[str] = None) -> MRSDResult:
        """
        Forward MRSD calculation: animal NOAEL -> HED -> MRSD.

        Parameters
        ----------
        inputs : Sequence[Mapping]
            Entries with ``species`` and ``noael`` and optional ``route``
            (default ``'oral'``) and ``bioavailability`` (%, default 100).
            Non-IV NOAELs are corrected by bioavailability.
        human_weight : float, optional
            Human body weight (kg).
        safety_factor : float, optional
            Safety factor applied to the HED (default from configuration).
        pad_value : float, optional
            Pharmacologically active dose (mg/kg) to compare the MRSD with.
        pad_basis : str, optional
            Where the PAD comes from.
        method : str, optional
            ``'km'`` or ``'allometric'`` HED conversion.

        Returns
        -------
        MRSDResult
            ``most_conservative`` is the lowest MRSD, first in input order on
            ties.
        """
        if not inputs:
            raise InvalidInputError("inputs must not be empty")

        human_weight = optional_positive('human_weight', human_weight, self.human_body_weight)
        safety_factor = optional_positive('safety_factor', safety_factor, self.safety_factor)
        method = self._check_method(method or self.method)
        pad_value = optional_positive('pad_value', pad_value)
        if pad_basis not in PAD_BASES:
            raise InvalidInputError(f"Unknown PAD basis: {pad_basis!r}")

        results = []
        steps = []

        for i, entry in enumerate(inputs):
            if 'species' not in entry or 'noael' not in entry:
                raise InvalidInputError(f"inputs[{i}] needs 'species' and 'noael'")
            species = get_animal_species(entry['species'], self.species_table)
            noael = require_positive(f"inputs[{i}].noael", entry['noael'])
            route = entry.get('route', 'oral')
            if route not in ROUTES:
                raise InvalidInputError(f"inputs[{i}]: unknown route {route!r}")
            bioavailability = require_positive(f"inputs[{i}].bioavailability",
                                               entry.get('bioavailability', 100.0))
            if bioavailability > 100:
                raise InvalidInputError(f"inputs[{i}].bioavailability must be <= 100")

            corrected_noael = noael
            if route != 'iv' and bioavailability < 100:
                corrected_noael = noael * (bioavailability / 100)
                steps.append(f"[{species.name}] Bioavailability correction: {noael:g} mg/kg × "
                             f"{bioavailability:g}% = {corrected_noael:.4f} mg/kg")

            factor = self._hed_factor(species, method, human_weight)
            hed = corrected_noael * factor
            if method == 'km':
                steps.append(f"[{species.name}] HED = {corrected_noael:.4f} mg/kg × "
                             f"(Km {species.km:g} ÷ {self.species_table[HUMAN].km:g}) = {hed:.4f} mg/kg")
            else:
                steps.append(f"[{species.name}] HED = {corrected_noael:.4f} mg/kg × "
                             f"{factor:.4f} = {hed:.4f} mg/kg")

            mrsd = hed / safety_factor
            mrsd_total = mrsd * human_weight
            steps.append(f"[{species.name}] MRSD = {hed:.4f} ÷ SF({safety_factor:g}) = {mrsd:.4f} mg/kg "
                         f"= {mrsd_total:.2f} mg/person")

            results.append(MRSDSpeciesResult(
                species=species.key,
                species_name=species.name,
                noael=noael,
                route=route,
                bioavailability=bioavailability,
                corrected_noael=corrected_noael,
                hed=hed,
                mrsd=mrsd,
                mrsd_total=mrsd_total,
            ))

        most_conservative = results[int(np.argmin([r.mrsd for r in results]))]
        steps.append('')
        steps.append(f"Final MRSD = {most_conservative.mrsd:.4f} mg/kg = "
                     f"{most_conservative.mrsd_total:.2f} mg/person "
                     f"({most_conservative.species_name}, most conservative)")

        pad_comparison = None
        if pad_value is not None:
            ratio = most_conservative.mrsd / pad_value
            if ratio >= 1:
                recommendation = (f"NOAEL-based MRSD is {ratio:.1f}x the PAD; a pharmacological "
                                  f"effect is likely to be observed in the first-in-human study.")
            else:
                recommendation = (f"NOAEL-based MRSD is {1 / ratio:.1f}x below the PAD; efficacy may "
                                  f"be hard to observe. Consider a dose escalation strategy.")
            pad_comparison = PADComparison(
                pad_value=pad_value,
                pad_basis=pad_basis,
                mrsd=most_conservative.mrsd,
                ratio=ratio,
                recommendation=recommendation,
            )
            steps.append(recommendation)

        logger.info(f"MRSD: {most_conservative.mrsd:.4f} mg/kg ({most_conservative.species})")

        return MRSDResult(
            human_weight=human_weight,
            safety_factor=safety_factor,
            method=method,
            results=results,
            most_conservative=most_conservative,
            pad_comparison=pad_comparison,
            calculation_steps=steps,
        )

    def calculate_required_noael(self, target_mrsd: float, species: str,
                                 safety_factor: Optional[float] = None,
                                 method: Optional[str] = None,
                                 human_weight: Optional[float] = None) -> RequiredNoaelResult:
        """
        Reverse MRSD: the animal NOAEL needed to support ``target_mrsd`` (mg/kg).
        """
        target_mrsd = require_positive('target_mrsd', target_mrsd)
        factor_species = get_animal_species(species, self.species_table)
        safety_factor = optional_positive('safety_factor', safety_factor, self.safety_factor)
        method = self._check_method(method or self.method)
        human_weight = optional_positive('human_weight', human_weight, self.human_body_weight)

        hed = target_mrsd * safety_factor
        required_noael = hed / self._hed_factor(factor_species, method, human_weight)

        steps = [
            f"Required HED = MRSD × SF = {target_mrsd:.4f} × {safety_factor:g} = {hed:.4f} mg/kg",
        ]
        if method == 'km':
            human_km = self.species_table[HUMAN].km
            steps.append(f"{factor_species.name} required NOAEL = HED × ({human_km:g} ÷ Km) = "
                         f"{hed:.4f} × ({human_km:g} ÷ {factor_species.km:g}) = {required_noael:.2f} mg/kg")
        else:
            steps.append(f"{factor_species.name} required NOAEL = HED ÷ scaling factor = "
                         f"{required_noael:.2f} mg/kg")
        steps.append('')
        steps.append(f"{factor_species.name} NOAEL of at least {required_noael:.2f} mg/kg/day is required")

        return RequiredNoaelResult(required_noael=required_noael, hed=hed, calculation_steps=steps)
