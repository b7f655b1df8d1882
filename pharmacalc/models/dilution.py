"""
Dilution and concentration arithmetic.

Covers single dilutions (C1V1 = C2V2), serial dilution series, stock solution
preparation with purity correction and mass/molar concentration unit
conversion.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

from ..exceptions import InvalidInputError, MissingParameterError, UnsupportedUnitError
from ..utils.validation import require_non_negative, require_positive

logger = logging.getLogger(__name__)

# Mass concentration factors relative to mg/mL (1 mg/mL == 1 g/L)
MASS_UNIT_FACTORS: Dict[str, float] = {
    'mg/mL': 1.0,
    'μg/mL': 1e-3,
    'ng/mL': 1e-6,
}

# Molar concentration factors relative to M (mol/L)
MOLAR_UNIT_FACTORS: Dict[str, float] = {
    'M': 1.0,
    'mM': 1e-3,
    'μM': 1e-6,
    'nM': 1e-9,
}

CONCENTRATION_UNITS: Tuple[str, ...] = tuple(MASS_UNIT_FACTORS) + tuple(MOLAR_UNIT_FACTORS)

SERIAL_MODES = ('serial', 'parallel')


@dataclass(frozen=True)
class DilutionResult:
    c1: float
    v1: float
    c2: float
    v2: float
    diluent_volume: float
    dilution_factor: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SerialDilutionStep:
    step: int
    concentration: float
    source_concentration: float
    stock_volume: float
    diluent_volume: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SerialDilutionResult:
    steps: List[SerialDilutionStep]
    mode: str
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class StockSolutionResult:
    volume: float
    actual_weight: float
    purity: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class UnitConversionResult:
    converted_value: float
    from_unit: str
    to_unit: str
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


def normalize_unit(unit: str) -> str:
    """
    Return the canonical spelling of a concentration unit.

    The micro sign (U+00B5) is accepted for the Greek mu (U+03BC) prefix.
    """
    if not isinstance(unit, str):
        raise UnsupportedUnitError(f"Unsupported concentration unit: {unit!r}")
    canonical = unit.strip().replace('\u00b5', '\u03bc')
    if canonical not in CONCENTRATION_UNITS:
        raise UnsupportedUnitError(
            f"Unsupported concentration unit: {unit!r} "
            f"(supported: {', '.join(CONCENTRATION_UNITS)})"
        )
    return canonical


class DilutionCalculator:
    """Solve dilution, stock preparation and concentration unit problems."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize DilutionCalculator.

        Parameters
        ----------
        config : Dict, optional
            Dilution configuration. ``decimal_places`` controls the precision
            of values printed in calculation steps (default: 4).
        """
        self.config = config or {}
        self.decimal_places = int(self.config.get('decimal_places', 4))

    def _f(self, value: float) -> str:
        return f"{value:.{self.decimal_places}f}"

    def calculate_dilution(self, c1: float, c2: float,
                           v1: Optional[float] = None,
                           v2: Optional[float] = None) -> DilutionResult:
        """
        Solve C1 × V1 = C2 × V2 for whichever volume is missing.

        Parameters
        ----------
        c1 : float
            Initial (stock) concentration.
        c2 : float
            Final concentration, in the same unit as ``c1``.
        v1 : float, optional
            Stock volume (mL). Supply exactly one of ``v1`` / ``v2``.
        v2 : float, optional
            Final volume (mL).

        Returns
        -------
        DilutionResult
        """
        if (v1 is None) == (v2 is None):
            raise InvalidInputError("Exactly one of v1 or v2 must be supplied")

        c1 = require_positive('c1', c1)
        c2 = require_positive('c2', c2)
        if c1 <= c2:
            raise InvalidInputError(
                f"c1 ({c1:g}) must exceed c2 ({c2:g}) for a dilution"
            )

        steps = ['C1 × V1 = C2 × V2']

        if v1 is None:
            v2 = require_positive('v2', v2)
            v1 = (c2 * v2) / c1
            steps.append('V1 = (C2 × V2) / C1')
            steps.append(f"V1 = ({c2:g} × {v2:g}) / {c1:g}")
            steps.append(f"V1 = {self._f(v1)} mL")
        else:
            v1 = require_positive('v1', v1)
            v2 = (c1 * v1) / c2
            steps.append('V2 = (C1 × V1) / C2')
            steps.append(f"V2 = ({c1:g} × {v1:g}) / {c2:g}")
            steps.append(f"V2 = {self._f(v2)} mL")

        diluent_volume = v2 - v1
        dilution_factor = c1 / c2

        steps.append('')
        steps.append(f"Diluent volume = V2 - V1 = {self._f(v2)} - {self._f(v1)} "
                     f"= {self._f(diluent_volume)} mL")
        steps.append(f"Dilution factor = C1 / C2 = {c1:g} / {c2:g} = {dilution_factor:.2f}x")

        logger.debug(f"Dilution: V1={v1:.4f} mL, V2={v2:.4f} mL, factor={dilution_factor:.2f}")

        return DilutionResult(
            c1=c1,
            v1=v1,
            c2=c2,
            v2=v2,
            diluent_volume=diluent_volume,
            dilution_factor=dilution_factor,
            calculation_steps=steps,
        )

    def calculate_serial_dilution(self, stock_concentration: float,
                                  target_concentrations: Sequence[float],
                                  final_volume_per_step: float,
                                  mode: str = 'serial') -> SerialDilutionResult:
        """
        Plan a dilution series.

        Parameters
        ----------
        stock_concentration : float
            Concentration of the master stock.
        target_concentrations : Sequence[float]
            Target concentration of each step, in preparation order.
        final_volume_per_step : float
            Final volume (mL) prepared at every step.
        mode : str, optional
            ``'serial'`` (default) takes each step from the previous step's
            solution; ``'parallel'`` takes every step from the master stock.

        Returns
        -------
        SerialDilutionResult
        """
        if mode not in SERIAL_MODES:
            raise InvalidInputError(f"Unknown dilution mode: {mode!r} (expected one of {SERIAL_MODES})")

        stock_concentration = require_positive('stock_concentration', stock_concentration)
        final_volume = require_positive('final_volume_per_step', final_volume_per_step)
        targets = [
            require_positive(f"target_concentrations[{i}]", target)
            for i, target in enumerate(target_concentrations if target_concentrations is not None else ())
        ]
        if not targets:
            raise InvalidInputError("target_concentrations must not be empty")

        calculation_steps = [
            f"Stock concentration: {stock_concentration:g}",
            f"Final volume per step: {final_volume:g} mL",
            f"Mode: {mode}",
            '',
        ]
        steps = []
        source = stock_concentration

        for i, target in enumerate(targets, start=1):
            if mode == 'parallel':
                source = stock_concentration
            if target >= source:
                raise InvalidInputError(
                    f"Step {i}: target concentration {target:g} must be lower than "
                    f"its source concentration {source:g}"
                )

            stock_volume = (target * final_volume) / source
            diluent_volume = final_volume - stock_volume

            steps.append(SerialDilutionStep(
                step=i,
                concentration=target,
                source_concentration=source,
                stock_volume=stock_volume,
                diluent_volume=diluent_volume,
            ))

            source_label = 'stock' if mode == 'parallel' or i == 1 else f"step {i - 1}"
            calculation_steps.append(f"Step {i}: {target:g} (from {source_label}, {source:g})")
            calculation_steps.append(
                f"  Source {self._f(stock_volume)} mL + diluent {self._f(diluent_volume)} mL "
                f"= {final_volume:g} mL"
            )

            if mode == 'serial':
                source = target

        logger.debug(f"Serial dilution planned: {len(steps)} steps ({mode})")

        return SerialDilutionResult(steps=steps, mode=mode, calculation_steps=calculation_steps)

    def calculate_stock_solution(self, substance_weight_mg: float,
                                 target_concentration_mg_per_ml: float,
                                 purity_percent: Optional[float] = None) -> StockSolutionResult:
        """
        Volume of vehicle needed to dissolve a weighed substance at a target
        concentration, correcting for purity.
        """
        weight = require_positive('substance_weight_mg', substance_weight_mg)
        target = require_positive('target_concentration_mg_per_ml', target_concentration_mg_per_ml)
        purity = 100.0 if purity_percent is None else require_positive('purity_percent', purity_percent)
        if purity > 100:
            raise InvalidInputError(f"purity_percent must be in (0, 100], got {purity:g}")

        steps = [f"Substance weight: {weight:g} mg"]

        if purity < 100:
            actual_weight = weight * (purity / 100)
            steps.append(f"Purity correction: {weight:g} × {purity:g}% = "
                         f"{self._f(actual_weight)} mg (active substance)")
        else:
            actual_weight = weight

        volume = actual_weight / target
        steps.append(f"Target concentration: {target:g} mg/mL")
        steps.append(f"Required volume = {self._f(actual_weight)} mg ÷ {target:g} mg/mL "
                     f"= {self._f(volume)} mL")

        return StockSolutionResult(
            volume=volume,
            actual_weight=actual_weight,
            purity=purity,
            calculation_steps=steps,
        )

    def convert_concentration_unit(self, value: float, from_unit: str, to_unit: str,
                                   molecular_weight: Optional[float] = None) -> UnitConversionResult:
        """
        Convert a concentration between mass and molar units.

        Parameters
        ----------
        value : float
            Concentration in ``from_unit``.
        from_unit, to_unit : str
            One of mg/mL, μg/mL, ng/mL, M, mM, μM, nM.
        molecular_weight : float, optional
            Molecular weight (g/mol); required when converting between a
            mass unit and a molar unit.

        Returns
        -------
        UnitConversionResult
        """
        value = require_non_negative('value', value)
        from_unit = normalize_unit(from_unit)
        to_unit = normalize_unit(to_unit)

        from_mass = from_unit in MASS_UNIT_FACTORS
        to_mass = to_unit in MASS_UNIT_FACTORS
        steps = []

        if from_mass and to_mass:
            converted = value * (MASS_UNIT_FACTORS[from_unit] / MASS_UNIT_FACTORS[to_unit])
            steps.append(f"{value:g} {from_unit} = {converted:.6g} {to_unit}")

        elif not from_mass and not to_mass:
            converted = value * (MOLAR_UNIT_FACTORS[from_unit] / MOLAR_UNIT_FACTORS[to_unit])
            steps.append(f"{value:g} {from_unit} = {converted:.6g} {to_unit}")

        else:
            if molecular_weight is None:
                raise MissingParameterError(
                    f"Molecular weight is required to convert {from_unit} to {to_unit}"
                )
            mw = require_positive('molecular_weight', molecular_weight)

            if from_mass:
                grams_per_litre = value * MASS_UNIT_FACTORS[from_unit]
                molar = grams_per_litre / mw
                converted = molar / MOLAR_UNIT_FACTORS[to_unit]
                steps.append(f"{value:g} {from_unit} = {grams_per_litre:.6g} g/L")
                steps.append(f"= {grams_per_litre:.6g} g/L ÷ {mw:g} g/mol = {molar:.6g} M")
            else:
                molar = value * MOLAR_UNIT_FACTORS[from_unit]
                grams_per_litre = molar * mw
                converted = grams_per_litre / MASS_UNIT_FACTORS[to_unit]
                steps.append(f"{value:g} {from_unit} = {molar:.6g} M")
                steps.append(f"= {molar:.6g} M × {mw:g} g/mol = {grams_per_litre:.6g} g/L")
            steps.append(f"= {converted:.6g} {to_unit}")

        return UnitConversionResult(
            converted_value=converted,
            from_unit=from_unit,
            to_unit=to_unit,
            calculation_steps=steps,
        )
