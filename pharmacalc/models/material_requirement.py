"""
Test material requirement estimation for study quotations.

Amount of test article needed per dose group, per study and in total, with a
percentage overage for losses during formulation and dosing.
"""

import logging
from dataclasses import dataclass, asdict
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence

from ..exceptions import InvalidInputError
from ..utils.validation import require_non_negative, require_positive

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN_PERCENT = 20.0


def _template(name: str, study_type: str, body_weight_g: float, dose_days: int,
              groups: Sequence[tuple]) -> Dict:
    return {
        'name': name,
        'study_type': study_type,
        'groups': tuple(
            MappingProxyType({
                'name': group_name,
                'animal_count': animal_count,
                'body_weight_g': body_weight_g,
                'dose_level': dose_level,
                'dose_days': dose_days,
                'is_vehicle': group_name == 'Vehicle',
            })
            for group_name, animal_count, dose_level in groups
        ),
    }


# Standard study designs; dose levels of 0 are filled in per quotation.
STUDY_TEMPLATES: Mapping[str, Mapping] = MappingProxyType({
    'acute_oral': _template('Acute oral toxicity', 'acute', 300, 1, [
        ('Step 1', 3, 5000), ('Step 2', 3, 5000),
    ]),
    'drf_4week': _template('Rat 4-week DRF toxicity', 'repeat', 300, 28, [
        ('Vehicle', 10, 0), ('Low', 10, 0), ('Mid', 10, 0), ('High', 10, 0),
    ]),
    'repeat_13week': _template('Rat 13-week repeated dose toxicity', 'repeat', 450, 90, [
        ('Vehicle', 30, 0), ('Low', 20, 0), ('Mid', 20, 0), ('High', 30, 0),
    ]),
    'dog_4week': _template('Beagle 4-week repeated dose toxicity', 'repeat', 10000, 28, [
        ('Vehicle', 4, 0), ('Low', 4, 0), ('Mid', 4, 0), ('High', 4, 0),
    ]),
    'genotox_mic': _template('Micronucleus test', 'genotox', 30, 2, [
        ('Vehicle', 10, 0), ('Low', 10, 0), ('Mid', 10, 0), ('High', 10, 0),
    ]),
})


@dataclass(frozen=True)
class DoseGroupRequirement:
    id: str
    name: str
    animal_count: int
    body_weight_g: float
    dose_level: float
    dose_days: float
    is_vehicle: bool
    required_amount: float
    calculated_amount: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class StudyRequirement:
    id: str
    name: str
    study_type: Optional[str]
    groups: List[DoseGroupRequirement]
    total_required: float
    total_calculated: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class TestMaterialResult:
    __test__ = False

    studies: List[StudyRequirement]
    grand_total_required: float
    grand_total_calculated: float
    safety_margin: float
    calculation_steps: List[str]

    def to_dict(self) -> Dict:
        return asdict(self)


def study_from_template(template: str, dose_levels: Optional[Sequence[float]] = None,
                        study_id: Optional[str] = None) -> Dict:
    """
    Build a study definition from ``STUDY_TEMPLATES``.

    Parameters
    ----------
    template : str
        Template key.
    dose_levels : Sequence[float], optional
        Dose levels (mg/kg/day) for the non-vehicle groups, in template order.
    study_id : str, optional
        Study identifier (default: the template key).
    """
    if template not in STUDY_TEMPLATES:
        raise InvalidInputError(
            f"Unknown study template: {template!r} (known: {', '.join(STUDY_TEMPLATES)})"
        )
    source = STUDY_TEMPLATES[template]
    groups = [dict(group) for group in source['groups']]

    if dose_levels is not None:
        dosed = [group for group in groups if not group['is_vehicle']]
        if len(dose_levels) != len(dosed):
            raise InvalidInputError(
                f"Template {template!r} has {len(dosed)} dosed groups, got {len(dose_levels)} dose levels"
            )
        for group, level in zip(dosed, dose_levels):
            group['dose_level'] = level

    return {
        'id': study_id or template,
        'name': source['name'],
        'study_type': source['study_type'],
        'groups': groups,
    }


class TestMaterialCalculator:
    """Estimate how much test article a set of studies consumes."""

    __test__ = False

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize TestMaterialCalculator.

        Parameters
        ----------
        config : Dict, optional
            Test material configuration. ``safety_margin_percent`` is the
            default overage added to every requirement (default: 20).
        """
        self.config = config or {}
        self.safety_margin = require_non_negative(
            'safety_margin_percent',
            self.config.get('safety_margin_percent', DEFAULT_SAFETY_MARGIN_PERCENT)
        )

    @staticmethod
    def group_requirement(animal_count: float, body_weight_g: float, dose_level: float,
                          dose_days: float, is_vehicle: bool = False) -> float:
        """
        Test article needed by one dose group (mg).

        required = animals × body weight (kg) × dose (mg/kg/day) × days

        Vehicle groups and groups without animals or dose need none.
        """
        if is_vehicle or dose_level == 0 or animal_count == 0:
            return 0.0
        return animal_count * (body_weight_g / 1000) * dose_level * dose_days

    def _check_group(self, location: str, group: Mapping) -> Dict:
        if not isinstance(group, Mapping):
            raise InvalidInputError(f"{location} must be a mapping")
        missing = {'animal_count', 'body_weight_g', 'dose_level', 'dose_days'} - set(group)
        if missing:
            raise InvalidInputError(f"{location} is missing {sorted(missing)}")

        animal_count = require_non_negative(f"{location}.animal_count", group['animal_count'])
        if not animal_count.is_integer():
            raise InvalidInputError(f"{location}.animal_count must be a whole number")

        return {
            'animal_count': int(animal_count),
            'body_weight_g': require_positive(f"{location}.body_weight_g", group['body_weight_g']),
            'dose_level': require_non_negative(f"{location}.dose_level", group['dose_level']),
            'dose_days': require_positive(f"{location}.dose_days", group['dose_days']),
            'is_vehicle': bool(group.get('is_vehicle', False)),
        }

    def calculate_test_material(self, studies: Sequence[Mapping],
                                safety_margin: Optional[float] = None) -> TestMaterialResult:
        """
        Calculate test article requirements.

        Parameters
        ----------
        studies : Sequence[Mapping]
            Studies with ``name``, optional ``id`` / ``study_type`` and
            ``groups``. Each group has ``name``, ``animal_count``,
            ``body_weight_g``, ``dose_level`` (mg/kg/day), ``dose_days`` and
            optional ``is_vehicle``.
        safety_margin : float, optional
            Overage in percent (default from configuration).

        Returns
        -------
        TestMaterialResult
            ``calculated`` amounts include the overage; ``required`` amounts
            do not.
        """
        if not studies:
            raise InvalidInputError("studies must not be empty")
        safety_margin = self.safety_margin if safety_margin is None \
            else require_non_negative('safety_margin', safety_margin)
        multiplier = 1 + safety_margin / 100

        steps = [
            '=== Test material requirement ===',
            f"Overage: {safety_margin:g}% (×{multiplier:.2f})",
            'Required = animals × body weight (kg) × dose (mg/kg/day) × dosing days',
            f"Calculated = required × {multiplier:.2f}",
            '',
        ]

        study_results = []
        grand_required = 0.0
        grand_calculated = 0.0

        for i, study in enumerate(studies):
            if not isinstance(study, Mapping) or not study.get('groups'):
                raise InvalidInputError(f"studies[{i}] needs a non-empty 'groups' list")
            study_name = str(study.get('name') or f"Study {i + 1}")
            steps.append(f"[{study_name}]")

            groups = []
            for j, raw in enumerate(study['groups']):
                group = self._check_group(f"studies[{i}].groups[{j}]", raw)
                group_name = str(raw.get('name') or f"Group {j + 1}")
                required = self.group_requirement(**group)
                calculated = required * multiplier

                if required > 0:
                    steps.append(
                        f"  {group_name}: {group['animal_count']} animals × "
                        f"{group['body_weight_g'] / 1000:g} kg × {group['dose_level']:g} mg/kg × "
                        f"{group['dose_days']:g} days = {required:.0f} mg -> {calculated:.0f} mg"
                    )
                elif group['is_vehicle']:
                    steps.append(f"  {group_name}: vehicle group (no test material)")

                groups.append(DoseGroupRequirement(
                    id=str(raw.get('id') or f"{i + 1}-{j + 1}"),
                    name=group_name,
                    required_amount=required,
                    calculated_amount=calculated,
                    **group,
                ))

            total_required = sum(g.required_amount for g in groups)
            total_calculated = sum(g.calculated_amount for g in groups)
            steps.append(f"  -> study subtotal: {total_calculated:.0f} mg")
            steps.append('')

            study_results.append(StudyRequirement(
                id=str(study.get('id') or i + 1),
                name=study_name,
                study_type=study.get('study_type'),
                groups=groups,
                total_required=total_required,
                total_calculated=total_calculated,
            ))
            grand_required += total_required
            grand_calculated += total_calculated

        steps.append('=== Total ===')
        steps.append(f"Total required: {grand_required:.0f} mg")
        steps.append(f"Total calculated (with overage): {grand_calculated:.0f} mg")
        steps.append(f"= {grand_calculated / 1000:.2f} g")
        steps.append(f"= {grand_calculated / 1e6:.4f} kg")

        logger.info(f"Test material for {len(study_results)} studies: {grand_calculated:.0f} mg "
                    f"({safety_margin:g}% overage)")

        return TestMaterialResult(
            studies=study_results,
            grand_total_required=grand_required,
            grand_total_calculated=grand_calculated,
            safety_margin=safety_margin,
            calculation_steps=steps,
        )
