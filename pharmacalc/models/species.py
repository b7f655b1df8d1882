"""
Species reference table and interspecies scaling helpers.

Default values follow the FDA guidance "Estimating the Maximum Safe Starting
Dose in Initial Clinical Trials for Therapeutics in Adult Healthy Volunteers"
(2005), Table 1.
"""

import logging
from dataclasses import dataclass, asdict, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from ..exceptions import InvalidInputError, UnknownSpeciesError
from ..utils.validation import optional_positive, require_positive

logger = logging.getLogger(__name__)

HUMAN = 'human'
DEFAULT_HUMAN_BODY_WEIGHT_KG = 60.0
DEFAULT_ALLOMETRIC_EXPONENT = 0.67


@dataclass(frozen=True)
class SpeciesFactor:
    """One row of the species reference table."""
    key: str
    name: str
    allometric_exponent: float
    default_body_weight_kg: float
    km: float
    bsa_m2: float

    def to_dict(self) -> Dict:
        return asdict(self)


_DEFAULT_ROWS = (
    # key, name, body weight (kg), Km, BSA (m²)
    ('mouse', 'Mouse', 0.02, 3.0, 0.0007),
    ('hamster', 'Hamster', 0.08, 5.0, 0.016),
    ('rat', 'Rat', 0.15, 6.0, 0.025),
    ('ferret', 'Ferret', 0.30, 7.0, 0.043),
    ('guinea_pig', 'Guinea Pig', 0.40, 8.0, 0.05),
    ('rabbit', 'Rabbit', 1.8, 12.0, 0.15),
    ('monkey', 'Cynomolgus Monkey', 3.0, 12.0, 0.24),
    ('dog', 'Beagle Dog', 10.0, 20.0, 0.5),
    ('minipig', 'Minipig', 40.0, 35.0, 1.14),
    (HUMAN, 'Human', DEFAULT_HUMAN_BODY_WEIGHT_KG, 37.0, 1.62),
)


def _default_rows() -> Dict[str, SpeciesFactor]:
    return {
        key: SpeciesFactor(
            key=key,
            name=name,
            allometric_exponent=DEFAULT_ALLOMETRIC_EXPONENT,
            default_body_weight_kg=weight,
            km=km,
            bsa_m2=bsa,
        )
        for key, name, weight, km, bsa in _DEFAULT_ROWS
    }


def build_species_table(overrides: Optional[Mapping] = None) -> Mapping[str, SpeciesFactor]:
    """
    Build an immutable species table from the defaults plus ``overrides``.

    Parameters
    ----------
    overrides : Mapping, optional
        ``{key: {field: value}}``. Existing rows are updated field by field;
        new keys must provide every field except ``name`` and
        ``allometric_exponent``.

    Returns
    -------
    Mapping[str, SpeciesFactor]
        Read-only mapping keyed by species key.
    """
    rows = _default_rows()

    for key, fields in (overrides or {}).items():
        fields = dict(fields or {})
        fields.pop('key', None)
        unknown = set(fields) - set(SpeciesFactor.__dataclass_fields__)
        if unknown:
            raise InvalidInputError(f"Unknown species fields for {key!r}: {sorted(unknown)}")

        if key in rows:
            row = replace(rows[key], **fields)
        else:
            missing = {'default_body_weight_kg', 'km', 'bsa_m2'} - set(fields)
            if missing:
                raise InvalidInputError(f"New species {key!r} is missing {sorted(missing)}")
            fields.setdefault('name', key.replace('_', ' ').title())
            fields.setdefault('allometric_exponent', DEFAULT_ALLOMETRIC_EXPONENT)
            row = SpeciesFactor(key=key, **fields)

        row = replace(row, **{
            field: require_positive(f"{key}.{field}", getattr(row, field))
            for field in ('allometric_exponent', 'default_body_weight_kg', 'km', 'bsa_m2')
        })
        if row.allometric_exponent > 1:
            raise InvalidInputError(
                f"{key}.allometric_exponent must be <= 1, got {row.allometric_exponent:g}"
            )
        rows[key] = row
        logger.debug(f"Species table override applied: {row}")

    return MappingProxyType(rows)


SPECIES_TABLE: Mapping[str, SpeciesFactor] = build_species_table()


def get_species(key: str, table: Mapping[str, SpeciesFactor] = SPECIES_TABLE) -> SpeciesFactor:
    """Look up a species, raising UnknownSpeciesError when absent."""
    try:
        return table[key]
    except (KeyError, TypeError):
        raise UnknownSpeciesError(key, known=table.keys()) from None


def get_animal_species(key: str, table: Mapping[str, SpeciesFactor] = SPECIES_TABLE) -> SpeciesFactor:
    """Look up a species usable as the source of an HED conversion."""
    species = get_species(key, table)
    if species.key == HUMAN:
        raise InvalidInputError("'human' cannot be the source species of an HED conversion")
    return species


def allometric_factor(species: SpeciesFactor, human_weight: float,
                      animal_weight: Optional[float] = None) -> float:
    """
    Body-surface-area scaling factor (W_animal / W_human) ^ (1 - b).
    """
    animal_weight = optional_positive('animal_weight', animal_weight,
                                      species.default_body_weight_kg)
    human_weight = require_positive('human_weight', human_weight)
    return (animal_weight / human_weight) ** (1.0 - species.allometric_exponent)


def calculate_hed(noael: float, species: SpeciesFactor, human_weight: float,
                  animal_weight: Optional[float] = None) -> float:
    """
    Human Equivalent Dose from an animal dose (mg/kg).

    HED = NOAEL × (W_animal / W_human) ^ (1 - b)
    """
    noael = require_positive('noael', noael)
    return noael * allometric_factor(species, human_weight, animal_weight)
