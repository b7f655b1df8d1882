"""
Errors raised by the calculation engine.

Every error derives from ``ValueError`` so callers that already guard numeric
input with ``except ValueError`` keep working.
"""


class CalculationError(ValueError):
    """Base class for all calculation engine errors."""


class InvalidInputError(CalculationError):
    """Out-of-range, non-numeric or mutually exclusive arguments."""


class MissingParameterError(InvalidInputError):
    """A conditionally required argument was omitted."""


class UnsupportedUnitError(InvalidInputError):
    """Unit string outside the recognized set."""


class UnknownSpeciesError(InvalidInputError):
    """Species key absent from the reference table."""

    def __init__(self, species: str, known=None):
        self.species = species
        message = f"Unknown species: {species!r}"
        if known:
            message += f" (known: {', '.join(sorted(known))})"
        super().__init__(message)
