"""
Error kinds raised by the estimation engines.

Every error is a ``ValueError`` tagged with the input field that caused it, so
the API layer can surface all corrections at once.  ``ValidationAggregate``
collects several of them; calculations raise it before any cost arithmetic.

A missing conversion-rule match is not an error: the matcher returns ``None``.
"""

from typing import Dict, Iterable, List


class EstimationError(ValueError):
    """Base class for field-tagged validation failures."""

    code: str = "estimation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


class InvalidDimension(EstimationError):
    """A physical input (length, volume, quantity, price) is out of range."""
    code = "invalid_dimension"


class InvalidConversionFactor(EstimationError):
    code = "invalid_conversion_factor"


class InvalidRatio(EstimationError):
    """Worker ratio is malformed, negative, or 0:0."""
    code = "invalid_ratio"


class InvalidWorkerCount(EstimationError):
    code = "invalid_worker_count"


class ZeroProductivity(EstimationError):
    code = "zero_productivity"


class InvalidPercentage(EstimationError):
    code = "invalid_percentage"


class UnknownConcreteGrade(EstimationError):
    code = "unknown_concrete_grade"


class MissingConfiguration(EstimationError):
    """No sub-works, materials or crew configured for a calculation."""
    code = "missing_configuration"


class ValidationAggregate(ValueError):
    """All validation failures of one calculation, reported together."""

    def __init__(self, errors: Iterable[EstimationError]) -> None:
        self.errors: List[EstimationError] = list(errors)
        summary = "; ".join(str(e) for e in self.errors) or "validation failed"
        super().__init__(summary)

    def fields(self) -> List[str]:
        return [e.field for e in self.errors]

    def to_list(self) -> List[Dict[str, str]]:
        return [e.to_dict() for e in self.errors]


def raise_if_any(errors: List[EstimationError]) -> None:
    if errors:
        raise ValidationAggregate(errors)
