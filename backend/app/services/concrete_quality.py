"""
concrete_quality.py — Concrete mix grades and grade-dependent material rates.

Catalog usage rates for cement, sand and gravel are configured for one
baseline grade (K225 by default).  When a calculation selects another grade
the rate is rescaled by the ratio of that constituent between the two grades:

    semen   → cement_ratio   (sak / m³)
    pasir   → sand_ratio     (m³ / m³)
    kerikil, koral, agregat → gravel_ratio (m³ / m³)

Everything else (additives, reinforcement, formwork timber) is never
grade-adjusted.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from app.services import config
from app.services.estimation_errors import UnknownConcreteGrade


# ---------------------------------------------------------------------------
# Grade table (per m³ of concrete)
# ---------------------------------------------------------------------------
CONCRETE_QUALITY: Dict[str, Dict[str, Any]] = {
    "K175": {"label": "K-175 (fc' = 14.5 MPa)", "fc_mpa": 14.5, "mix_ratio": "1:2:3",
             "cement_ratio": 6.5, "sand_ratio": 0.45, "gravel_ratio": 0.65, "water_cement_ratio": 0.65},
    "K200": {"label": "K-200 (fc' = 16.6 MPa)", "fc_mpa": 16.6, "mix_ratio": "1:2:3",
             "cement_ratio": 7.0, "sand_ratio": 0.47, "gravel_ratio": 0.67, "water_cement_ratio": 0.60},
    "K225": {"label": "K-225 (fc' = 18.7 MPa)", "fc_mpa": 18.7, "mix_ratio": "1:2:3",
             "cement_ratio": 7.5, "sand_ratio": 0.48, "gravel_ratio": 0.68, "water_cement_ratio": 0.58},
    "K250": {"label": "K-250 (fc' = 20.8 MPa)", "fc_mpa": 20.8, "mix_ratio": "1:1.5:2.5",
             "cement_ratio": 8.0, "sand_ratio": 0.50, "gravel_ratio": 0.70, "water_cement_ratio": 0.55},
    "K300": {"label": "K-300 (fc' = 25.0 MPa)", "fc_mpa": 25.0, "mix_ratio": "1:1.5:2.5",
             "cement_ratio": 8.5, "sand_ratio": 0.42, "gravel_ratio": 0.72, "water_cement_ratio": 0.50},
    "K350": {"label": "K-350 (fc' = 29.2 MPa)", "fc_mpa": 29.2, "mix_ratio": "1:1:2",
             "cement_ratio": 9.0, "sand_ratio": 0.54, "gravel_ratio": 0.74, "water_cement_ratio": 0.45},
}

# Constituent → keywords; checked in order
_CONSTITUENTS = (
    ("cement", ("semen",)),
    ("sand", ("pasir",)),
    ("gravel", ("kerikil", "koral", "agregat")),
)

_GRADE_RE = re.compile(r"^k?[\s\-]?(\d{3})$", re.IGNORECASE)


def normalize_grade(grade: Optional[str], field: str = "concrete_quality") -> str:
    """``"K-225"``, ``"k 225"``, ``"225"`` → ``"K225"``; unknown grades raise."""
    text = (grade or "").strip()
    match = _GRADE_RE.match(text)
    key = f"K{match.group(1)}" if match else text.upper()
    if key not in CONCRETE_QUALITY:
        raise UnknownConcreteGrade(
            field, f"unknown grade {grade!r}; expected one of {', '.join(CONCRETE_QUALITY)}"
        )
    return key


def get_grade_spec(grade: str) -> Dict[str, Any]:
    key = normalize_grade(grade)
    return {"grade": key, **CONCRETE_QUALITY[key]}


def list_grades() -> List[Dict[str, Any]]:
    return [{"grade": key, **spec} for key, spec in CONCRETE_QUALITY.items()]


def classify_material(material_name: Optional[str]) -> Optional[str]:
    """Return ``cement``, ``sand``, ``gravel`` or ``None``."""
    name = (material_name or "").lower()
    for constituent, keywords in _CONSTITUENTS:
        if any(k in name for k in keywords):
            return constituent
    return None


def adjustment_factor(
    material_name: str,
    current_grade: str,
    baseline_grade: str = "K225",
) -> float:
    """
    Ratio of the material's constituent between two grades.

    K225 → K300:  semen 8.5 / 7.5 = 1.1333,  pasir 0.42 / 0.48 = 0.875.
    """
    current = get_grade_spec(current_grade)
    baseline = get_grade_spec(normalize_grade(baseline_grade, field="baseline_grade"))
    constituent = classify_material(material_name)
    if constituent is None:
        return 1.0
    ratio_key = f"{constituent}_ratio"
    return current[ratio_key] / baseline[ratio_key]


def adjusted_quantity_per_unit(original_rate: float, factor: float) -> float:
    return original_rate * factor


class MaterialQualityAdjuster:
    """Rescales concrete material rates from the baseline grade to a target grade."""

    def __init__(self, baseline_grade: Optional[str] = None) -> None:
        self.baseline_grade = normalize_grade(
            baseline_grade or config.BASELINE_CONCRETE_GRADE, field="baseline_grade"
        )

    def factor_for(self, material_name: str, grade: str) -> float:
        return adjustment_factor(material_name, grade, self.baseline_grade)

    def adjust_materials(
        self, materials: List[Mapping[str, Any]], grade: str
    ) -> List[Dict[str, Any]]:
        """
        Return copies of ``materials`` with ``quantity_per_unit`` rescaled.

        The original rate is kept under ``base_quantity_per_unit`` and the input
        records are left untouched, so repeated calls never compound.
        """
        adjusted: List[Dict[str, Any]] = []
        for material in materials:
            rate = float(material.get("quantity_per_unit", 0.0))
            factor = self.factor_for(str(material.get("name", "")), grade)
            adjusted.append({
                **material,
                "base_quantity_per_unit": rate,
                "adjustment_factor": factor,
                "quantity_per_unit": adjusted_quantity_per_unit(rate, factor),
            })
        return adjusted
