"""
default_materials.py — Default sub-work configuration for structural calculators.

Beam and footplate calculators split into three parallel sub-works:

    Beton      concrete   per m³ of concrete_volume
    Bekisting  formwork   per m² of formwork_area
    Besi       rebar      per kg of total_reinforcement_weight

Concrete rates are configured for the K225 baseline and rescaled by grade in
the costing engine.  Rebar is bought per 12 m bar (lonjor); its rate per kg is
derived from each diameter's share of the total reinforcement weight.

Also builds sub-work inputs from stored job-type assignments.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from app.services import config
from app.services.estimation_errors import MissingConfiguration, raise_if_any
from app.services.quantity_engine import REBAR_WEIGHT_KG_PER_M


# ---------------------------------------------------------------------------
# Material defaults (quantity_per_unit in market units)
# ---------------------------------------------------------------------------
BETON_MATERIALS: List[Dict[str, Any]] = [
    {"name": "Semen Portland", "market_unit": "sak", "market_price": 65_000.0,
     "quantity_per_unit": 7.5, "base_unit": "kg", "conversion_factor": 50.0,
     "conversion_description": "1 sak = 50 kg", "is_primary": True},
    {"name": "Pasir Halus", "market_unit": "m³", "market_price": 350_000.0,
     "quantity_per_unit": 0.48, "base_unit": "m³", "conversion_factor": 1.0,
     "conversion_description": "1 m³ = 1 m³", "is_primary": True},
    {"name": "Kerikil", "market_unit": "m³", "market_price": 400_000.0,
     "quantity_per_unit": 0.68, "base_unit": "m³", "conversion_factor": 1.0,
     "conversion_description": "1 m³ = 1 m³", "is_primary": True},
]

BEKISTING_MATERIALS: List[Dict[str, Any]] = [
    {"name": "Kayu Bekisting 3x5", "market_unit": "bendel", "market_price": 850_000.0,
     "quantity_per_unit": 0.1, "base_unit": "lembar", "conversion_factor": 10.0,
     "conversion_description": "1 bendel = 10 lembar", "is_primary": True},
    {"name": "Paku", "market_unit": "kg", "market_price": 18_000.0,
     "quantity_per_unit": 0.5, "base_unit": "kg", "conversion_factor": 1.0,
     "conversion_description": "1 kg = 1 kg", "is_primary": True},
]

TIE_WIRE_MATERIAL: Dict[str, Any] = {
    "name": "Kawat Bendrat", "market_unit": "kg", "market_price": 25_000.0,
    "quantity_per_unit": 0.05, "base_unit": "kg", "conversion_factor": 1.0,
    "conversion_description": "1 kg = 1 kg", "is_primary": True,
}

# Price per 12 m bar (IDR)
REBAR_PRICE_PER_BAR: Dict[str, float] = {
    "D8": 49_000.0,
    "D10": 76_000.0,
    "D12": 110_000.0,
    "D16": 195_000.0,
    "D19": 230_000.0,
    "D22": 308_000.0,
    "D25": 398_000.0,
}


# ---------------------------------------------------------------------------
# Crew & productivity defaults
# ---------------------------------------------------------------------------
DEFAULT_WORKERS: Dict[str, Dict[str, Any]] = {
    "beton":     {"tukang": 1, "pekerja": 2, "ratio": "1:2"},
    "bekisting": {"tukang": 2, "pekerja": 1, "ratio": "2:1"},
    "besi":      {"tukang": 2, "pekerja": 1, "ratio": "1:1"},
}

# output units per team per day
DEFAULT_PRODUCTIVITY: Dict[str, float] = {
    "beton": 3.0,       # m³
    "bekisting": 10.0,  # m²
    "besi": 200.0,      # kg
}

SUB_WORK_QUANTITY_KEYS: Dict[str, str] = {
    "beton": "concrete_volume",
    "bekisting": "formwork_area",
    "besi": "total_reinforcement_weight",
}

SUB_WORK_UNITS: Dict[str, str] = {"beton": "m³", "bekisting": "m²", "besi": "kg"}

STRUCTURAL_SHAPES = ("beam", "footplate")


def rebar_bar_material(diameter: str, weight_share: float = 1.0) -> Dict[str, Any]:
    """
    Rebar priced per lonjor, consumed per kg of total reinforcement.

    D12: 12 m × 0.888 = 10.656 kg/lonjor → 1/10.656 lonjor per kg at full share.
    """
    kg_per_bar = REBAR_WEIGHT_KG_PER_M[diameter] * config.REBAR_BAR_LENGTH_M
    return {
        "name": f"Besi Tulangan {diameter}",
        "market_unit": "lonjor",
        "market_price": REBAR_PRICE_PER_BAR[diameter],
        "quantity_per_unit": weight_share / kg_per_bar,
        "base_unit": "kg",
        "conversion_factor": round(kg_per_bar, 4),
        "conversion_description": f"1 lonjor = {kg_per_bar:.3f} kg",
        "is_primary": True,
    }


def besi_materials(quantity_set: Mapping[str, Any]) -> List[Dict[str, Any]]:
    reinforcement = quantity_set.get("reinforcement") or {}
    total = sum(entry["weight_kg"] for entry in reinforcement.values())
    materials = []
    if total > 0:
        for diameter, entry in reinforcement.items():
            materials.append(rebar_bar_material(diameter, entry["weight_kg"] / total))
    materials.append(copy.deepcopy(TIE_WIRE_MATERIAL))
    return materials


def default_materials(sub_work: str, quantity_set: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    key = sub_work.strip().lower()
    if key == "beton":
        return copy.deepcopy(BETON_MATERIALS)
    if key == "bekisting":
        return copy.deepcopy(BEKISTING_MATERIALS)
    if key == "besi":
        return besi_materials(quantity_set or {})
    return []


def structural_sub_works(
    quantity_set: Mapping[str, Any],
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """
    Beton / Bekisting / Besi sub-work inputs for a beam or footplate.

    ``overrides`` is keyed by lower-case sub-work name and may replace
    ``workers`` (merged), ``productivity`` or ``materials``.
    """
    overrides = overrides or {}
    sub_works = []
    for key in ("beton", "bekisting", "besi"):
        override = overrides.get(key, {})
        workers = {**DEFAULT_WORKERS[key], **(override.get("workers") or {})}
        sub_works.append({
            "name": key.capitalize(),
            "quantity_key": SUB_WORK_QUANTITY_KEYS[key],
            "unit": SUB_WORK_UNITS[key],
            "productivity": override.get("productivity", DEFAULT_PRODUCTIVITY[key]),
            "grade_adjusted": key == "beton",
            "workers": workers,
            "materials": override.get("materials") or default_materials(key, quantity_set),
        })
    return sub_works


def sub_works_from_assignments(
    material_assignments: List[Mapping[str, Any]],
    labor_assignments: List[Mapping[str, Any]],
    quantity_set: Mapping[str, Any],
) -> List[Dict[str, Any]]:
    """
    Group a job type's stored assignments into sub-work inputs.

    Each assignment carries a ``sub_work`` name.  Structural sub-work names map
    to their derived quantity; any other name uses the shape's primary
    quantity.  Names match case-insensitively.  A sub-work needs a labor
    assignment to be priced; materials grouped under a sub-work with no labor
    raise MissingConfiguration rather than dropping out of the cost.
    """
    materials_by_key: Dict[str, List[Dict[str, Any]]] = {}
    material_names: Dict[str, str] = {}
    for assignment in material_assignments:
        name = assignment.get("sub_work") or "Utama"
        key = name.strip().lower()
        material_names.setdefault(key, name)
        materials_by_key.setdefault(key, []).append(dict(assignment))

    sub_works = []
    for labor in labor_assignments:
        name = labor.get("sub_work") or "Utama"
        key = name.strip().lower()
        quantity_key = SUB_WORK_QUANTITY_KEYS.get(key)
        if quantity_key not in (quantity_set.get("quantities") or {}):
            quantity_key = None
        sub_works.append({
            "name": name,
            "quantity_key": quantity_key,
            "unit": SUB_WORK_UNITS.get(key, quantity_set.get("unit")) if quantity_key else quantity_set.get("unit"),
            "productivity": labor.get("productivity"),
            "grade_adjusted": key == "beton",
            "workers": {
                "tukang": labor.get("tukang", 0),
                "pekerja": labor.get("pekerja", 0),
                "ratio": labor.get("ratio") or config.DEFAULT_WORKER_RATIO,
                "rate_tukang": labor.get("rate_tukang"),
                "rate_pekerja": labor.get("rate_pekerja"),
            },
            "materials": materials_by_key.pop(key, []),
        })

    raise_if_any([
        MissingConfiguration(f"sub_work {material_names[key]}", "materials assigned but no labor configured")
        for key in materials_by_key
    ])
    return sub_works
