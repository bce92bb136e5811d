"""
quantity_engine.py — Geometry → physical quantities for every calculator shape.

Each shape is its own dimension dataclass with a ``validate()`` and a
``derive()``; ``derive_quantities(shape, dimensions)`` dispatches on the shape
tag and returns a QuantitySet dict consumed by the costing engine:

    {
      "shape": "beam", "variant": None, "label": "Balok",
      "unit": "m³", "primary_quantity": 0.9,
      "quantities": {"concrete_volume": 0.9, "formwork_area": 8.1, ...},
      "reinforcement": {"D12": {"length_m": 24.0, "weight_kg": 21.312, "bars": 2}},
      "dimensions": {...},
    }

Shapes:
  - beam       — concrete, formwork (bottom + sides + ends), main bars, stirrups
  - footplate  — pad footing with a two-way bottom mesh, bottom formwork
  - area       — rectangle, square, triangle, circle, trapezoid
  - volume     — cube, cylinder, sphere, cone, pyramid, trapezoid_prism
  - length     — straight run × count

All lengths are metres unless the field name ends in ``_mm``.
"""

import math
from dataclasses import asdict, dataclass, fields, MISSING
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

from app.services import config
from app.services.estimation_errors import (
    EstimationError,
    InvalidDimension,
    raise_if_any,
)


# ---------------------------------------------------------------------------
# Reinforcement steel unit weights (kg per metre)
# ---------------------------------------------------------------------------
REBAR_WEIGHT_KG_PER_M: Dict[str, float] = {
    "D8": 0.395,
    "D10": 0.617,
    "D12": 0.888,
    "D16": 1.578,
    "D19": 2.226,
    "D22": 2.984,
    "D25": 3.853,
}

BEAM_COVER_RANGE_MM: Tuple[float, float] = (15.0, 50.0)
FOOTPLATE_COVER_RANGE_MM: Tuple[float, float] = (25.0, 75.0)
STIRRUP_SPACING_RANGE_MM: Tuple[float, float] = (50.0, 300.0)


def rebar_weight(length_m: float, diameter: str) -> float:
    """weight = length × unit weight.  12 m of D12 → 12 × 0.888 = 10.656 kg."""
    if diameter not in REBAR_WEIGHT_KG_PER_M:
        raise InvalidDimension("diameter", f"unknown rebar diameter {diameter!r}")
    return length_m * REBAR_WEIGHT_KG_PER_M[diameter]


def bars_needed(length_m: float, bar_length_m: float = config.REBAR_BAR_LENGTH_M) -> int:
    """Stock bars (lonjor) to buy for a total cut length."""
    return math.ceil(round(length_m / bar_length_m, 9))


def _ceil_count(value: float) -> int:
    # round first so 6000/150 stays 40 under float noise
    return math.ceil(round(value, 9))


def _check_positive(errors: List[EstimationError], obj: Any, *names: str) -> None:
    for name in names:
        value = getattr(obj, name)
        if value is None or not math.isfinite(value) or value <= 0:
            errors.append(InvalidDimension(name, f"must be a finite number > 0, got {value}"))


def _check_range(errors: List[EstimationError], name: str, value: float,
                 bounds: Tuple[float, float]) -> None:
    low, high = bounds
    if value is None or not math.isfinite(value) or not (low <= value <= high):
        errors.append(InvalidDimension(name, f"must be between {low:g} and {high:g}, got {value}"))


def _check_diameter(errors: List[EstimationError], name: str, diameter: str) -> None:
    if diameter not in REBAR_WEIGHT_KG_PER_M:
        errors.append(InvalidDimension(
            name, f"unknown rebar diameter {diameter!r}; expected one of {', '.join(REBAR_WEIGHT_KG_PER_M)}"
        ))


def _reinforcement_entry(length_m: float, diameter: str) -> Dict[str, Any]:
    return {
        "length_m": round(length_m, 4),
        "weight_kg": round(rebar_weight(length_m, diameter), 4),
        "weight_per_m": REBAR_WEIGHT_KG_PER_M[diameter],
        "bars": bars_needed(length_m),
    }


def _reinforcement(runs: List[Tuple[str, float]]) -> Dict[str, Dict[str, Any]]:
    """Merge (diameter, length) runs by diameter."""
    lengths: Dict[str, float] = {}
    for diameter, length in runs:
        lengths[diameter] = lengths.get(diameter, 0.0) + length
    return {d: _reinforcement_entry(length, d) for d, length in lengths.items()}


# ---------------------------------------------------------------------------
# Structural shapes
# ---------------------------------------------------------------------------

@dataclass
class BeamDimensions:
    """Rectangular beam (balok).  Formwork covers bottom, both sides and both ends."""

    shape: ClassVar[str] = "beam"
    label: ClassVar[str] = "Balok"

    length: float
    width: float
    height: float
    cover_mm: float = 25.0
    main_bar_count: int = 4
    main_diameter: str = "D12"
    stirrup_diameter: str = "D8"
    stirrup_spacing_mm: float = 150.0

    def validate(self) -> List[EstimationError]:
        errors: List[EstimationError] = []
        _check_positive(errors, self, "length", "width", "height", "main_bar_count")
        _check_range(errors, "cover_mm", self.cover_mm, BEAM_COVER_RANGE_MM)
        _check_range(errors, "stirrup_spacing_mm", self.stirrup_spacing_mm, STIRRUP_SPACING_RANGE_MM)
        _check_diameter(errors, "main_diameter", self.main_diameter)
        _check_diameter(errors, "stirrup_diameter", self.stirrup_diameter)
        if not errors:
            cover = self.cover_mm / 1000.0
            if self.width <= 2 * cover or self.height <= 2 * cover:
                errors.append(InvalidDimension("cover_mm", "concrete cover leaves no room for stirrups"))
        return errors

    def derive(self) -> Dict[str, Any]:
        cover = self.cover_mm / 1000.0
        concrete_volume = self.length * self.width * self.height
        main_length = self.length * self.main_bar_count
        stirrup_perimeter = 2 * ((self.width - 2 * cover) + (self.height - 2 * cover))
        stirrup_count = _ceil_count(self.length * 1000.0 / self.stirrup_spacing_mm) + 1
        stirrup_length = stirrup_perimeter * stirrup_count
        formwork_area = (
            self.length * self.width
            + 2 * self.length * self.height
            + 2 * self.width * self.height
        )
        reinforcement = _reinforcement([
            (self.main_diameter, main_length),
            (self.stirrup_diameter, stirrup_length),
        ])
        main_weight = rebar_weight(main_length, self.main_diameter)
        stirrup_weight = rebar_weight(stirrup_length, self.stirrup_diameter)
        return {
            "unit": "m³",
            "primary_quantity": concrete_volume,
            "quantities": {
                "concrete_volume": concrete_volume,
                "formwork_area": formwork_area,
                "main_reinforcement_length": main_length,
                "main_reinforcement_weight": main_weight,
                "stirrup_perimeter": stirrup_perimeter,
                "stirrup_count": stirrup_count,
                "stirrup_length": stirrup_length,
                "stirrup_weight": stirrup_weight,
                "total_reinforcement_weight": main_weight + stirrup_weight,
            },
            "reinforcement": reinforcement,
        }


@dataclass
class FootplateDimensions:
    """Pad footing; thickness in mm, bottom mesh in two directions, bottom formwork only."""

    shape: ClassVar[str] = "footplate"
    label: ClassVar[str] = "Footplate"

    length: float
    width: float
    thickness_mm: float
    cover_mm: float = 40.0
    diameter_x: str = "D12"
    diameter_y: str = "D12"
    spacing_x_mm: float = 200.0
    spacing_y_mm: float = 200.0

    def validate(self) -> List[EstimationError]:
        errors: List[EstimationError] = []
        _check_positive(errors, self, "length", "width", "thickness_mm", "spacing_x_mm", "spacing_y_mm")
        _check_range(errors, "cover_mm", self.cover_mm, FOOTPLATE_COVER_RANGE_MM)
        _check_diameter(errors, "diameter_x", self.diameter_x)
        _check_diameter(errors, "diameter_y", self.diameter_y)
        if not errors:
            cover = self.cover_mm / 1000.0
            if self.width <= 2 * cover or self.length <= 2 * cover:
                errors.append(InvalidDimension("cover_mm", "concrete cover exceeds the footing plan size"))
            if self.thickness_mm <= 2 * self.cover_mm:
                errors.append(InvalidDimension("thickness_mm", "must exceed twice the concrete cover"))
        return errors

    def derive(self) -> Dict[str, Any]:
        cover = self.cover_mm / 1000.0
        concrete_volume = self.length * self.width * (self.thickness_mm / 1000.0)
        # X bars run along the length and are spaced across the width
        bars_x = _ceil_count((self.width - 2 * cover) * 1000.0 / self.spacing_x_mm) + 1
        bars_y = _ceil_count((self.length - 2 * cover) * 1000.0 / self.spacing_y_mm) + 1
        length_x = bars_x * self.length
        length_y = bars_y * self.width
        weight_x = rebar_weight(length_x, self.diameter_x)
        weight_y = rebar_weight(length_y, self.diameter_y)
        return {
            "unit": "m³",
            "primary_quantity": concrete_volume,
            "quantities": {
                "concrete_volume": concrete_volume,
                "formwork_area": self.length * self.width,
                "bar_count_x": bars_x,
                "bar_count_y": bars_y,
                "reinforcement_x_length": length_x,
                "reinforcement_y_length": length_y,
                "reinforcement_x_weight": weight_x,
                "reinforcement_y_weight": weight_y,
                "total_reinforcement_weight": weight_x + weight_y,
            },
            "reinforcement": _reinforcement([
                (self.diameter_x, length_x),
                (self.diameter_y, length_y),
            ]),
        }


# ---------------------------------------------------------------------------
# Plane areas
# ---------------------------------------------------------------------------

class _AreaShape:
    shape: ClassVar[str] = "area"
    variant: ClassVar[str] = ""
    label: ClassVar[str] = ""
    _required: ClassVar[Tuple[str, ...]] = ()

    def validate(self) -> List[EstimationError]:
        errors: List[EstimationError] = []
        _check_positive(errors, self, *self._required)
        return errors

    def area(self) -> float:
        raise NotImplementedError

    def derive(self) -> Dict[str, Any]:
        area = self.area()
        return {"unit": "m²", "primary_quantity": area, "quantities": {"area": area}}


@dataclass
class RectangleArea(_AreaShape):
    variant: ClassVar[str] = "rectangle"
    label: ClassVar[str] = "Persegi Panjang"
    _required: ClassVar[Tuple[str, ...]] = ("length", "width")
    length: float
    width: float

    def area(self) -> float:
        return self.length * self.width


@dataclass
class SquareArea(_AreaShape):
    variant: ClassVar[str] = "square"
    label: ClassVar[str] = "Persegi"
    _required: ClassVar[Tuple[str, ...]] = ("side",)
    side: float

    def area(self) -> float:
        return self.side ** 2


@dataclass
class TriangleArea(_AreaShape):
    variant: ClassVar[str] = "triangle"
    label: ClassVar[str] = "Segitiga"
    _required: ClassVar[Tuple[str, ...]] = ("base", "height")
    base: float
    height: float

    def area(self) -> float:
        return 0.5 * self.base * self.height


@dataclass
class CircleArea(_AreaShape):
    variant: ClassVar[str] = "circle"
    label: ClassVar[str] = "Lingkaran"
    _required: ClassVar[Tuple[str, ...]] = ("radius",)
    radius: float

    def area(self) -> float:
        return math.pi * self.radius ** 2


@dataclass
class TrapezoidArea(_AreaShape):
    variant: ClassVar[str] = "trapezoid"
    label: ClassVar[str] = "Trapesium"
    _required: ClassVar[Tuple[str, ...]] = ("top", "bottom", "height")
    top: float
    bottom: float
    height: float

    def area(self) -> float:
        return 0.5 * (self.top + self.bottom) * self.height


# ---------------------------------------------------------------------------
# Solid volumes
# ---------------------------------------------------------------------------

class _VolumeShape:
    """Solids accept an optional ``manual_volume`` that replaces the computed one."""

    shape: ClassVar[str] = "volume"
    variant: ClassVar[str] = ""
    label: ClassVar[str] = ""
    _required: ClassVar[Tuple[str, ...]] = ()
    manual_volume: Optional[float]

    def validate(self) -> List[EstimationError]:
        errors: List[EstimationError] = []
        _check_positive(errors, self, *self._required)
        if self.manual_volume is not None and (not math.isfinite(self.manual_volume) or self.manual_volume <= 0):
            errors.append(InvalidDimension("manual_volume", f"must be > 0, got {self.manual_volume}"))
        return errors

    def volume(self) -> float:
        raise NotImplementedError

    def derive(self) -> Dict[str, Any]:
        calculated = self.volume()
        volume = self.manual_volume if self.manual_volume is not None else calculated
        return {
            "unit": "m³",
            "primary_quantity": volume,
            "quantities": {
                "volume": volume,
                "calculated_volume": calculated,
                "manual_override": self.manual_volume is not None,
            },
        }


@dataclass
class CubeVolume(_VolumeShape):
    variant: ClassVar[str] = "cube"
    label: ClassVar[str] = "Kubus / Balok"
    _required: ClassVar[Tuple[str, ...]] = ("length", "width", "height")
    length: float
    width: float
    height: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return self.length * self.width * self.height


@dataclass
class CylinderVolume(_VolumeShape):
    variant: ClassVar[str] = "cylinder"
    label: ClassVar[str] = "Silinder"
    _required: ClassVar[Tuple[str, ...]] = ("radius", "height")
    radius: float
    height: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return math.pi * self.radius ** 2 * self.height


@dataclass
class SphereVolume(_VolumeShape):
    variant: ClassVar[str] = "sphere"
    label: ClassVar[str] = "Bola"
    _required: ClassVar[Tuple[str, ...]] = ("radius",)
    radius: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return 4.0 / 3.0 * math.pi * self.radius ** 3


@dataclass
class ConeVolume(_VolumeShape):
    variant: ClassVar[str] = "cone"
    label: ClassVar[str] = "Kerucut"
    _required: ClassVar[Tuple[str, ...]] = ("radius", "height")
    radius: float
    height: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return math.pi * self.radius ** 2 * self.height / 3.0


@dataclass
class PyramidVolume(_VolumeShape):
    variant: ClassVar[str] = "pyramid"
    label: ClassVar[str] = "Limas"
    _required: ClassVar[Tuple[str, ...]] = ("base_length", "base_width", "height")
    base_length: float
    base_width: float
    height: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return self.base_length * self.base_width * self.height / 3.0


@dataclass
class TrapezoidPrismVolume(_VolumeShape):
    variant: ClassVar[str] = "trapezoid_prism"
    label: ClassVar[str] = "Prisma Trapesium"
    _required: ClassVar[Tuple[str, ...]] = ("top", "bottom", "width", "height")
    top: float
    bottom: float
    width: float
    height: float
    manual_volume: Optional[float] = None

    def volume(self) -> float:
        return 0.5 * (self.top + self.bottom) * self.width * self.height


# ---------------------------------------------------------------------------
# Linear runs
# ---------------------------------------------------------------------------

@dataclass
class LengthDimensions:
    shape: ClassVar[str] = "length"
    label: ClassVar[str] = "Panjang"

    length: float
    count: int = 1

    def validate(self) -> List[EstimationError]:
        errors: List[EstimationError] = []
        _check_positive(errors, self, "length", "count")
        return errors

    def derive(self) -> Dict[str, Any]:
        total = self.length * self.count
        return {"unit": "m", "primary_quantity": total, "quantities": {"length": total}}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

SHAPES: Dict[str, Type] = {
    "beam": BeamDimensions,
    "footplate": FootplateDimensions,
    "area:rectangle": RectangleArea,
    "area:square": SquareArea,
    "area:triangle": TriangleArea,
    "area:circle": CircleArea,
    "area:trapezoid": TrapezoidArea,
    "volume:cube": CubeVolume,
    "volume:cylinder": CylinderVolume,
    "volume:sphere": SphereVolume,
    "volume:cone": ConeVolume,
    "volume:pyramid": PyramidVolume,
    "volume:trapezoid_prism": TrapezoidPrismVolume,
    "length": LengthDimensions,
}

_DEFAULT_VARIANTS = {"area": "rectangle", "volume": "cube"}


def resolve_shape(shape: str, dimensions: Mapping[str, Any]) -> str:
    """``("area", {"variant": "circle"})`` and ``"area:circle"`` both → ``"area:circle"``."""
    tag = (shape or "").strip().lower()
    if tag in _DEFAULT_VARIANTS:
        variant = str(dimensions.get("variant") or _DEFAULT_VARIANTS[tag]).strip().lower()
        tag = f"{tag}:{variant}"
    if tag not in SHAPES:
        raise InvalidDimension("shape", f"unsupported shape {shape!r}; expected one of {', '.join(SHAPES)}")
    return tag


def build_dimensions(shape: str, dimensions: Mapping[str, Any]):
    """Instantiate and validate the dimension dataclass for ``shape``."""
    cls = SHAPES[resolve_shape(shape, dimensions)]
    kwargs: Dict[str, Any] = {}
    errors: List[EstimationError] = []
    for f in fields(cls):
        raw = dimensions.get(f.name)
        if raw is None or raw == "":
            if f.default is MISSING:
                errors.append(InvalidDimension(f.name, "is required"))
            continue
        if isinstance(f.default, str) or f.type in (str, "str"):
            kwargs[f.name] = str(raw).strip().upper()
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            errors.append(InvalidDimension(f.name, f"must be a number, got {raw!r}"))
            continue
        if not math.isfinite(value):
            errors.append(InvalidDimension(f.name, f"must be a finite number, got {raw!r}"))
            continue
        if f.type in (int, "int"):
            if not value.is_integer():
                errors.append(InvalidDimension(f.name, f"must be a whole number, got {raw!r}"))
                continue
            value = int(value)
        kwargs[f.name] = value
    raise_if_any(errors)

    dims = cls(**kwargs)
    raise_if_any(dims.validate())
    return dims


def derive_quantities(shape: str, dimensions: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate ``dimensions`` for ``shape`` and return its QuantitySet.

    Raises ValidationAggregate listing every invalid field.
    """
    dims = build_dimensions(shape, dimensions)
    derived = dims.derive()
    quantities = {
        k: (round(v, 4) if isinstance(v, float) else v)
        for k, v in derived["quantities"].items()
    }
    return {
        "shape": dims.shape,
        "variant": getattr(dims, "variant", None) or None,
        "label": dims.label,
        "unit": derived["unit"],
        "primary_quantity": round(derived["primary_quantity"], 4),
        "quantities": quantities,
        "reinforcement": derived.get("reinforcement", {}),
        "dimensions": asdict(dims),
    }
