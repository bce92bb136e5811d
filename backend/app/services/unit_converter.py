"""
unit_converter.py — Market unit ↔ base unit conversion for catalog materials.

A material is bought in a market unit (sak, truk, dus, lonjor, bendel) and
used in engineering calculations in a base unit (kg, m³, m², batang).  The
stored ``conversion_factor`` says how many base units one market unit holds:

    1 sak semen = 40 kg        → factor 40
    1 truk pasir = 7 m³        → factor 7
    1 dus granit 60x60 (4 pcs) → factor 1.44 (m²)

Pure arithmetic, no side effects.
"""

import math
from typing import Any, Dict, Mapping, Optional

from app.services.estimation_errors import InvalidConversionFactor, InvalidPercentage


# ---------------------------------------------------------------------------
# Common market packages
# ---------------------------------------------------------------------------
SAK_CEMENT_KG: float = 40.0
TRUCK_SAND_M3: float = 7.0
DUMP_GRAVEL_M3: float = 3.0

# Masonry units: (length, width, height) mm, mortar joint mm
BRICK_PRESETS: Dict[str, Dict[str, Any]] = {
    "bata_merah": {"label": "Bata Merah Standar", "length_mm": 230, "width_mm": 110,
                   "height_mm": 50, "mortar_mm": 10},
    "bata_putih": {"label": "Batu Bata Kapur Putih", "length_mm": 370, "width_mm": 220,
                   "height_mm": 90, "mortar_mm": 10},
    "batako": {"label": "Batako / Bata Beton", "length_mm": 390, "width_mm": 190,
               "height_mm": 190, "mortar_mm": 15},
    "bata_ringan": {"label": "Bata Ringan AAC", "length_mm": 600, "width_mm": 200,
                    "height_mm": 100, "mortar_mm": 3},
}
WALL_TYPES = ("single", "double")

# Granite/ceramic box defaults: 4 tiles of 60x60 cm per box
DEFAULT_TILES_PER_BOX: int = 4
DEFAULT_TILE_WIDTH_CM: float = 60.0
DEFAULT_TILE_HEIGHT_CM: float = 60.0


def _positive(value: Any) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


def _same_unit(market_unit: Optional[str], base_unit: Optional[str]) -> bool:
    if not market_unit or not base_unit:
        return False
    return market_unit.strip().lower() == base_unit.strip().lower()


def to_base_price(market_price: float, conversion_factor: float,
                  field: str = "conversion_factor") -> float:
    """Price per base unit: market_price / conversion_factor."""
    if conversion_factor is None or not _positive(conversion_factor):
        raise InvalidConversionFactor(field, f"must be > 0, got {conversion_factor}")
    return float(market_price) / float(conversion_factor)


def to_base_quantity(market_quantity: float, conversion_factor: float) -> float:
    """Quantity in base units: market_quantity × conversion_factor."""
    return float(market_quantity) * float(conversion_factor)


def resolve_conversion_factor(
    market_unit: Optional[str],
    base_unit: Optional[str],
    conversion_factor: Optional[float] = None,
    field: str = "conversion_factor",
) -> float:
    """
    Return the effective conversion factor for a market/base unit pair.

    A self-referential pair (kg → kg) always resolves to 1; any other factor
    on such a pair is rejected.  A missing factor on a distinct pair also
    defaults to 1 so a freshly created material stays usable.
    """
    if _same_unit(market_unit, base_unit) or not base_unit:
        if conversion_factor is not None and not math.isclose(float(conversion_factor), 1.0):
            raise InvalidConversionFactor(
                field, f"must be 1 when base unit equals market unit ({market_unit})"
            )
        return 1.0
    if conversion_factor is None:
        return 1.0
    if not _positive(conversion_factor):
        raise InvalidConversionFactor(field, f"must be > 0, got {conversion_factor}")
    return float(conversion_factor)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


def describe_conversion(market_unit: str, base_unit: str, conversion_factor: float) -> str:
    """Human text such as ``"1 sak = 40 kg"``."""
    return f"1 {market_unit} = {_format_number(conversion_factor)} {base_unit}"


def format_idr(amount: float) -> str:
    """Rupiah with zero decimals and dot thousands separators: ``Rp 1.234.567``."""
    rounded = int(round(amount))
    body = f"{abs(rounded):,}".replace(",", ".")
    return f"-Rp {body}" if rounded < 0 else f"Rp {body}"


def price_breakdown(material: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Market and base price for a material record.

    ``material`` needs ``market_price`` and ``market_unit``; ``base_unit`` and
    ``conversion_factor`` fall back to a self-referential conversion.
    """
    market_unit = material.get("market_unit") or material.get("unit") or ""
    base_unit = material.get("base_unit") or market_unit
    factor = resolve_conversion_factor(market_unit, base_unit, material.get("conversion_factor"))
    market_price = float(material.get("market_price") or 0.0)
    base_price = to_base_price(market_price, factor)
    return {
        "market_unit": market_unit,
        "market_price": round(market_price, 2),
        "base_unit": base_unit,
        "base_price": round(base_price, 2),
        "conversion_factor": factor,
        "conversion_description": material.get("conversion_description")
            or describe_conversion(market_unit, base_unit, factor),
        "market_price_label": f"{format_idr(market_price)}/{market_unit}",
        "base_price_label": f"{format_idr(base_price)}/{base_unit}",
    }


def granite_box_conversion(
    pieces_per_box: int = DEFAULT_TILES_PER_BOX,
    width_cm: float = DEFAULT_TILE_WIDTH_CM,
    height_cm: float = DEFAULT_TILE_HEIGHT_CM,
) -> Dict[str, Any]:
    """
    Coverage of one box of tiles.

    area_per_piece = w × h / 10 000 (m²); m² per box = pieces × area_per_piece.
    Default 4 × 60x60 → 1.44 m² per dus, 0.6944 dus per m².
    """
    if pieces_per_box <= 0:
        raise InvalidConversionFactor("pieces_per_box", "must be > 0")
    if width_cm <= 0 or height_cm <= 0:
        raise InvalidConversionFactor("tile_size", "width and height must be > 0")
    area_per_piece = width_cm * height_cm / 10_000.0
    coverage = pieces_per_box * area_per_piece
    return {
        "conversion_factor": round(coverage, 4),
        "base_unit": "m²",
        "area_per_piece_m2": round(area_per_piece, 4),
        "boxes_per_m2": round(1.0 / coverage, 4),
        "conversion_description": (
            f"1 dus = {pieces_per_box} pcs @ {_format_number(width_cm)}x"
            f"{_format_number(height_cm)} cm = {_format_number(round(coverage, 4))} m²"
        ),
    }


def brick_wall_conversion(
    pieces: int,
    length_mm: float,
    height_mm: float,
    width_mm: float = 0.0,
    mortar_mm: float = 10.0,
    waste_factor: float = 0.0,
    wall_type: str = "single",
    market_unit: str = "truk",
) -> Dict[str, Any]:
    """
    Wall coverage of one package of ``pieces`` bricks, mortar joints included.

    Each brick lays (length + joint) × (height + joint); a package covers
    pieces × that area, grown by ``waste_factor``.  ``conversion_factor`` is
    m² of wall per package (catalog direction, like a dus of granite) and
    ``packages_per_m2`` its inverse.

    Mortar per m² = (length + height) × joint × width × bricks per m²,
    doubled for a double-skin wall.
    """
    if not _positive(pieces):
        raise InvalidConversionFactor("pieces", f"must be > 0, got {pieces}")
    if not _positive(length_mm) or not _positive(height_mm):
        raise InvalidConversionFactor("brick_size", "length and height must be > 0")
    if width_mm is None or not math.isfinite(width_mm) or width_mm < 0:
        raise InvalidConversionFactor("width_mm", f"must be >= 0, got {width_mm}")
    if mortar_mm is None or not math.isfinite(mortar_mm) or mortar_mm < 0:
        raise InvalidConversionFactor("mortar_mm", f"must be >= 0, got {mortar_mm}")
    if waste_factor is None or not math.isfinite(waste_factor) or not (0 <= waste_factor <= 1):
        raise InvalidPercentage("waste_factor", f"must be between 0 and 1, got {waste_factor}")
    wall = (wall_type or "single").strip().lower()
    if wall not in WALL_TYPES:
        raise InvalidConversionFactor("wall_type", f"expected one of {', '.join(WALL_TYPES)}, got {wall_type!r}")

    length_m, height_m = length_mm / 1000.0, height_mm / 1000.0
    width_m, joint_m = width_mm / 1000.0, mortar_mm / 1000.0
    area_per_brick = (length_m + joint_m) * (height_m + joint_m)
    bricks_per_m2 = 1.0 / area_per_brick
    area_base = pieces * area_per_brick
    area_with_waste = area_base * (1 + waste_factor)

    mortar_per_brick = (length_m + height_m) * joint_m * width_m
    mortar_per_m2 = mortar_per_brick * bricks_per_m2 * (2 if wall == "double" else 1)

    return {
        "conversion_factor": round(area_with_waste, 4),
        "base_unit": "m²",
        "market_unit": market_unit,
        "packages_per_m2": round(1.0 / area_with_waste, 6),
        "bricks_per_m2": round(bricks_per_m2, 2),
        "area_per_brick_m2": round(area_per_brick, 6),
        "area_base_m2": round(area_base, 4),
        "waste_area_m2": round(area_with_waste - area_base, 4),
        "mortar_m3_per_m2": round(mortar_per_m2, 4),
        "mortar_m3_total": round(mortar_per_m2 * area_with_waste, 4),
        "wall_type": wall,
        "conversion_description": (
            f"1 {market_unit} = {pieces} bata @ {_format_number(length_mm)}x"
            f"{_format_number(width_mm)}x{_format_number(height_mm)} mm + mortar "
            f"{_format_number(mortar_mm)} mm = {_format_number(round(area_with_waste, 4))} m²"
        ),
    }


def brick_preset_conversion(preset: str, pieces: int, waste_factor: float = 0.0,
                            wall_type: str = "single", market_unit: str = "truk") -> Dict[str, Any]:
    """``brick_wall_conversion`` with the unit size and joint of a named preset."""
    key = (preset or "").strip().lower()
    if key not in BRICK_PRESETS:
        raise InvalidConversionFactor("preset", f"unknown brick preset {preset!r}; expected one of {', '.join(BRICK_PRESETS)}")
    p = BRICK_PRESETS[key]
    result = brick_wall_conversion(
        pieces, p["length_mm"], p["height_mm"], width_mm=p["width_mm"], mortar_mm=p["mortar_mm"],
        waste_factor=waste_factor, wall_type=wall_type, market_unit=market_unit,
    )
    return {"preset": key, "label": p["label"], **result}
