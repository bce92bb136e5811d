"""
CostComposer — HPP / RAB composition for construction sub-works.

Covers:
  - Up-front validation of every sub-work, material and crew (all errors at once)
  - Labor cost from crew daily cost × labor days (TeamSizer)
  - Material cost from market price × market quantity, with waste allowance
  - Concrete-grade adjustment of cement / sand / gravel rates (Beton only)
  - HPP (cost) and RAB (price) per sub-work and in total
  - Critical-path duration (sub-works run as parallel crews)
  - One-shot estimate: geometry → default or stored sub-works → cost

All monetary values are IDR.  Results are plain dicts; inputs are never mutated.
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from app.services import config
from app.services.concrete_quality import MaterialQualityAdjuster, normalize_grade
from app.services.default_materials import STRUCTURAL_SHAPES, structural_sub_works
from app.services.estimation_errors import (
    EstimationError,
    InvalidConversionFactor,
    InvalidDimension,
    InvalidPercentage,
    MissingConfiguration,
    UnknownConcreteGrade,
    ZeroProductivity,
    raise_if_any,
)
from app.services.quantity_engine import derive_quantities
from app.services.unit_converter import (
    describe_conversion,
    resolve_conversion_factor,
    to_base_price,
    to_base_quantity,
)
from app.services.workforce_engine import TeamSizer

logger = logging.getLogger("rab-engine")


def _finite(value: Any) -> Optional[float]:
    """``float(value)`` when it is a finite number, else None."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _money(value: float) -> float:
    return round(value, 2)


def _qty(value: float) -> float:
    return round(value, 4)


class CostComposer:
    """
    Combines quantities, material lists and crews into an itemized cost table.

    Each sub-work input is a dict:
        name            "Beton"
        required_quantity | quantity_key   (key into a QuantitySet)
        unit            "m³"
        productivity    output units per team per day
        grade_adjusted  rescale cement/sand/gravel by concrete grade
                        (defaults to True for a sub-work named "Beton")
        workers         {tukang, pekerja, ratio, rate_tukang?, rate_pekerja?}
        materials       [{name, market_unit, market_price, quantity_per_unit,
                          base_unit, conversion_factor, ...}]
    """

    def __init__(
        self,
        team_sizer: Optional[TeamSizer] = None,
        quality_adjuster: Optional[MaterialQualityAdjuster] = None,
    ) -> None:
        self.team_sizer = team_sizer or TeamSizer()
        self.quality_adjuster = quality_adjuster or MaterialQualityAdjuster()

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    @staticmethod
    def _required_quantity(sub_work: Mapping[str, Any],
                           quantities: Optional[Mapping[str, Any]]) -> Optional[float]:
        if sub_work.get("required_quantity") is not None:
            return float(sub_work["required_quantity"])
        if not quantities:
            return None
        key = sub_work.get("quantity_key")
        if key:
            value = (quantities.get("quantities") or {}).get(key)
            return None if value is None else float(value)
        primary = quantities.get("primary_quantity")
        return None if primary is None else float(primary)

    @staticmethod
    def _is_grade_adjusted(sub_work: Mapping[str, Any]) -> bool:
        flag = sub_work.get("grade_adjusted")
        if flag is None:
            return str(sub_work.get("name", "")).strip().lower() == "beton"
        return bool(flag)

    def _validate_material(self, material: Mapping[str, Any], prefix: str) -> List[EstimationError]:
        errors: List[EstimationError] = []
        rate = _finite(material.get("quantity_per_unit"))
        if rate is None or rate < 0:
            errors.append(InvalidDimension(
                f"{prefix}.quantity_per_unit", f"must be a finite number >= 0, got {material.get('quantity_per_unit')}"
            ))
        price = material.get("market_price")
        if price is not None and (_finite(price) is None or float(price) < 0):
            errors.append(InvalidDimension(f"{prefix}.market_price", f"must be a finite number >= 0, got {price}"))
        try:
            resolve_conversion_factor(
                material.get("market_unit"),
                material.get("base_unit"),
                material.get("conversion_factor"),
                field=f"{prefix}.conversion_factor",
            )
        except InvalidConversionFactor as e:
            errors.append(e)
        return errors

    def validate(
        self,
        sub_works: List[Mapping[str, Any]],
        concrete_quality: str,
        waste_factor: float,
        profit_percentage: float,
        quantities: Optional[Mapping[str, Any]] = None,
    ) -> List[EstimationError]:
        """Every violation across the whole calculation, in input order."""
        errors: List[EstimationError] = []
        if not sub_works:
            errors.append(MissingConfiguration("sub_works", "at least one sub-work is required"))
        try:
            normalize_grade(concrete_quality)
        except UnknownConcreteGrade as e:
            errors.append(e)
        waste = _finite(waste_factor)
        if waste is None or not (0 <= waste <= 1):
            errors.append(InvalidPercentage("waste_factor", f"must be between 0 and 1, got {waste_factor}"))
        profit = _finite(profit_percentage)
        if profit is None or profit < 0:
            errors.append(InvalidPercentage(
                "profit_percentage", f"must be a finite number >= 0, got {profit_percentage}"
            ))

        for i, sub_work in enumerate(sub_works or []):
            prefix = f"sub_works[{i}]"
            try:
                required = self._required_quantity(sub_work, quantities)
            except (TypeError, ValueError):
                required = math.nan
            if required is None:
                errors.append(MissingConfiguration(f"{prefix}.required_quantity", "is required"))
            elif not math.isfinite(required) or required <= 0:
                errors.append(InvalidDimension(f"{prefix}.required_quantity", f"must be > 0, got {required}"))

            productivity = sub_work.get("productivity")
            if productivity is not None and _finite(productivity) is None:
                errors.append(InvalidDimension(f"{prefix}.productivity", f"must be a finite number, got {productivity}"))
            elif productivity is None or float(productivity) <= 0:
                errors.append(ZeroProductivity(f"{prefix}.productivity", f"must be > 0, got {productivity}"))

            workers = sub_work.get("workers") or {}
            errors.extend(self.team_sizer.validate(workers, prefix=f"{prefix}.workers"))
            for rate_key in ("rate_tukang", "rate_pekerja"):
                rate = workers.get(rate_key)
                if rate is not None and (_finite(rate) is None or float(rate) < 0):
                    errors.append(InvalidDimension(f"{prefix}.workers.{rate_key}", f"must be a finite number >= 0, got {rate}"))

            for j, material in enumerate(sub_work.get("materials") or []):
                errors.extend(self._validate_material(material, f"{prefix}.materials[{j}]"))
        return errors

    # -----------------------------------------------------------------------
    # Composition
    # -----------------------------------------------------------------------

    def _material_line(self, material: Mapping[str, Any], required: float,
                       waste_factor: float) -> Dict[str, Any]:
        market_unit = material.get("market_unit") or material.get("unit") or ""
        base_unit = material.get("base_unit") or market_unit
        factor = resolve_conversion_factor(market_unit, base_unit, material.get("conversion_factor"))
        market_price = float(material.get("market_price") or 0.0)
        configured_rate = float(material.get("base_quantity_per_unit", material.get("quantity_per_unit") or 0.0))
        rate = float(material.get("quantity_per_unit") or 0.0)

        quantity = rate * required * (1 + waste_factor)
        cost = quantity * market_price
        return {
            "material_id": material.get("material_id"),
            "name": material.get("name"),
            "is_primary": bool(material.get("is_primary", True)),
            "market_unit": market_unit,
            "market_price": _money(market_price),
            "base_unit": base_unit,
            "conversion_factor": factor,
            "conversion_description": material.get("conversion_description")
                or describe_conversion(market_unit, base_unit, factor),
            "base_price": _money(to_base_price(market_price, factor)),
            "quantity_per_unit": _qty(configured_rate),
            "adjustment_factor": round(material.get("adjustment_factor", 1.0), 4),
            "adjusted_quantity_per_unit": _qty(rate),
            "quantity": _qty(quantity),
            "base_quantity": _qty(to_base_quantity(quantity, factor)),
            "cost": _money(cost),
            "_cost": cost,
        }

    def _compose_sub_work(self, sub_work: Mapping[str, Any], required: float, grade: str,
                          waste_factor: float, profit_percentage: float) -> Dict[str, Any]:
        productivity = float(sub_work["productivity"])
        crew = self.team_sizer.plan(sub_work.get("workers") or {}, productivity, required)

        materials = list(sub_work.get("materials") or [])
        grade_adjusted = self._is_grade_adjusted(sub_work)
        if grade_adjusted:
            materials = self.quality_adjuster.adjust_materials(materials, grade)

        lines = [self._material_line(m, required, waste_factor) for m in materials]
        material_cost = sum(line.pop("_cost") for line in lines)
        labor_cost = crew["labor_cost"]
        hpp = labor_cost + material_cost
        rab = hpp * (1 + profit_percentage)

        return {
            "name": sub_work.get("name"),
            "unit": sub_work.get("unit"),
            "required_quantity": _qty(required),
            "productivity": productivity,
            "grade_adjusted": grade_adjusted,
            "crew": {k: (_qty(v) if isinstance(v, float) else v) for k, v in crew.items()},
            "days": _qty(crew["days"]),
            "days_rounded": math.ceil(round(crew["days"], 9)),
            "labor_cost": _money(labor_cost),
            "materials": lines,
            "material_cost": _money(material_cost),
            "hpp": _money(hpp),
            "rab": _money(rab),
            "profit": _money(rab - hpp),
            "_raw": {"labor_cost": labor_cost, "material_cost": material_cost,
                     "hpp": hpp, "rab": rab, "days": crew["days"]},
        }

    def compute_cost(
        self,
        sub_works: List[Mapping[str, Any]],
        concrete_quality: Optional[str] = None,
        waste_factor: Optional[float] = None,
        profit_percentage: Optional[float] = None,
        quantities: Optional[Mapping[str, Any]] = None,
        project_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Itemized HPP/RAB for a list of sub-works.

        Raises ValidationAggregate before any arithmetic if any input is invalid.

        Per sub-work:
            labor_cost    = (tukang×rate_t + pekerja×rate_p) × required / effective_productivity
            material qty  = adjusted_rate × required × (1 + waste)
            material cost = qty × market_price
            hpp           = labor_cost + Σ material cost
            rab           = hpp × (1 + profit)
        Totals sum each column; days = slowest sub-work.
        """
        started = time.perf_counter()
        concrete_quality = concrete_quality or config.BASELINE_CONCRETE_GRADE
        waste_factor = config.DEFAULT_WASTE_FACTOR if waste_factor is None else waste_factor
        profit_percentage = (
            config.DEFAULT_PROFIT_PERCENTAGE if profit_percentage is None else profit_percentage
        )

        raise_if_any(self.validate(sub_works, concrete_quality, waste_factor,
                                   profit_percentage, quantities))
        grade = normalize_grade(concrete_quality)

        composed = [
            self._compose_sub_work(sw, self._required_quantity(sw, quantities), grade,
                                   waste_factor, profit_percentage)
            for sw in sub_works
        ]
        raw = [sw.pop("_raw") for sw in composed]

        labor_total = sum(r["labor_cost"] for r in raw)
        material_total = sum(r["material_cost"] for r in raw)
        hpp_total = sum(r["hpp"] for r in raw)
        rab_total = sum(r["rab"] for r in raw)
        days = max(r["days"] for r in raw)

        result = {
            "project_name": project_name,
            "concrete_quality": grade,
            "waste_factor": waste_factor,
            "profit_percentage": profit_percentage,
            "sub_works": composed,
            "totals": {
                "material_cost": _money(material_total),
                "labor_cost": _money(labor_total),
                "hpp": _money(hpp_total),
                "rab": _money(rab_total),
                "profit": _money(rab_total - hpp_total),
                "days": _qty(days),
                "days_rounded": math.ceil(round(days, 9)),
            },
            "calculated_at": datetime.now(timezone.utc).isoformat(),
        }
        if quantities:
            result["shape"] = quantities.get("shape")
            result["quantities"] = quantities

        logger.debug(
            "cost composed",
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return result

    def estimate(
        self,
        shape: str,
        dimensions: Mapping[str, Any],
        sub_works: Optional[List[Mapping[str, Any]]] = None,
        concrete_quality: Optional[str] = None,
        waste_factor: Optional[float] = None,
        profit_percentage: Optional[float] = None,
        project_name: Optional[str] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Geometry to priced result in one call.

        Beam and footplate fall back to the default Beton / Bekisting / Besi
        sub-works when none are given; other shapes need explicit sub-works.
        """
        quantity_set = derive_quantities(shape, dimensions)
        if sub_works is None:
            if quantity_set["shape"] in STRUCTURAL_SHAPES:
                sub_works = structural_sub_works(quantity_set, overrides)
            else:
                sub_works = []
        return self.compute_cost(
            sub_works,
            concrete_quality=concrete_quality,
            waste_factor=waste_factor,
            profit_percentage=profit_percentage,
            quantities=quantity_set,
            project_name=project_name,
        )
