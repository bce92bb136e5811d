"""
workforce_engine.py — Crew formation and labor-day estimation.

Two worker roles share a site crew: tukang (skilled) and pekerja (laborer).
A sub-work prescribes a ratio "a:b" of tukang to pekerja per team; only
complete teams multiply the baseline productivity.  Workers left over after
forming teams are still paid for every day on site.

Covers:
  - Ratio parsing ("1:2", "0:1")
  - Complete team count and leftover workers per role
  - Effective productivity and labor days
  - Flat daily crew cost
"""

import math
from typing import Any, Dict, Optional, Tuple

from app.services import config
from app.services.estimation_errors import (
    InvalidRatio,
    InvalidWorkerCount,
    ZeroProductivity,
)


def parse_ratio(ratio: str, field: str = "ratio") -> Tuple[int, int]:
    """``"1:2"`` → ``(1, 2)``.  Components must be non-negative integers, not both 0."""
    parts = str(ratio or "").split(":")
    if len(parts) != 2:
        raise InvalidRatio(field, f"expected 'tukang:pekerja', got {ratio!r}")
    try:
        ratio_a, ratio_b = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        raise InvalidRatio(field, f"ratio components must be integers, got {ratio!r}")
    if ratio_a < 0 or ratio_b < 0:
        raise InvalidRatio(field, f"ratio components must be >= 0, got {ratio!r}")
    if ratio_a == 0 and ratio_b == 0:
        raise InvalidRatio(field, "ratio 0:0 requires no workers at all")
    return ratio_a, ratio_b


def compute_teams(role_a_count: int, role_b_count: int, ratio_a: int, ratio_b: int,
                  field: str = "ratio") -> int:
    """
    Number of complete teams.

    1:2 with 2 tukang / 4 pekerja → min(2//1, 4//2) = 2
    1:2 with 3 tukang / 4 pekerja → min(3, 2) = 2
    1:0 with 1 tukang            → 1//1 = 1
    """
    if ratio_a == 0 and ratio_b == 0:
        raise InvalidRatio(field, "ratio 0:0 requires no workers at all")
    if ratio_a == 0:
        return role_b_count // ratio_b
    if ratio_b == 0:
        return role_a_count // ratio_a
    return min(role_a_count // ratio_a, role_b_count // ratio_b)


def effective_productivity(base_productivity: float, teams: int) -> float:
    # Too few workers for a full team still work at the baseline rate
    return base_productivity * teams if teams > 0 else base_productivity


def labor_days_needed(required_quantity: float, productivity: float,
                      field: str = "productivity") -> float:
    if productivity <= 0:
        if required_quantity > 0:
            raise ZeroProductivity(field, "productivity must be > 0 to complete a non-zero quantity")
        return 0.0
    return required_quantity / productivity


def daily_labor_cost(role_a_count: int, role_b_count: int,
                     rate_a: float, rate_b: float) -> float:
    return role_a_count * rate_a + role_b_count * rate_b


class TeamSizer:
    """Plans a crew for one sub-work and prices its labor."""

    def __init__(self, rate_tukang: Optional[float] = None,
                 rate_pekerja: Optional[float] = None) -> None:
        self.rate_tukang = config.TUKANG_DAILY_RATE if rate_tukang is None else rate_tukang
        self.rate_pekerja = config.PEKERJA_DAILY_RATE if rate_pekerja is None else rate_pekerja

    def validate(self, workers: Dict[str, Any], prefix: str = "workers") -> list:
        """Return the list of worker-configuration errors (empty when valid)."""
        errors = []
        try:
            parse_ratio(workers.get("ratio", config.DEFAULT_WORKER_RATIO), f"{prefix}.ratio")
        except InvalidRatio as e:
            errors.append(e)
        tukang = workers.get("tukang", 0) or 0
        pekerja = workers.get("pekerja", 0) or 0
        if not all(isinstance(c, (int, float)) and math.isfinite(c) and float(c).is_integer()
                   for c in (tukang, pekerja)):
            errors.append(InvalidWorkerCount(prefix, "worker counts must be whole numbers"))
        elif tukang < 0 or pekerja < 0:
            errors.append(InvalidWorkerCount(prefix, "worker counts must be >= 0"))
        elif tukang == 0 and pekerja == 0:
            errors.append(InvalidWorkerCount(prefix, "at least one tukang or pekerja is required"))
        return errors

    def plan(self, workers: Dict[str, Any], base_productivity: float,
             required_quantity: float) -> Dict[str, Any]:
        """
        Crew plan for one sub-work.

        ``workers`` keys: tukang, pekerja, ratio, and optional rate_tukang /
        rate_pekerja overriding this sizer's daily rates.
        """
        tukang = int(workers.get("tukang", 0) or 0)
        pekerja = int(workers.get("pekerja", 0) or 0)
        ratio_a, ratio_b = parse_ratio(workers.get("ratio", config.DEFAULT_WORKER_RATIO))
        rate_a = workers.get("rate_tukang")
        rate_b = workers.get("rate_pekerja")
        rate_a = self.rate_tukang if rate_a is None else float(rate_a)
        rate_b = self.rate_pekerja if rate_b is None else float(rate_b)

        teams = compute_teams(tukang, pekerja, ratio_a, ratio_b)
        productivity = effective_productivity(base_productivity, teams)
        days = labor_days_needed(required_quantity, productivity)
        daily_cost = daily_labor_cost(tukang, pekerja, rate_a, rate_b)

        leftover_tukang = tukang - teams * ratio_a
        leftover_pekerja = pekerja - teams * ratio_b
        summary = f"{teams} tim ({ratio_a} tukang : {ratio_b} pekerja)"
        if leftover_tukang or leftover_pekerja:
            summary += f", sisa {leftover_tukang} tukang dan {leftover_pekerja} pekerja"

        return {
            "tukang": tukang,
            "pekerja": pekerja,
            "ratio": f"{ratio_a}:{ratio_b}",
            "teams": teams,
            "leftover_tukang": leftover_tukang,
            "leftover_pekerja": leftover_pekerja,
            "rate_tukang": rate_a,
            "rate_pekerja": rate_b,
            "base_productivity": base_productivity,
            "effective_productivity": productivity,
            "days": days,
            "daily_labor_cost": daily_cost,
            "labor_cost": daily_cost * days,
            "summary": summary,
        }
