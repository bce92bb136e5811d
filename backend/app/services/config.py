"""
Estimator configuration — single source of truth for numeric defaults.

Deployment-specific values (daily wages, default margins) can be overridden
through environment variables; everything else is a fixed engineering
constant.  Import from here rather than hardcoding values in services.
"""
from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# ── Labor ─────────────────────────────────────────────────────────────────────

# Daily wage in IDR for a skilled worker (tukang) and a laborer (pekerja)
TUKANG_DAILY_RATE: float = _env_float("RAB_TUKANG_DAILY_RATE", 150_000.0)
PEKERJA_DAILY_RATE: float = _env_float("RAB_PEKERJA_DAILY_RATE", 135_000.0)

DEFAULT_WORKER_RATIO: str = "1:1"


# ── Commercial ────────────────────────────────────────────────────────────────

DEFAULT_WASTE_FACTOR: float = _env_float("RAB_DEFAULT_WASTE_FACTOR", 0.05)
DEFAULT_PROFIT_PERCENTAGE: float = _env_float("RAB_DEFAULT_PROFIT_PERCENTAGE", 0.20)


# ── Concrete ──────────────────────────────────────────────────────────────────

# Material rates in the catalog are configured for this mix grade
BASELINE_CONCRETE_GRADE: str = os.getenv("RAB_BASELINE_GRADE", "K225")


# ── Reinforcement ─────────────────────────────────────────────────────────────

REBAR_BAR_LENGTH_M: float = 12.0
