"""
test_workforce_engine.py — Unit tests for crew formation and labor days.

Tests cover:
  - parse_ratio: valid forms and every rejection path
  - compute_teams: complete teams only, zero-component ratios
  - Lone-worker leniency (0 complete teams still works at baseline)
  - labor_days_needed with zero productivity
  - TeamSizer.plan: leftover workers paid, per-assignment rates
  - TeamSizer.validate: collected errors, never raised
"""

import pytest

from app.services.estimation_errors import InvalidRatio, InvalidWorkerCount, ZeroProductivity
from app.services.workforce_engine import (
    TeamSizer,
    compute_teams,
    daily_labor_cost,
    effective_productivity,
    labor_days_needed,
    parse_ratio,
)


class TestParseRatio:

    @pytest.mark.parametrize("text,expected", [
        ("1:2", (1, 2)), ("2:1", (2, 1)), (" 1 : 1 ", (1, 1)), ("0:1", (0, 1)), ("3:0", (3, 0)),
    ])
    def test_valid(self, text, expected):
        assert parse_ratio(text) == expected

    @pytest.mark.parametrize("text", ["0:0", "1", "1:2:3", "a:b", "-1:2", "", None, "1.5:2"])
    def test_invalid(self, text):
        with pytest.raises(InvalidRatio):
            parse_ratio(text)

    def test_field_carried(self):
        with pytest.raises(InvalidRatio) as exc:
            parse_ratio("x", field="sub_works[1].workers.ratio")
        assert exc.value.field == "sub_works[1].workers.ratio"


class TestComputeTeams:

    def test_balanced_crew(self):
        """1:2 with 2 tukang / 4 pekerja → min(2, 2) = 2 teams."""
        assert compute_teams(2, 4, 1, 2) == 2

    def test_limited_by_pekerja(self):
        """1:2 with 3 tukang / 4 pekerja → min(3, 2) = 2 teams."""
        assert compute_teams(3, 4, 1, 2) == 2

    def test_single_tukang_ratio(self):
        """1:0 with 1 tukang and no pekerja → 1 team."""
        assert compute_teams(1, 0, 1, 0) == 1

    def test_tukang_only_ratio(self):
        """1:0 with 3 tukang → 3 teams; pekerja count irrelevant."""
        assert compute_teams(3, 5, 1, 0) == 3

    def test_pekerja_only_ratio(self):
        """0:1 with 4 pekerja → 4 teams."""
        assert compute_teams(0, 4, 0, 1) == 4

    def test_incomplete_team(self):
        """1:2 with 1 tukang / 1 pekerja → 0 complete teams."""
        assert compute_teams(1, 1, 1, 2) == 0

    def test_zero_zero_ratio_rejected(self):
        with pytest.raises(InvalidRatio):
            compute_teams(1, 1, 0, 0)


class TestProductivityAndDays:

    def test_effective_productivity_scales_with_teams(self):
        assert effective_productivity(3.0, 2) == 6.0

    def test_lone_worker_keeps_baseline(self):
        assert effective_productivity(3.0, 0) == 3.0

    def test_days(self):
        """0.9 m³ at 3 m³/day → 0.3 days."""
        assert labor_days_needed(0.9, 3.0) == pytest.approx(0.3)

    def test_zero_productivity_with_work_raises(self):
        with pytest.raises(ZeroProductivity):
            labor_days_needed(1.0, 0.0)

    def test_zero_productivity_without_work_is_zero_days(self):
        assert labor_days_needed(0.0, 0.0) == 0.0

    def test_daily_cost(self):
        """1 × 150 000 + 2 × 135 000 = 420 000."""
        assert daily_labor_cost(1, 2, 150_000, 135_000) == 420_000


class TestTeamSizerPlan:

    def test_plan_with_leftover_tukang(self, team_sizer):
        """
        3 tukang, 4 pekerja, 1:2, base 3 m³/day, 0.9 m³:
          teams 2 → productivity 6 → 0.15 days
          daily 3 × 150 000 + 4 × 135 000 = 990 000 → labor 148 500
        """
        plan = team_sizer.plan({"tukang": 3, "pekerja": 4, "ratio": "1:2"}, 3.0, 0.9)
        assert plan["teams"] == 2
        assert plan["leftover_tukang"] == 1
        assert plan["leftover_pekerja"] == 0
        assert plan["effective_productivity"] == 6.0
        assert plan["days"] == pytest.approx(0.15)
        assert plan["daily_labor_cost"] == 990_000
        assert plan["labor_cost"] == pytest.approx(148_500)
        assert plan["summary"] == "2 tim (1 tukang : 2 pekerja), sisa 1 tukang dan 0 pekerja"

    def test_plan_exact_crew(self, team_sizer):
        plan = team_sizer.plan({"tukang": 1, "pekerja": 2, "ratio": "1:2"}, 3.0, 0.9)
        assert plan["teams"] == 1
        assert plan["labor_cost"] == pytest.approx(126_000)
        assert plan["summary"] == "1 tim (1 tukang : 2 pekerja)"

    def test_lone_tukang_plan(self, team_sizer):
        """1 tukang, 0 pekerja at 1:2 → 0 teams, baseline 3 m³/day, paid 150 000/day."""
        plan = team_sizer.plan({"tukang": 1, "pekerja": 0, "ratio": "1:2"}, 3.0, 0.9)
        assert plan["teams"] == 0
        assert plan["effective_productivity"] == 3.0
        assert plan["labor_cost"] == pytest.approx(45_000)

    def test_assignment_rates_override_defaults(self, team_sizer):
        """1 × 200 000 + 1 × 100 000 = 300 000 per day."""
        plan = team_sizer.plan(
            {"tukang": 1, "pekerja": 1, "ratio": "1:1", "rate_tukang": 200_000, "rate_pekerja": 100_000},
            10.0, 20.0,
        )
        assert plan["daily_labor_cost"] == 300_000
        assert plan["days"] == 2.0
        assert plan["labor_cost"] == 600_000

    def test_missing_ratio_uses_default(self, team_sizer):
        plan = team_sizer.plan({"tukang": 2, "pekerja": 2}, 1.0, 1.0)
        assert plan["ratio"] == "1:1"
        assert plan["teams"] == 2

    def test_configured_rates_used_without_arguments(self, monkeypatch):
        from app.services import config
        monkeypatch.setattr(config, "TUKANG_DAILY_RATE", 175_000.0)
        monkeypatch.setattr(config, "PEKERJA_DAILY_RATE", 125_000.0)
        sizer = TeamSizer()
        assert (sizer.rate_tukang, sizer.rate_pekerja) == (175_000.0, 125_000.0)


class TestTeamSizerValidate:

    def test_valid_crew_no_errors(self, team_sizer):
        assert team_sizer.validate({"tukang": 1, "pekerja": 2, "ratio": "1:2"}) == []

    def test_all_errors_collected(self, team_sizer):
        errors = team_sizer.validate({"tukang": 0, "pekerja": 0, "ratio": "0:0"}, prefix="sub_works[0].workers")
        assert [type(e) for e in errors] == [InvalidRatio, InvalidWorkerCount]
        assert errors[0].field == "sub_works[0].workers.ratio"
        assert errors[1].field == "sub_works[0].workers"

    def test_negative_counts(self, team_sizer):
        errors = team_sizer.validate({"tukang": -1, "pekerja": 2, "ratio": "1:2"})
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidWorkerCount)
