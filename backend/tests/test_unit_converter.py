"""
test_unit_converter.py — Unit tests for market ↔ base unit conversion.

Tests cover:
  - to_base_price / to_base_quantity arithmetic and factor validation
  - resolve_conversion_factor for self-referential and distinct unit pairs
  - describe_conversion / format_idr display helpers
  - price_breakdown for catalog records
  - granite_box_conversion coverage per box
  - brick_wall_conversion: mortar-joint coverage, presets, mortar volume
"""

import pytest

from app.services.estimation_errors import InvalidConversionFactor
from app.services.unit_converter import (
    BRICK_PRESETS,
    brick_preset_conversion,
    brick_wall_conversion,
    describe_conversion,
    format_idr,
    granite_box_conversion,
    price_breakdown,
    resolve_conversion_factor,
    to_base_price,
    to_base_quantity,
)


class TestBasePrice:

    def test_cement_price_per_kg(self):
        """1 sak = 40 kg @ Rp 65 000 → 65 000 / 40 = 1 625 per kg."""
        assert to_base_price(65_000, 40) == 1_625.0

    def test_truck_sand_price_per_m3(self):
        """1 truk = 7 m³ @ Rp 2 650 000 → 378 571.43 per m³."""
        assert abs(to_base_price(2_650_000, 7) - 378_571.4286) < 0.001

    @pytest.mark.parametrize("factor", [0, -1, -0.5])
    def test_non_positive_factor_rejected(self, factor):
        with pytest.raises(InvalidConversionFactor) as exc:
            to_base_price(65_000, factor)
        assert exc.value.field == "conversion_factor"

    @pytest.mark.parametrize("factor", [0.0001, 1.44, 7.0, 40.0, 10.656])
    def test_price_round_trip(self, factor):
        """market_price / f × f == market_price."""
        market_price = 123_456.0
        assert abs(to_base_price(market_price, factor) * factor - market_price) < 1e-6


class TestBaseQuantity:

    def test_sacks_to_kg(self):
        """2 sak × 40 kg = 80 kg."""
        assert to_base_quantity(2, 40) == 80.0

    def test_boxes_to_m2(self):
        """3 dus × 1.44 m² = 4.32 m²."""
        assert abs(to_base_quantity(3, 1.44) - 4.32) < 1e-9


class TestResolveConversionFactor:

    def test_same_unit_is_one(self):
        assert resolve_conversion_factor("kg", "kg") == 1.0

    def test_same_unit_case_insensitive(self):
        assert resolve_conversion_factor("M³", "m³", 1) == 1.0

    def test_same_unit_with_other_factor_rejected(self):
        with pytest.raises(InvalidConversionFactor):
            resolve_conversion_factor("kg", "kg", 40)

    def test_missing_base_unit_is_self_referential(self):
        assert resolve_conversion_factor("sak", None) == 1.0

    def test_distinct_units_keep_factor(self):
        assert resolve_conversion_factor("truk", "m³", 7) == 7.0

    def test_distinct_units_without_factor_default_to_one(self):
        assert resolve_conversion_factor("sak", "kg") == 1.0

    def test_distinct_units_zero_factor_rejected(self):
        with pytest.raises(InvalidConversionFactor) as exc:
            resolve_conversion_factor("sak", "kg", 0, field="materials[0].conversion_factor")
        assert exc.value.field == "materials[0].conversion_factor"


class TestDisplayHelpers:

    def test_describe_integer_factor(self):
        assert describe_conversion("sak", "kg", 40) == "1 sak = 40 kg"

    def test_describe_fractional_factor(self):
        assert describe_conversion("dus", "m²", 1.44) == "1 dus = 1.44 m²"

    def test_format_idr_thousands(self):
        assert format_idr(1_234_567.4) == "Rp 1.234.567"

    def test_format_idr_rounds_half_up_value(self):
        assert format_idr(999.6) == "Rp 1.000"

    def test_format_idr_zero_and_negative(self):
        assert format_idr(0) == "Rp 0"
        assert format_idr(-25_000) == "-Rp 25.000"


class TestPriceBreakdown:

    def test_truck_material(self):
        material = {"market_unit": "truk", "market_price": 2_650_000, "base_unit": "m³",
                    "conversion_factor": 7}
        result = price_breakdown(material)
        assert result["base_price"] == 378_571.43
        assert result["conversion_description"] == "1 truk = 7 m³"
        assert result["base_price_label"] == "Rp 378.571/m³"

    def test_self_referential_material(self):
        result = price_breakdown({"market_unit": "kg", "market_price": 18_000})
        assert result["base_unit"] == "kg"
        assert result["conversion_factor"] == 1.0
        assert result["base_price"] == 18_000.0

    def test_stored_description_preserved(self):
        material = {"market_unit": "sak", "market_price": 65_000, "base_unit": "kg",
                    "conversion_factor": 50, "conversion_description": "Semen Tiga Roda 50 kg"}
        assert price_breakdown(material)["conversion_description"] == "Semen Tiga Roda 50 kg"


class TestGraniteBox:

    def test_default_box(self):
        """4 pcs × 0.6 × 0.6 = 1.44 m² per dus; 1 / 1.44 = 0.6944 dus per m²."""
        result = granite_box_conversion()
        assert result["conversion_factor"] == 1.44
        assert result["area_per_piece_m2"] == 0.36
        assert result["boxes_per_m2"] == 0.6944
        assert result["conversion_description"] == "1 dus = 4 pcs @ 60x60 cm = 1.44 m²"

    def test_custom_box(self):
        """6 pcs × 0.4 × 0.4 = 0.96 m²."""
        assert granite_box_conversion(6, 40, 40)["conversion_factor"] == 0.96

    def test_zero_pieces_rejected(self):
        with pytest.raises(InvalidConversionFactor):
            granite_box_conversion(0)


class TestBrickWallConversion:

    def test_bata_merah_truck(self):
        """
        1000 bata 230x110x50 + 10 mm joint: 0.24 × 0.06 = 0.0144 m² each
        → 14.4 m² per truk, 69.44 bata/m², 1/14.4 = 0.069444 truk/m².
        """
        result = brick_wall_conversion(1000, 230, 50, width_mm=110, mortar_mm=10)
        assert result["conversion_factor"] == 14.4
        assert result["area_per_brick_m2"] == 0.0144
        assert result["bricks_per_m2"] == 69.44
        assert result["packages_per_m2"] == 0.069444
        assert result["conversion_description"] == "1 truk = 1000 bata @ 230x110x50 mm + mortar 10 mm = 14.4 m²"

    def test_mortar_volume(self):
        """(0.23 + 0.05) × 0.01 × 0.11 = 0.000308 m³ per bata × 69.444 = 0.0214 m³/m²."""
        single = brick_wall_conversion(1000, 230, 50, width_mm=110, mortar_mm=10)
        double = brick_wall_conversion(1000, 230, 50, width_mm=110, mortar_mm=10, wall_type="Double")
        assert single["mortar_m3_per_m2"] == 0.0214
        assert single["mortar_m3_total"] == 0.308
        assert double["mortar_m3_per_m2"] == 0.0428
        assert double["wall_type"] == "double"

    def test_waste_grows_coverage(self):
        """14.4 × 1.05 = 15.12 m²; waste 0.72 m²; 1/15.12 = 0.066138 truk/m²."""
        result = brick_wall_conversion(1000, 230, 50, width_mm=110, waste_factor=0.05)
        assert result["conversion_factor"] == 15.12
        assert result["waste_area_m2"] == 0.72
        assert result["packages_per_m2"] == 0.066138

    def test_preset(self):
        """bata ringan 600x100 + 3 mm: 0.603 × 0.103 = 0.062109 m² each."""
        result = brick_preset_conversion("Bata_Ringan", 100, market_unit="m³")
        assert result["preset"] == "bata_ringan"
        assert result["area_per_brick_m2"] == 0.062109
        assert result["conversion_factor"] == pytest.approx(6.2109)
        assert result["market_unit"] == "m³"

    def test_presets_cover_common_units(self):
        assert set(BRICK_PRESETS) == {"bata_merah", "bata_putih", "batako", "bata_ringan"}

    @pytest.mark.parametrize("args, field", [
        ((0, 230, 50), "pieces"),
        ((1000, 0, 50), "brick_size"),
        ((1000, 230, -5), "brick_size"),
        ((1000, float("inf"), 50), "brick_size"),
    ])
    def test_non_positive_inputs_rejected(self, args, field):
        with pytest.raises(InvalidConversionFactor) as exc:
            brick_wall_conversion(*args)
        assert exc.value.field == field

    def test_unknown_wall_type(self):
        with pytest.raises(InvalidConversionFactor) as exc:
            brick_wall_conversion(1000, 230, 50, wall_type="triple")
        assert exc.value.field == "wall_type"

    def test_unknown_preset(self):
        with pytest.raises(InvalidConversionFactor) as exc:
            brick_preset_conversion("bata_emas", 1000)
        assert exc.value.field == "preset"


class TestNonFiniteFactor:

    @pytest.mark.parametrize("factor", [float("nan"), float("inf")])
    def test_resolve_rejects(self, factor):
        with pytest.raises(InvalidConversionFactor):
            resolve_conversion_factor("sak", "kg", factor)

    def test_base_price_rejects_nan(self):
        with pytest.raises(InvalidConversionFactor):
            to_base_price(65_000, float("nan"))
