"""
Unit tests for prediction slot generation and tier pricing
"""

import pytest
from decimal import Decimal

from app.core.errors import InvalidPricingTier, InvalidPrediction, InvalidRange
from app.models.enums import PricingModel
from app.services.prediction_generator import (
    FLAT_PRICE_TIER_ID,
    generate_predictions,
    parse_tiers,
    prediction_values,
    resolve_custom_prediction_price,
    validate_tiers,
)

TIERS = [
    {"id": "low", "name": "Low", "min": 100, "max": 150, "pricePerPrediction": "5", "isActive": True},
    {"id": "high", "name": "High", "min": 151, "max": 200, "pricePerPrediction": "8", "isActive": True},
]


def _values(slots):
    return [slot.value for slot in slots]


class TestPredictionValues:
    """Range expansion"""

    def test_exact_multiple(self):
        assert prediction_values(100, 200, 25) == [Decimal(v) for v in (100, 125, 150, 175, 200)]

    def test_partial_final_step_includes_max(self):
        assert prediction_values(100, 210, 25) == [Decimal(v) for v in (100, 125, 150, 175, 200, 210)]

    def test_fractional_increment(self):
        values = prediction_values(Decimal("1.0"), Decimal("2.0"), Decimal("0.25"))
        assert values == [Decimal("1.0"), Decimal("1.25"), Decimal("1.5"), Decimal("1.75"), Decimal("2.0")]

    @pytest.mark.parametrize("increment", [0, -5])
    def test_non_positive_increment(self, increment):
        with pytest.raises(InvalidRange):
            prediction_values(100, 200, increment)

    @pytest.mark.parametrize("low,high", [(200, 100), (100, 100)])
    def test_min_not_below_max(self, low, high):
        with pytest.raises(InvalidRange):
            prediction_values(low, high, 10)


class TestGeneratePredictions:
    """Slot generation for each pricing model"""

    def test_tier_pricing_covers_range(self):
        slots = generate_predictions(100, 200, 25, 3, PricingModel.TIER, tiers=TIERS)

        assert _values(slots) == [Decimal(v) for v in (100, 125, 150, 175, 200)]
        assert [s.tier_id for s in slots] == ["low", "low", "low", "high", "high"]
        assert [s.price for s in slots] == [Decimal("5")] * 3 + [Decimal("8")] * 2
        assert all(s.max_entries == 3 and s.current_entries == 0 and s.is_available for s in slots)
        assert len({s.id for s in slots}) == len(slots)

    def test_price_only_uses_flat_price(self):
        slots = generate_predictions(100, 200, 50, 1, "priceOnly", flat_price="2.5")

        assert _values(slots) == [Decimal(100), Decimal(150), Decimal(200)]
        assert {s.tier_id for s in slots} == {FLAT_PRICE_TIER_ID}
        assert {s.price for s in slots} == {Decimal("2.5")}

    def test_legacy_model_names_are_accepted(self):
        flat = generate_predictions(100, 200, 50, 1, "flat", flat_price=1)
        tiered = generate_predictions(100, 200, 50, 1, "tieredPercentage", tiers=TIERS)
        assert len(flat) == 3
        assert len(tiered) == 3

    def test_uncovered_values_are_omitted(self):
        tiers = [{"id": "mid", "name": "Mid", "min": 120, "max": 180, "pricePerPrediction": 4}]
        slots = generate_predictions(100, 200, 25, 1, "tier", tiers=tiers)
        assert _values(slots) == [Decimal(125), Decimal(150), Decimal(175)]

    def test_no_covering_tier_gives_empty_list(self):
        tiers = [{"id": "far", "name": "Far", "min": 500, "max": 600, "pricePerPrediction": 4}]
        assert generate_predictions(100, 200, 25, 1, "tier", tiers=tiers) == []

    def test_inactive_tiers_are_ignored(self):
        tiers = [dict(TIERS[0]), dict(TIERS[1], isActive=False)]
        slots = generate_predictions(100, 200, 25, 1, "tier", tiers=tiers)
        assert _values(slots) == [Decimal(100), Decimal(125), Decimal(150)]

    def test_entries_per_prediction_must_be_positive(self):
        with pytest.raises(InvalidRange):
            generate_predictions(100, 200, 25, 0, "tier", tiers=TIERS)

    def test_overlapping_tiers_rejected(self):
        tiers = [
            {"name": "A", "min": 100, "max": 160, "pricePerPrediction": 5},
            {"name": "B", "min": 150, "max": 200, "pricePerPrediction": 8},
        ]
        with pytest.raises(InvalidPricingTier):
            generate_predictions(100, 200, 25, 1, "tier", tiers=tiers)

    def test_to_json_is_serializable(self):
        slot = generate_predictions(100, 200, 100, 1, "priceOnly", flat_price=3)[0]
        data = slot.to_json()
        assert data["value"] == "100"
        assert data["price"] == "3"
        assert data["tier_id"] == FLAT_PRICE_TIER_ID


class TestTiers:
    """Tier parsing and validation"""

    def test_missing_ids_are_derived(self):
        tiers = parse_tiers([
            {"name": "Low Range", "min": 0, "max": 10, "pricePerPrediction": 1},
            {"name": "High", "min": 11, "max": 20, "pricePerPrediction": 2},
        ])
        assert [t.id for t in tiers] == ["tier_1_low_range", "tier_2_high"]

    def test_sorted_by_min(self):
        tiers = validate_tiers(parse_tiers(list(reversed(TIERS))))
        assert [t.id for t in tiers] == ["low", "high"]

    def test_touching_tiers_are_allowed(self):
        tiers = parse_tiers([
            {"id": "a", "min": 0, "max": 10, "pricePerPrediction": 1},
            {"id": "b", "min": 10, "max": 20, "pricePerPrediction": 2},
        ])
        assert len(validate_tiers(tiers)) == 2

    def test_min_above_max(self):
        with pytest.raises(InvalidPricingTier):
            validate_tiers(parse_tiers([{"id": "a", "min": 10, "max": 5, "pricePerPrediction": 1}]))

    def test_negative_price(self):
        with pytest.raises(InvalidPricingTier):
            validate_tiers(parse_tiers([{"id": "a", "min": 0, "max": 5, "pricePerPrediction": -1}]))


class TestCustomPredictionPrice:
    """Pricing of free-value predictions"""

    def _price(self, value, tiers=TIERS):
        return resolve_custom_prediction_price(value, "tier", min_value=100, increment=25, tiers=tiers)

    def test_inside_band(self):
        assert self._price(125) == ("low", Decimal("5"))
        assert self._price(175) == ("high", Decimal("8"))

    def test_below_first_tier_clamps(self):
        assert self._price(50) == ("low", Decimal("5"))

    def test_above_last_tier_clamps(self):
        assert self._price(300) == ("high", Decimal("8"))

    def test_gap_uses_lower_tier(self):
        tiers = [
            {"id": "a", "min": 100, "max": 120, "pricePerPrediction": 1},
            {"id": "b", "min": 180, "max": 200, "pricePerPrediction": 2},
        ]
        assert self._price(150, tiers) == ("a", Decimal("1"))

    def test_off_grid_value_rejected(self):
        with pytest.raises(InvalidPrediction):
            self._price(130)

    def test_no_tiers(self):
        with pytest.raises(InvalidPricingTier):
            self._price(125, tiers=[])

    def test_price_only(self):
        result = resolve_custom_prediction_price(150, "priceOnly", min_value=100, increment=25, flat_price="7")
        assert result == (FLAT_PRICE_TIER_ID, Decimal("7"))
