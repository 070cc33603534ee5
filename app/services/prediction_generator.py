"""
Prediction slot generation and tier pricing
"""

import logging
import re
import uuid
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from app.core.errors import InvalidPricingTier, InvalidPrediction, InvalidRange
from app.models.enums import PricingModel
from app.schemas import GeneratedPrediction, PriceTier

# Configure logging
logger = logging.getLogger(__name__)

FLAT_PRICE_TIER_ID = "flat_price"


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_tiers(raw_tiers: Optional[Iterable]) -> List[PriceTier]:
    """
    Build PriceTier objects from stored tier dicts, filling in missing ids.

    Missing ids are derived from the tier's position and name, e.g.
    ``tier_2_high_range``.
    """
    tiers = []
    for index, raw in enumerate(raw_tiers or []):
        tier = raw if isinstance(raw, PriceTier) else PriceTier.model_validate(raw)
        if not tier.id:
            slug = re.sub(r"\s+", "_", tier.name.strip()).lower()
            tier = tier.model_copy(update={"id": f"tier_{index + 1}_{slug}"})
        tiers.append(tier)
    return tiers


def validate_tiers(tiers: Sequence[PriceTier]) -> List[PriceTier]:
    """
    Validate active tiers and return them sorted by their lower bound.

    Raises:
        InvalidPricingTier: a tier has min > max, a negative price, or two
            active tiers overlap.
    """
    active = sorted((t for t in tiers if t.is_active), key=lambda t: t.min)

    for tier in active:
        if tier.min > tier.max:
            raise InvalidPricingTier(
                f"Tier {tier.name or tier.id} has min greater than max",
                {"min": str(tier.min), "max": str(tier.max)},
            )
        if tier.price_per_prediction < 0:
            raise InvalidPricingTier(f"Tier {tier.name or tier.id} has a negative price")

    for current, following in zip(active, active[1:]):
        if current.max > following.min:
            raise InvalidPricingTier(
                f"Pricing tiers overlap: {current.name or current.id} and {following.name or following.id}"
            )

    return active


def prediction_values(min_value, max_value, increment) -> List[Decimal]:
    """
    Arithmetic sequence from min to max stepped by increment.

    When (max - min) is not a multiple of increment the top endpoint is
    appended as a final, shorter step.

    Raises:
        InvalidRange: min >= max or increment <= 0.
    """
    start = _to_decimal(min_value)
    end = _to_decimal(max_value)
    step = _to_decimal(increment)

    if step <= 0:
        raise InvalidRange("Increment must be greater than zero", {"increment": str(step)})
    if start >= end:
        raise InvalidRange(
            "Min prediction must be lower than max prediction",
            {"min": str(start), "max": str(end)},
        )

    steps = int((end - start) // step)
    values = [start + step * i for i in range(steps + 1)]
    if values[-1] < end:
        values.append(end)
    return values


def find_tier_for_value(value: Decimal, tiers: Sequence[PriceTier]) -> Optional[PriceTier]:
    """First active tier whose [min, max] contains value"""
    for tier in tiers:
        if tier.is_active and tier.min <= value <= tier.max:
            return tier
    return None


def generate_predictions(
    min_value,
    max_value,
    increment,
    entries_per_prediction: int,
    pricing_model,
    flat_price=Decimal("0"),
    tiers: Optional[Iterable] = None,
) -> List[GeneratedPrediction]:
    """
    Expand a contest's prediction range into priced prediction slots.

    Args:
        min_value: Lowest prediction value
        max_value: Highest prediction value
        increment: Step between consecutive slots
        entries_per_prediction: Capacity of every slot
        pricing_model: PricingModel (or its value) selecting flat or tier pricing
        flat_price: Price of every slot for the priceOnly model
        tiers: Price bands for the tier and percentage models

    Returns:
        Ordered list of slots. Values no tier covers are omitted, so the list
        can be partial or empty; an empty list means the contest cannot be
        published.

    Raises:
        InvalidRange: bad range/increment or entries_per_prediction < 1
        InvalidPricingTier: overlapping or malformed tiers
    """
    model = PricingModel(pricing_model)
    if entries_per_prediction is None or entries_per_prediction < 1:
        raise InvalidRange("Number of entries per prediction must be at least 1")

    values = prediction_values(min_value, max_value, increment)

    price_tiers: List[PriceTier] = []
    if model is not PricingModel.PRICE_ONLY:
        price_tiers = validate_tiers(parse_tiers(tiers))
    else:
        flat_price = _to_decimal(flat_price or 0)
        if flat_price < 0:
            raise InvalidPricingTier("Flat price cannot be negative")

    generated: List[GeneratedPrediction] = []
    skipped = 0
    for value in values:
        if model is PricingModel.PRICE_ONLY:
            tier_id, price = FLAT_PRICE_TIER_ID, flat_price
        else:
            tier = find_tier_for_value(value, price_tiers)
            if tier is None:
                skipped += 1
                logger.warning(f"No {model.value} tier covers prediction value {value}, slot omitted")
                continue
            tier_id, price = tier.id, tier.price_per_prediction

        generated.append(GeneratedPrediction(
            id=uuid.uuid4().hex,
            value=value,
            tier_id=tier_id,
            price=price,
            current_entries=0,
            max_entries=entries_per_prediction,
            is_available=True,
        ))

    logger.info(
        f"Generated {len(generated)} prediction slots ({model.value}) from {len(values)} values, "
        f"{skipped} omitted"
    )
    return generated


def generate_for_contest(contest) -> List[GeneratedPrediction]:
    """Run generate_predictions with a contest's stored configuration"""
    return generate_predictions(
        min_value=contest.min_prediction,
        max_value=contest.max_prediction,
        increment=contest.increment,
        entries_per_prediction=contest.entries_per_prediction,
        pricing_model=contest.pricing_model,
        flat_price=contest.flat_price,
        tiers=contest.tiers,
    )


def resolve_custom_prediction_price(
    value,
    pricing_model,
    min_value,
    increment,
    flat_price=Decimal("0"),
    tiers: Optional[Iterable] = None,
):
    """
    Price a custom (free-value) prediction.

    The value must sit on the contest's increment grid. Tier pricing clamps to
    the first tier below the range, the last tier above it, and the lower
    neighbour when the value falls in a gap between tiers.

    Returns:
        Tuple of (tier_id, price)

    Raises:
        InvalidPrediction: value is off the increment grid
        InvalidPricingTier: a tier-priced contest has no active tiers
    """
    value = _to_decimal(value)
    step = _to_decimal(increment or 1)
    base = _to_decimal(min_value or 0)

    if (value - base) % step != 0:
        raise InvalidPrediction(
            f"Custom prediction value {value} is not valid! Must be on a step of {step}.",
            {"value": str(value), "increment": str(step)},
        )

    if PricingModel(pricing_model) is PricingModel.PRICE_ONLY:
        return FLAT_PRICE_TIER_ID, _to_decimal(flat_price or 0)

    active = validate_tiers(parse_tiers(tiers))
    if not active:
        raise InvalidPricingTier("No tiers found for this contest!")

    first, last = active[0], active[-1]
    if value < first.min:
        return first.id, first.price_per_prediction
    if value > last.max:
        return last.id, last.price_per_prediction

    tier = find_tier_for_value(value, active)
    if tier is None:
        # In a gap between two tiers: the lower neighbour applies
        tier = next(
            (lower for lower, upper in zip(active, active[1:]) if lower.max < value < upper.min),
            last,
        )
    return tier.id, tier.price_per_prediction
