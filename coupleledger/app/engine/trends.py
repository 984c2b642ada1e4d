from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.money import HUNDRED, ZERO, to_decimal

# The latest month must move this far (percent of the average) to count
DIRECTION_THRESHOLD_PERCENT = Decimal("1")

# Upper bounds (exclusive) of each strength bucket on |percentage change|
STRENGTH_BUCKETS = (
    (Decimal("5"), "minimal"),
    (Decimal("15"), "weak"),
    (Decimal("30"), "moderate"),
    (Decimal("50"), "strong"),
)
STRONGEST_BUCKET = "very_strong"
INSUFFICIENT_DATA = "insufficient_data"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class TrendSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    strength: str
    percentage_change: Decimal
    normalized_strength: Decimal
    average: Decimal
    latest: Decimal
    data_points: int


def percentage_change(first: Decimal, last: Decimal) -> Decimal:
    if first <= ZERO:
        return ZERO
    return (last - first) / first * HUNDRED


def strength_bucket(change: Decimal) -> str:
    magnitude = abs(change)
    for upper, label in STRENGTH_BUCKETS:
        if magnitude < upper:
            return label
    return STRONGEST_BUCKET


def trend_direction(latest: Decimal, average: Decimal) -> TrendDirection:
    margin = abs(average) * DIRECTION_THRESHOLD_PERCENT / HUNDRED
    if latest > average + margin:
        return TrendDirection.INCREASING
    if latest < average - margin:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def analyze_trend(series: Sequence) -> TrendSummary:
    """
    Classify an ordered monthly spend series. Plain bucketing, no smoothing.
    """
    values = [to_decimal(value, "series") for value in series]
    if not values:
        return TrendSummary(
            direction=TrendDirection.STABLE,
            strength=INSUFFICIENT_DATA,
            percentage_change=ZERO,
            normalized_strength=ZERO,
            average=ZERO,
            latest=ZERO,
            data_points=0,
        )

    average = sum(values, ZERO) / len(values)
    latest = values[-1]
    if len(values) < 2:
        return TrendSummary(
            direction=TrendDirection.STABLE,
            strength=INSUFFICIENT_DATA,
            percentage_change=ZERO,
            normalized_strength=ZERO,
            average=average,
            latest=latest,
            data_points=1,
        )

    change = percentage_change(values[0], latest)
    return TrendSummary(
        direction=trend_direction(latest, average),
        strength=strength_bucket(change),
        percentage_change=change.quantize(Decimal("0.1")),
        normalized_strength=min(HUNDRED, abs(change)).quantize(Decimal("0.1")),
        average=average,
        latest=latest,
        data_points=len(values),
    )


def analyze_category_trends(monthly: Mapping[str, Iterable[Tuple[str, Decimal]]]) -> Dict[str, TrendSummary]:
    """{category: [(YYYY-MM, amount), ...]} -> trend per category, months sorted first"""
    results = {}
    for category, points in monthly.items():
        ordered: List[Tuple[str, Decimal]] = sorted(points, key=lambda point: point[0])
        results[category] = analyze_trend([amount for _, amount in ordered])
    return results


# Slope-based pattern strength, used for budget recommendations.
# Bands are upper bounds (exclusive) on slope as a percent of the average.
PATTERN_BANDS = (
    (Decimal("2"), "minimal", "Very small change, spending is relatively stable"),
    (Decimal("5"), "weak", "Small change, minor trend detected"),
    (Decimal("15"), "moderate", "Noticeable change, clear trend present"),
    (Decimal("30"), "strong", "Significant change, strong trend detected"),
)
STRONGEST_PATTERN = ("very_strong", "Major change, very strong trend - requires attention")

# Monthly slope that counts as movement
SLOPE_THRESHOLD = Decimal("0.1")
# Series this long get full credit for data consistency
FULL_CONFIDENCE_POINTS = 6

ONE_DECIMAL = Decimal("0.1")
WHOLE = Decimal("1")


class PatternStrength(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    description: str
    normalized_strength: Decimal
    percentage_change: Decimal
    monthly_change: Decimal
    volatility: Decimal
    confidence: int
    data_points: int
    average: Decimal


def linear_slope(values: Sequence[Decimal]) -> Decimal:
    """Least-squares slope of the values against their position"""
    n = len(values)
    if n < 2:
        return ZERO
    positions = [Decimal(x) for x in range(n)]
    sum_x = sum(positions, ZERO)
    sum_y = sum(values, ZERO)
    sum_xy = sum((x * y for x, y in zip(positions, values)), ZERO)
    sum_xx = sum((x * x for x in positions), ZERO)
    return (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)


def slope_direction(slope: Decimal) -> TrendDirection:
    if slope > SLOPE_THRESHOLD:
        return TrendDirection.INCREASING
    if slope < -SLOPE_THRESHOLD:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def _pattern_band(normalized: Decimal) -> Tuple[str, str]:
    for upper, label, description in PATTERN_BANDS:
        if normalized < upper:
            return label, description
    return STRONGEST_PATTERN


def pattern_strength(series: Sequence) -> PatternStrength:
    """
    How strongly an ordered monthly series is moving.

    Confidence (0-100) averages three factors: series length, slope size
    relative to the average, and how little the series scatters.
    """
    values = [to_decimal(value, "series") for value in series]
    if len(values) < 2:
        return PatternStrength(
            category=INSUFFICIENT_DATA,
            description="Not enough data to calculate trend",
            normalized_strength=ZERO,
            percentage_change=ZERO,
            monthly_change=ZERO,
            volatility=ZERO,
            confidence=0,
            data_points=len(values),
            average=ZERO,
        )

    average = sum(values, ZERO) / len(values)
    monthly_change = abs(linear_slope(values))
    volatility = (sum(((value - average) ** 2 for value in values), ZERO) / len(values)).sqrt()
    normalized = monthly_change / average * HUNDRED if average > ZERO else ZERO

    consistency_factor = min(Decimal(len(values)) / FULL_CONFIDENCE_POINTS, WHOLE)
    strength_factor = min(normalized / 10, WHOLE)
    volatility_factor = max(ZERO, WHOLE - volatility / average) if average > ZERO else ZERO
    confidence = (consistency_factor + strength_factor + volatility_factor) / 3

    label, description = _pattern_band(normalized)
    return PatternStrength(
        category=label,
        description=description,
        normalized_strength=normalized.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP),
        percentage_change=percentage_change(values[0], values[-1]).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP),
        monthly_change=monthly_change.quantize(WHOLE, rounding=ROUND_HALF_UP),
        volatility=volatility.quantize(WHOLE, rounding=ROUND_HALF_UP),
        confidence=int((confidence * HUNDRED).quantize(WHOLE, rounding=ROUND_HALF_UP)),
        data_points=len(values),
        average=average.quantize(WHOLE, rounding=ROUND_HALF_UP),
    )
