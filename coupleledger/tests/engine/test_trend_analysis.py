import pytest
from decimal import Decimal

from coupleledger.app.engine.trends import (
    INSUFFICIENT_DATA, TrendDirection, analyze_category_trends, analyze_trend, strength_bucket
)

def test_single_point_is_insufficient():
    summary = analyze_trend([100])
    assert summary.direction == TrendDirection.STABLE
    assert summary.strength == INSUFFICIENT_DATA

def test_empty_series_is_insufficient():
    summary = analyze_trend([])
    assert summary.strength == INSUFFICIENT_DATA
    assert summary.data_points == 0

def test_increasing_series():
    summary = analyze_trend([100, 110, 140])
    assert summary.direction == TrendDirection.INCREASING
    assert summary.percentage_change == Decimal("40.0")
    assert summary.strength == "strong"

def test_decreasing_series():
    summary = analyze_trend([200, 180, 150])
    assert summary.direction == TrendDirection.DECREASING
    assert summary.strength == "moderate"

def test_flat_series_is_stable():
    summary = analyze_trend([100, 100, 100])
    assert summary.direction == TrendDirection.STABLE
    assert summary.strength == "minimal"

def test_zero_start_has_no_percentage_change():
    summary = analyze_trend([0, 50])
    assert summary.percentage_change == Decimal("0")
    assert summary.direction == TrendDirection.INCREASING

def test_normalized_strength_is_capped():
    summary = analyze_trend([10, 100])
    assert summary.normalized_strength == Decimal("100")
    assert summary.strength == "very_strong"

@pytest.mark.parametrize("change,label", [
    (Decimal("4.9"), "minimal"),
    (Decimal("5"), "weak"),
    (Decimal("-20"), "moderate"),
    (Decimal("49.9"), "strong"),
    (Decimal("50"), "very_strong"),
])
def test_strength_buckets(change, label):
    assert strength_bucket(change) == label

def test_analysis_is_deterministic():
    series = [120, 80, 95, 130]
    assert analyze_trend(series) == analyze_trend(series)

def test_category_trends_sort_months_first():
    trends = analyze_category_trends({
        "food": [("2024-03", Decimal("150")), ("2024-01", Decimal("100")), ("2024-02", Decimal("120"))],
    })
    assert trends["food"].direction == TrendDirection.INCREASING
    assert trends["food"].percentage_change == Decimal("50.0")
