from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.budgets import BudgetVariance
from coupleledger.app.engine.money import HUNDRED, ZERO, quantize_cents, to_decimal
from coupleledger.app.engine.trends import (
    PatternStrength, TrendDirection, linear_slope, pattern_strength, slope_direction
)

# Variance ratios that trigger a recommendation
OVERSPEND_RATIO = Decimal("0.2")
UNDERUSE_RATIO = Decimal("-0.3")

REDUCTION_CONFIDENCE = Decimal("0.8")
REALLOCATION_CONFIDENCE = Decimal("0.7")
MAX_SEASONAL_CONFIDENCE = Decimal("0.9")
SEASONAL_STRENGTHS = ("strong", "very_strong")

# Goals without a usable target date are planned over this many months
DEFAULT_GOAL_HORIZON = 6
# Recommended monthly amounts are spread over at least this many months
SMOOTHING_MIN_MONTHS = 6
LONG_HORIZON_MONTHS = 12


class TipType(str, Enum):
    REDUCTION = "reduction"
    REALLOCATION = "reallocation"
    SEASONAL = "seasonal"
    GOAL_BASED = "goal_based"


class CategoryPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: List[Tuple[str, Decimal]]
    direction: TrendDirection
    slope: Decimal
    strength: PatternStrength


class GoalPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal_id: str
    goal_name: Optional[str] = None
    target_amount: Decimal
    current_amount: Decimal
    remaining_amount: Decimal
    months_remaining: int
    monthly_needed: Decimal
    recommended_monthly: Decimal
    smoothing_window: int
    confidence: Decimal
    target_date: Optional[date] = None


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    tip_type: TipType
    title: str
    description: str
    category: Optional[str] = None
    impact_amount: Optional[Decimal] = None
    confidence_score: Decimal
    goal_plan: Optional[GoalPlan] = None


def identify_patterns(rows: Iterable[Tuple[str, str, Any]]) -> Dict[str, CategoryPattern]:
    """(category, YYYY-MM, amount) rows -> one pattern per category, months ascending"""
    grouped: Dict[str, Dict[str, Decimal]] = {}
    for category, month, amount in rows:
        months = grouped.setdefault(category, {})
        months[month] = months.get(month, ZERO) + to_decimal(amount)

    patterns = {}
    for category, months in grouped.items():
        data = sorted(months.items())
        amounts = [amount for _, amount in data]
        slope = linear_slope(amounts)
        patterns[category] = CategoryPattern(
            data=data,
            direction=slope_direction(slope),
            slope=slope,
            strength=pattern_strength(amounts),
        )
    return patterns


def seasonal_factors(rows: Iterable[Tuple[str, str, Any]]) -> Dict[str, Decimal]:
    """Average spend per calendar month ('01'..'12') divided by the overall average"""
    by_month: Dict[str, List[Decimal]] = {}
    for _, month, amount in rows:
        by_month.setdefault(month[5:7], []).append(to_decimal(amount))

    values = [value for amounts in by_month.values() for value in amounts]
    if not values:
        return {}
    overall = sum(values, ZERO) / len(values)

    factors = {}
    for month in sorted(by_month):
        amounts = by_month[month]
        month_average = sum(amounts, ZERO) / len(amounts)
        factor = month_average / overall if overall > ZERO else ZERO
        factors[month] = factor.quantize(Decimal("0.01"))
    return factors


def months_until(target: date, today: date) -> int:
    """Calendar months left, counting the current one while the target day is still ahead"""
    months = (target.year - today.year) * 12 + (target.month - today.month)
    if target.day >= today.day:
        months += 1
    return months


def goal_savings_plan(
    goal_id: str,
    goal_name: Optional[str],
    target_amount: Any,
    current_amount: Any,
    target_date: Optional[date],
    today: date
) -> Optional[GoalPlan]:
    """Monthly amounts that reach the goal in time; None once nothing is left to save"""
    target = to_decimal(target_amount, "target_amount")
    current = to_decimal(current_amount, "current_amount")
    remaining = max(ZERO, target - current)
    if remaining <= ZERO:
        return None

    months = months_until(target_date, today) if target_date else 0
    if months <= 0:
        months = DEFAULT_GOAL_HORIZON

    window = max(months, SMOOTHING_MIN_MONTHS)
    confidence = Decimal("0.92") if window >= LONG_HORIZON_MONTHS else Decimal("0.88")
    return GoalPlan(
        goal_id=goal_id,
        goal_name=goal_name,
        target_amount=target,
        current_amount=current,
        remaining_amount=remaining,
        months_remaining=months,
        monthly_needed=quantize_cents(remaining / months),
        recommended_monthly=quantize_cents(remaining / window),
        smoothing_window=window,
        confidence=confidence,
        target_date=target_date,
    )


def format_money(amount: Decimal, currency: str) -> str:
    return f"{quantize_cents(to_decimal(amount)):,.2f} {currency}"


def goal_plan_copy(plan: GoalPlan, currency: str = "SEK") -> str:
    months_label = "month" if plan.months_remaining == 1 else "months"
    goal_name = plan.goal_name or "your savings goal"
    recommended = format_money(plan.recommended_monthly, currency)
    needed = format_money(plan.monthly_needed, currency)

    if plan.months_remaining <= 2:
        return (
            f"Only {plan.months_remaining} {months_label} remain for {goal_name}. "
            f"You'd need about {needed} each month to hit the target. "
            f"Consider setting aside at least {recommended} or updating the target date."
        )
    if plan.target_date:
        return (
            f"You have {plan.months_remaining} {months_label} until {goal_name} reaches its target "
            f"({plan.target_date.isoformat()}). Setting aside around {recommended} each month keeps "
            f"you on track (current pace requires {needed})."
        )
    return (
        f"Setting aside around {recommended} each month will keep {goal_name} on track "
        f"(target pace requires {needed})."
    )


def _latest_per_category(variances: Iterable[BudgetVariance]) -> List[BudgetVariance]:
    seen = set()
    latest = []
    for variance in variances:
        if variance.category in seen:
            continue
        seen.add(variance.category)
        latest.append(variance)
    return latest


def generate_recommendations(
    patterns: Dict[str, CategoryPattern],
    variances: List[BudgetVariance],
    plans: Iterable[GoalPlan],
    currency: str = "SEK"
) -> List[Recommendation]:
    """
    Turn the analysis into tips, in this order:

    - reduction: a category more than 20% over budget (its latest such month)
    - reallocation: unused budget from a category more than 30% under,
      offered only when something is overspent
    - seasonal: a category climbing with a strong or very strong slope
    - goal_based: one per savings goal still short of its target

    variances must be ordered most recent month first.
    """
    recommendations = []

    overspending = _latest_per_category(v for v in variances if v.variance > OVERSPEND_RATIO)
    for variance in overspending:
        recommendations.append(Recommendation(
            tip_type=TipType.REDUCTION,
            category=variance.category,
            title=f"Reduce {variance.category} spending",
            description=(
                f"You're spending {variance.overage_percentage:.1f}% over budget in {variance.category}. "
                f"Consider reducing by {format_money(variance.suggested_reduction, currency)}."
            ),
            impact_amount=quantize_cents(variance.suggested_reduction),
            confidence_score=REDUCTION_CONFIDENCE,
        ))

    underused = [v for v in variances if v.variance < UNDERUSE_RATIO]
    if underused and overspending:
        source, target = underused[0], overspending[0]
        recommendations.append(Recommendation(
            tip_type=TipType.REALLOCATION,
            title="Reallocate unused budget",
            description=(
                f"Move {format_money(source.unused_amount, currency)} "
                f"from {source.category} to {target.category}"
            ),
            impact_amount=quantize_cents(source.unused_amount),
            confidence_score=REALLOCATION_CONFIDENCE,
        ))

    for category in sorted(patterns):
        pattern = patterns[category]
        strength = pattern.strength
        if pattern.direction != TrendDirection.INCREASING or strength.category not in SEASONAL_STRENGTHS:
            continue
        recommendations.append(Recommendation(
            tip_type=TipType.SEASONAL,
            category=category,
            title=f"Prepare for {category} seasonal increase",
            description=(
                f"{category} spending has been increasing with {strength.category} trend strength "
                f"({strength.normalized_strength}%). Consider planning for higher expenses in this category."
            ),
            impact_amount=quantize_cents(strength.monthly_change * 2),
            confidence_score=min(Decimal(strength.confidence) / HUNDRED, MAX_SEASONAL_CONFIDENCE),
        ))

    for plan in plans:
        recommendations.append(Recommendation(
            tip_type=TipType.GOAL_BASED,
            title=f"Keep {plan.goal_name} on track" if plan.goal_name else "Keep your savings goal on track",
            description=goal_plan_copy(plan, currency),
            impact_amount=plan.recommended_monthly,
            confidence_score=plan.confidence,
            goal_plan=plan,
        ))

    return recommendations
