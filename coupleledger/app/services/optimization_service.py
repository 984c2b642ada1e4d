from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.config import get_settings
from coupleledger.app.engine.budgets import BudgetVariance, budget_variances
from coupleledger.app.engine.ledger import CoupleView
from coupleledger.app.engine.money import ZERO, as_amount
from coupleledger.app.engine.optimizer import (
    CategoryPattern, GoalPlan, Recommendation, generate_recommendations,
    goal_savings_plan, identify_patterns, seasonal_factors
)
from coupleledger.app.engine.scopes import Scope, resolve_scope, sanitize_scope, scoped_amounts, viewer_for_scope
from coupleledger.app.models.models import Category, OptimizationTip, SavingsGoal
from coupleledger.app.schemas.optimization import TipUpdate
from coupleledger.app.services.analytics_service import month_key
from coupleledger.app.services.budget_service import budget_rows_for_period
from coupleledger.app.services.couple_service import household_for
from coupleledger.app.services.expense_service import load_ledger

logger = structlog.get_logger(__name__)

def history_start(today: date, months: int) -> date:
    """First day of the oldest month in a window of `months` ending with today's month"""
    index = today.year * 12 + today.month - 1 - (months - 1)
    return date(index // 12, index % 12 + 1, 1)

def _category_names(db: Session) -> Dict[str, str]:
    return {category.id: category.name for category in db.query(Category).all()}

def _spend_rows(db: Session, couple_id: str, view: CoupleView, scope: Scope,
                start: date, end: date, names: Dict[str, str]) -> List[Tuple[str, str, Decimal]]:
    """(category name, YYYY-MM, scoped spend) for every month with spending"""
    totals: Dict[Tuple[str, str], Decimal] = {}
    for expense, amount in scoped_amounts(load_ledger(db, couple_id, start, end), view, scope):
        key = (names.get(expense.category_id, "Unknown"), month_key(expense.date))
        totals[key] = totals.get(key, ZERO) + amount
    return [(category, month, amount) for (category, month), amount in sorted(totals.items())]

def _budget_amounts(db: Session, couple_id: str, start: date, end: date,
                    names: Dict[str, str]) -> Dict[Tuple[str, str], Decimal]:
    budgets = {}
    for row in budget_rows_for_period(db, couple_id, start, end):
        key = (names.get(row.category_id, "Unknown"), f"{row.year:04d}-{row.month:02d}")
        budgets[key] = budgets.get(key, ZERO) + row.amount
    return budgets

def _goals_in_scope(db: Session, couple_id: str, view: CoupleView, scope: Scope, today: date) -> List[SavingsGoal]:
    """Goals still running: 'ours' sees the couple's, mine/partner one person's"""
    query = db.query(SavingsGoal).filter(SavingsGoal.couple_id == couple_id)
    if scope != Scope.OURS:
        query = query.filter(SavingsGoal.user_id == viewer_for_scope(view, scope))
    goals = query.order_by(SavingsGoal.created_at.desc()).all()
    return [goal for goal in goals if goal.target_date is None or goal.target_date > today]

def _replace_open_tips(db: Session, user_id: str, scope: Scope,
                       recommendations: List[Recommendation], now: datetime) -> List[OptimizationTip]:
    """Dismissed tips are kept; everything else for this scope is rewritten"""
    db.query(OptimizationTip).filter(
        OptimizationTip.user_id == user_id,
        OptimizationTip.scope == scope.value,
        OptimizationTip.is_dismissed == False
    ).delete(synchronize_session=False)

    expires_at = now + timedelta(days=get_settings().tip_lifetime_days)
    tips = []
    for recommendation in recommendations:
        tip = OptimizationTip(
            user_id=user_id,
            scope=scope.value,
            tip_type=recommendation.tip_type.value,
            category=recommendation.category,
            title=recommendation.title,
            description=recommendation.description,
            impact_amount=recommendation.impact_amount,
            confidence_score=recommendation.confidence_score,
            goal_id=recommendation.goal_plan.goal_id if recommendation.goal_plan else None,
            created_at=now,
            expires_at=expires_at
        )
        db.add(tip)
        tips.append(tip)
    db.commit()
    for tip in tips:
        db.refresh(tip)
    return tips

def tip_payload(tip: OptimizationTip) -> Dict[str, Any]:
    return {
        "id": tip.id,
        "user_id": tip.user_id,
        "scope": tip.scope,
        "tip_type": tip.tip_type,
        "category": tip.category,
        "title": tip.title,
        "description": tip.description,
        "impact_amount": as_amount(tip.impact_amount),
        "confidence_score": float(tip.confidence_score),
        "goal_id": tip.goal_id,
        "is_dismissed": tip.is_dismissed,
        "created_at": tip.created_at,
        "expires_at": tip.expires_at,
    }

def _plan_payload(plan: GoalPlan) -> Dict[str, Any]:
    return {
        "goal_id": plan.goal_id,
        "goal_name": plan.goal_name,
        "target_amount": as_amount(plan.target_amount),
        "current_amount": as_amount(plan.current_amount),
        "remaining_amount": as_amount(plan.remaining_amount),
        "months_remaining": plan.months_remaining,
        "monthly_needed": as_amount(plan.monthly_needed),
        "recommended_monthly": as_amount(plan.recommended_monthly),
        "target_date": plan.target_date,
    }

def _pattern_payload(pattern: CategoryPattern) -> Dict[str, Any]:
    strength = pattern.strength
    return {
        "data": [{"month": month, "amount": as_amount(amount)} for month, amount in pattern.data],
        "trend": pattern.direction.value,
        "trendStrength": float(round(abs(pattern.slope), 2)),
        "enhancedTrend": {
            "category": strength.category,
            "description": strength.description,
            "normalizedStrength": float(strength.normalized_strength),
            "percentageChange": float(strength.percentage_change),
            "monthlyChange": float(strength.monthly_change),
            "volatility": float(strength.volatility),
            "confidence": strength.confidence,
            "dataPoints": strength.data_points,
            "average": float(strength.average),
        },
    }

def _variance_payload(variance: BudgetVariance) -> Dict[str, Any]:
    return {
        "name": variance.category,
        "month": variance.month,
        "budgetAmount": as_amount(variance.budget_amount),
        "actualAmount": as_amount(variance.actual_amount),
        "variance": float(round(variance.variance, 4)),
        "overagePercentage": float(round(variance.overage_percentage, 1)),
        "suggestedReduction": as_amount(variance.suggested_reduction),
        "unusedAmount": as_amount(variance.unused_amount),
    }

def analyze(db: Session, user_id: str, scope: Optional[str] = None, today: Optional[date] = None):
    """
    Spending patterns, seasonal factors and budget variances over the last
    months, plus recommendations that are stored as the user's open tips.

    Returns (payload, scope resolution).
    """
    today = today or date.today()
    settings = get_settings()
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)
    effective = resolution.effective

    start = history_start(today, settings.optimizer_history_months)
    names = _category_names(db)
    rows = _spend_rows(db, couple.id, view, effective, start, today, names)
    actual = {(category, month): amount for category, month, amount in rows}

    patterns = identify_patterns(rows)
    variances = budget_variances(actual, _budget_amounts(db, couple.id, start, today, names))

    plans = []
    for goal in _goals_in_scope(db, couple.id, view, effective, today):
        plan = goal_savings_plan(
            goal.id, goal.goal_name, goal.target_amount, goal.current_amount, goal.target_date, today
        )
        if plan is not None:
            plans.append(plan)

    recommendations = generate_recommendations(patterns, variances, plans, settings.currency)
    tips = _replace_open_tips(db, user_id, effective, recommendations, datetime.utcnow())
    logger.info("optimization_analyzed", user_id=user_id, scope=effective.value,
                months=len({month for _, month, _ in rows}), tips=len(tips))

    recommendation_payloads = []
    for recommendation, tip in zip(recommendations, tips):
        payload = tip_payload(tip)
        if recommendation.goal_plan:
            payload["goal"] = _plan_payload(recommendation.goal_plan)
        recommendation_payloads.append(payload)

    payload = {
        "scope": effective.value,
        "period": {"start": start, "end": today},
        "patterns": {category: _pattern_payload(pattern) for category, pattern in patterns.items()},
        "seasonalTrends": {month: float(factor) for month, factor in seasonal_factors(rows).items()},
        "budgetVariances": [_variance_payload(variance) for variance in variances],
        "recommendations": recommendation_payloads,
    }
    return payload, resolution

def get_tips(db: Session, user_id: str, scope: Optional[str] = None,
             now: Optional[datetime] = None) -> List[OptimizationTip]:
    """Open, unexpired tips, most confident first"""
    now = now or datetime.utcnow()
    query = db.query(OptimizationTip).filter(
        OptimizationTip.user_id == user_id,
        OptimizationTip.is_dismissed == False,
        or_(OptimizationTip.expires_at.is_(None), OptimizationTip.expires_at > now)
    )
    if scope:
        query = query.filter(OptimizationTip.scope == sanitize_scope(scope).value)
    return query.order_by(OptimizationTip.confidence_score.desc(), OptimizationTip.created_at.desc()).all()

def _get_tip(db: Session, user_id: str, tip_id: str) -> OptimizationTip:
    tip = db.query(OptimizationTip).filter(
        OptimizationTip.id == tip_id,
        OptimizationTip.user_id == user_id
    ).first()
    if not tip:
        raise HTTPException(status_code=404, detail="Tip not found")
    return tip

def update_tip(db: Session, user_id: str, tip_id: str, tip_data: TipUpdate) -> OptimizationTip:
    tip = _get_tip(db, user_id, tip_id)
    tip.is_dismissed = tip_data.is_dismissed
    db.commit()
    db.refresh(tip)
    logger.info("optimization_tip_updated", tip_id=tip_id, is_dismissed=tip.is_dismissed)
    return tip

def dismiss_tip(db: Session, user_id: str, tip_id: str):
    update_tip(db, user_id, tip_id, TipUpdate(is_dismissed=True))
    return {"message": "Tip dismissed successfully"}
