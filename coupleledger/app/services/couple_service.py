from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.engine.ledger import CoupleView
from coupleledger.app.models.models import (
    Couple, User, Expense, RecurringExpense, Budget, SavingsGoal, MonthlyStatement
)
from coupleledger.app.services.user_service import get_user_by_id, get_user_by_email, display_name

logger = structlog.get_logger(__name__)

def _find_household(db: Session, user_id: str):
    return db.query(Couple).filter(
        (Couple.partner_1_id == user_id) | (Couple.partner_2_id == user_id)
    ).first()

def get_household(db: Session, user_id: str) -> Couple:
    """
    Return the couple row the user belongs to.

    Users created before households existed get a single-person one on
    first access.
    """
    get_user_by_id(db, user_id)
    couple = _find_household(db, user_id)
    if couple is None:
        couple = Couple(partner_1_id=user_id, connected=False)
        db.add(couple)
        db.commit()
        db.refresh(couple)
    return couple

def couple_view(couple: Couple, user_id: str) -> CoupleView:
    """Engine view of a couple as seen by one of its members"""
    return CoupleView(
        user1_id=couple.partner_1_id,
        user2_id=couple.partner_2_id,
        current_user_id=user_id,
        connected=bool(couple.connected and couple.partner_2_id),
    )

def household_for(db: Session, user_id: str):
    """(couple row, engine view) for the requesting user"""
    couple = get_household(db, user_id)
    return couple, couple_view(couple, user_id)

def _swap_ratios(row):
    row.split_ratio_user1, row.split_ratio_user2 = row.split_ratio_user2, row.split_ratio_user1

def _merge_household(db: Session, source: Couple, target: Couple):
    """
    Move a single-person household into the couple the user is joining.

    The joining user was user1 of their old household and becomes user2 of
    the target one, so stored ratio pairs are swapped.
    """
    for expense in db.query(Expense).filter(Expense.couple_id == source.id).all():
        expense.couple_id = target.id
        _swap_ratios(expense)

    for template in db.query(RecurringExpense).filter(RecurringExpense.couple_id == source.id).all():
        template.couple_id = target.id
        _swap_ratios(template)

    for goal in db.query(SavingsGoal).filter(SavingsGoal.couple_id == source.id).all():
        goal.couple_id = target.id

    dropped = 0
    for budget in db.query(Budget).filter(Budget.couple_id == source.id).all():
        clash = db.query(Budget).filter(
            Budget.couple_id == target.id,
            Budget.category_id == budget.category_id,
            Budget.month == budget.month,
            Budget.year == budget.year
        ).first()
        if clash:
            # The inviting user's budget for the same month wins
            db.delete(budget)
            dropped += 1
        else:
            budget.couple_id = target.id

    db.query(MonthlyStatement).filter(MonthlyStatement.couple_id == source.id).delete()
    db.flush()
    db.delete(source)
    logger.info("household_merged", source_id=source.id, target_id=target.id, budgets_dropped=dropped)

def link_partner(db: Session, user_id: str, partner_email: str) -> Couple:
    """Link the requesting user with the user registered under partner_email"""
    user = get_user_by_id(db, user_id)
    if user.email.lower() == partner_email.lower():
        raise HTTPException(status_code=400, detail="You cannot link with yourself")

    partner = get_user_by_email(db, partner_email)
    if not partner:
        raise HTTPException(status_code=404, detail=f"No user registered with email {partner_email}")

    couple = get_household(db, user_id)
    if couple.partner_2_id is not None:
        if partner.id not in (couple.partner_1_id, couple.partner_2_id):
            raise HTTPException(status_code=409, detail="You are already linked with another partner")
        # Re-linking the same partner after an unlink
        couple.connected = True
        db.commit()
        db.refresh(couple)
        logger.info("couple_relinked", couple_id=couple.id)
        return couple

    partner_household = _find_household(db, partner.id)
    if partner_household is not None:
        if partner_household.partner_2_id is not None:
            raise HTTPException(status_code=409, detail="That user is already linked with someone else")
        _merge_household(db, partner_household, couple)

    couple.partner_2_id = partner.id
    couple.connected = True
    db.commit()
    db.refresh(couple)

    logger.info("couple_linked", couple_id=couple.id, user_id=user_id, partner_id=partner.id)
    return couple

def unlink_partner(db: Session, user_id: str) -> Couple:
    """
    Disconnect the couple.

    The partner stays on the row so historical splits keep resolving, but
    partner scope is disabled until the couple is linked again.
    """
    couple = get_household(db, user_id)
    if not couple.connected:
        raise HTTPException(status_code=400, detail="No partner is currently linked")
    couple.connected = False
    db.commit()
    db.refresh(couple)
    logger.info("couple_unlinked", couple_id=couple.id, user_id=user_id)
    return couple

def member_names(db: Session, couple: Couple):
    """{user_id: display name} for both members"""
    names = {}
    for member_id in (couple.partner_1_id, couple.partner_2_id):
        if member_id:
            names[member_id] = display_name(db.query(User).filter(User.id == member_id).first())
    return names
