from uuid import uuid4
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, DateTime, Numeric, Boolean, ForeignKey, Date, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Money columns: two decimals, read back as Decimal
Money = Numeric(12, 2, asdecimal=True)
Ratio = Numeric(5, 2, asdecimal=True)

# --- SQLALCHEMY MODELS ---

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, nullable=False)
    display_name = Column(String, nullable=True)
    color = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    incomes = relationship("Income", back_populates="user")

class Couple(Base):
    __tablename__ = "couples"
    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    partner_1_id = Column(String, ForeignKey("users.id"), nullable=False)
    partner_2_id = Column(String, ForeignKey("users.id"), nullable=True)
    connected = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    partner_1 = relationship("User", foreign_keys=[partner_1_id])
    partner_2 = relationship("User", foreign_keys=[partner_2_id])
    expenses = relationship("Expense", back_populates="couple")

class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False, unique=True)
    icon = Column(String, nullable=True)
    color = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    expenses = relationship("Expense", back_populates="category")

class RecurringExpense(Base):
    """Template materialized into one expense per month"""
    __tablename__ = "recurring_expenses"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, ForeignKey("couples.id"), nullable=False)
    description = Column(String, nullable=False)
    default_amount = Column(Money, nullable=False)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False)
    paid_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    split_type = Column(String, default="50/50", nullable=False)
    split_ratio_user1 = Column(Ratio, nullable=True)
    split_ratio_user2 = Column(Ratio, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("Category")

class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        UniqueConstraint("recurring_expense_id", "date", name="uq_expense_recurring_date"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, ForeignKey("couples.id"), nullable=False)
    amount = Column(Money, nullable=False)
    date = Column(Date, nullable=False)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False)
    paid_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    split_type = Column(String, default="50/50", nullable=False)
    split_ratio_user1 = Column(Ratio, nullable=False)
    split_ratio_user2 = Column(Ratio, nullable=False)
    description = Column(String, nullable=False, default="")
    notes = Column(Text, nullable=True)
    recurring_expense_id = Column(String, ForeignKey("recurring_expenses.id", ondelete="SET NULL"), nullable=True)
    recurring_template_updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    couple = relationship("Couple", back_populates="expenses")
    category = relationship("Category", back_populates="expenses")
    paid_by = relationship("User")

class Budget(Base):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("couple_id", "category_id", "month", "year", name="uq_budget_category_month"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, ForeignKey("couples.id"), nullable=False)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("Category")

class Income(Base):
    __tablename__ = "incomes"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    source = Column(String, nullable=False)
    amount = Column(Money, nullable=False)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="incomes")

class SavingsGoal(Base):
    __tablename__ = "savings_goals"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, ForeignKey("couples.id"), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    goal_name = Column(String, nullable=False)
    target_amount = Column(Money, nullable=False)
    current_amount = Column(Money, nullable=False, default=0)
    category = Column(String, nullable=True)
    target_date = Column(Date, nullable=True)
    color_index = Column(Integer, default=0)
    is_pinned = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    contributions = relationship(
        "SavingsContribution", back_populates="goal", cascade="all, delete-orphan"
    )

class SavingsContribution(Base):
    __tablename__ = "savings_contributions"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    goal_id = Column(String, ForeignKey("savings_goals.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    amount = Column(Money, nullable=False)
    requested_amount = Column(Money, nullable=False)
    capped = Column(Boolean, default=False)
    date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    goal = relationship("SavingsGoal", back_populates="contributions")

class MonthlyStatement(Base):
    """Settlement snapshot for one couple and month, refreshed on every summary request"""
    __tablename__ = "monthly_statements"
    __table_args__ = (
        UniqueConstraint("couple_id", "month", "year", name="uq_statement_month"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    couple_id = Column(String, ForeignKey("couples.id"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    total_expenses = Column(Money, default=0)
    total_shared_expenses = Column(Money, default=0)
    settlement_amount = Column(Money, default=0)
    debtor_id = Column(String, ForeignKey("users.id"), nullable=True)
    creditor_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class OptimizationTip(Base):
    """Stored recommendation; each analysis replaces the user's open tips for that scope"""
    __tablename__ = "budget_optimization_tips"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    scope = Column(String, nullable=False, default="ours")
    tip_type = Column(String, nullable=False)
    category = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    impact_amount = Column(Money, nullable=True)
    confidence_score = Column(Numeric(3, 2, asdecimal=True), nullable=False, default=0.5)
    goal_id = Column(String, ForeignKey("savings_goals.id", ondelete="SET NULL"), nullable=True)
    is_dismissed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)
