from sqlalchemy.orm import Session
from fastapi import HTTPException
from typing import List

from coupleledger.app.models.models import Category, Expense, Budget, RecurringExpense
from coupleledger.app.schemas.categories import CategoryCreate, CategoryUpdate

def _ensure_unique_name(db: Session, name: str, exclude_id: str = None):
    query = db.query(Category).filter(Category.name == name)
    if exclude_id:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail=f"Category '{name}' already exists")

def create_category(db: Session, category_data: CategoryCreate):
    """Service function to create a new category"""
    _ensure_unique_name(db, category_data.name)

    new_category = Category(
        name=category_data.name,
        icon=category_data.icon,
        color=category_data.color
    )
    db.add(new_category)
    db.commit()
    db.refresh(new_category)

    return new_category

def get_all_categories(db: Session) -> List[Category]:
    """Get all categories, alphabetically"""
    return db.query(Category).order_by(Category.name).all()

def get_category_by_id(db: Session, category_id: str) -> Category:
    """Get a specific category by ID"""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail=f"Category with id {category_id} not found")
    return category

def update_category(db: Session, category_id: str, category_data: CategoryUpdate) -> Category:
    category = get_category_by_id(db, category_id)

    if category_data.name is not None and category_data.name != category.name:
        _ensure_unique_name(db, category_data.name, exclude_id=category_id)
        category.name = category_data.name
    if category_data.icon is not None:
        category.icon = category_data.icon
    if category_data.color is not None:
        category.color = category_data.color

    db.commit()
    db.refresh(category)
    return category

def delete_category(db: Session, category_id: str):
    """Delete a category that nothing refers to any more"""
    category = get_category_by_id(db, category_id)

    in_use = (
        db.query(Expense).filter(Expense.category_id == category_id).first()
        or db.query(Budget).filter(Budget.category_id == category_id).first()
        or db.query(RecurringExpense).filter(RecurringExpense.category_id == category_id).first()
    )
    if in_use:
        raise HTTPException(status_code=400, detail="Category is still used by expenses or budgets")

    db.delete(category)
    db.commit()
    return {"message": "Category deleted successfully"}
