from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.categories import CategoryCreate, CategoryUpdate, CategoryResponse
from coupleledger.app.services.category_service import (
    create_category, get_all_categories, get_category_by_id, update_category, delete_category
)

router = APIRouter()

@router.post("/", response_model=CategoryResponse)
def create_category_route(category_data: CategoryCreate, db: Session = Depends(get_db_session)):
    """
    Create a new category.

    - Names are unique
    """
    return create_category(db, category_data)

@router.get("/", response_model=List[CategoryResponse])
def get_categories_route(db: Session = Depends(get_db_session)):
    """Get all categories"""
    return get_all_categories(db)

@router.get("/{category_id}", response_model=CategoryResponse)
def get_category_route(category_id: str, db: Session = Depends(get_db_session)):
    """Get a specific category by ID"""
    return get_category_by_id(db, category_id)

@router.put("/{category_id}", response_model=CategoryResponse)
def update_category_route(category_id: str, category_data: CategoryUpdate, db: Session = Depends(get_db_session)):
    """Update a category's name, icon or color"""
    return update_category(db, category_id, category_data)

@router.delete("/{category_id}")
def delete_category_route(category_id: str, db: Session = Depends(get_db_session)):
    """
    Delete a category.

    - Refused while expenses, budgets or templates still use it
    """
    return delete_category(db, category_id)
