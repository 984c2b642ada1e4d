import pytest
from datetime import date
from fastapi import status, HTTPException

from coupleledger.app.schemas.categories import CategoryCreate, CategoryUpdate
from coupleledger.app.schemas.expenses import ExpenseCreate
from coupleledger.app.services.category_service import (
    create_category, get_all_categories, update_category, delete_category
)
from coupleledger.app.services.expense_service import create_expense

# Service layer tests
def test_create_category(db_session):
    category = create_category(db_session, CategoryCreate(name="Transport", icon="bus", color="#3366ff"))
    assert category.id is not None
    assert category.name == "Transport"

def test_duplicate_category_name(db_session, test_category):
    with pytest.raises(HTTPException) as excinfo:
        create_category(db_session, CategoryCreate(name=test_category.name))
    assert excinfo.value.status_code == 400

def test_categories_sorted_by_name(db_session, test_category, second_category):
    assert [category.name for category in get_all_categories(db_session)] == ["Groceries", "Rent"]

def test_rename_to_existing_name_fails(db_session, test_category, second_category):
    with pytest.raises(HTTPException) as excinfo:
        update_category(db_session, second_category.id, CategoryUpdate(name="Groceries"))
    assert excinfo.value.status_code == 400

def test_category_in_use_cannot_be_deleted(db_session, test_couple, test_user, test_category):
    create_expense(db_session, test_user.id, ExpenseCreate(
        amount=10, category_id=test_category.id, date=date(2024, 1, 1)
    ))
    with pytest.raises(HTTPException) as excinfo:
        delete_category(db_session, test_category.id)
    assert excinfo.value.status_code == 400

# API layer tests
def test_category_crud_api(client):
    created = client.post("/api/v1/categories/", json={"name": "Health", "icon": "pill"})
    assert created.status_code == status.HTTP_200_OK
    category_id = created.json()["id"]

    updated = client.put(f"/api/v1/categories/{category_id}", json={"color": "#00aa00"})
    assert updated.json()["color"] == "#00aa00"

    deleted = client.delete(f"/api/v1/categories/{category_id}")
    assert deleted.status_code == status.HTTP_200_OK

    missing = client.get(f"/api/v1/categories/{category_id}")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
