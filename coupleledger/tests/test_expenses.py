import pytest
from datetime import date
from fastapi import status, HTTPException
from uuid import uuid4

from coupleledger.app.errors import ValidationError
from coupleledger.app.models.models import Expense
from coupleledger.app.schemas.expenses import ExpenseCreate, ExpenseUpdate
from coupleledger.app.schemas.users import UserCreate
from coupleledger.app.services.expense_service import (
    create_expense, list_expenses, recent_expenses, get_expense, update_expense, delete_expense
)
from coupleledger.app.services.summary_service import couple_summary
from coupleledger.app.services.user_service import create_user

def make_expense(db_session, user_id, category_id, amount, **kwargs):
    data = ExpenseCreate(amount=amount, category_id=category_id, date=kwargs.pop("date", date(2024, 3, 10)), **kwargs)
    return create_expense(db_session, user_id, data)

# Service layer tests
def test_create_fifty_fifty_expense(db_session, test_couple, test_user, test_category):
    """50/50 expenses are stored with a 50/50 ratio pair"""
    expense = make_expense(db_session, test_user.id, test_category.id, 100)

    assert expense["couple_id"] == test_couple.id
    assert expense["paid_by_user_id"] == test_user.id
    assert expense["split_type"] == "50/50"
    assert expense["split_ratio_user1"] == 50.0
    assert expense["split_ratio_user2"] == 50.0
    assert expense["owed_share"] == 50.0
    assert expense["category_name"] == "Groceries"

def test_personal_only_alias_is_normalized(db_session, test_couple, test_partner, test_category):
    """A personal expense paid by user2 stores 0/100"""
    expense = make_expense(
        db_session, test_partner.id, test_category.id, 40,
        split_type="personal_only", paid_by_user_id=test_partner.id
    )
    assert expense["split_type"] == "personal"
    assert expense["split_ratio_user1"] == 0.0
    assert expense["split_ratio_user2"] == 100.0
    assert expense["owed_share"] == 40.0

def test_invalid_custom_ratios_are_rejected_before_saving(db_session, test_couple, test_user, test_category):
    """Ratios that don't add up to 100 never reach the database"""
    with pytest.raises(ValidationError) as excinfo:
        make_expense(
            db_session, test_user.id, test_category.id, 100,
            split_type="custom", split_ratio_user1=60, split_ratio_user2=30
        )
    assert excinfo.value.field == "split_ratio_user1"
    assert db_session.query(Expense).count() == 0

@pytest.mark.parametrize("amount", [0, -12.5])
def test_non_positive_amount_is_rejected(db_session, test_couple, test_user, test_category, amount):
    with pytest.raises(ValidationError) as excinfo:
        make_expense(db_session, test_user.id, test_category.id, amount)
    assert excinfo.value.field == "amount"

def test_payer_outside_couple_is_rejected(db_session, test_couple, test_user, test_category):
    with pytest.raises(ValidationError) as excinfo:
        make_expense(db_session, test_user.id, test_category.id, 10, paid_by_user_id=str(uuid4()))
    assert excinfo.value.field == "paid_by_user_id"

def test_unknown_category_returns_404(db_session, test_couple, test_user):
    with pytest.raises(HTTPException) as excinfo:
        make_expense(db_session, test_user.id, str(uuid4()), 10)
    assert excinfo.value.status_code == 404

def test_single_user_gets_own_household(db_session, test_user, test_category):
    """A user without a partner can still record expenses and owes all of them"""
    expense = make_expense(db_session, test_user.id, test_category.id, 30)
    assert expense["owed_share"] == 30.0

def test_mine_scope_hides_partner_personal_expenses(db_session, test_couple, test_user, test_partner, test_category):
    shared = make_expense(db_session, test_user.id, test_category.id, 100)
    personal = make_expense(
        db_session, test_partner.id, test_category.id, 70,
        split_type="personal", paid_by_user_id=test_partner.id
    )

    mine, resolution = list_expenses(db_session, test_user.id, "mine")
    assert resolution.effective.value == "mine"
    assert [item["id"] for item in mine] == [shared["id"]]

    ours, _ = list_expenses(db_session, test_user.id, "ours")
    assert {item["id"] for item in ours} == {shared["id"], personal["id"]}

    partner, _ = list_expenses(db_session, test_user.id, "partner")
    shares = {item["id"]: item["owed_share"] for item in partner}
    assert shares == {shared["id"]: 50.0, personal["id"]: 70.0}

def test_partner_scope_falls_back_without_partner(db_session, test_user, test_category):
    make_expense(db_session, test_user.id, test_category.id, 20)
    expenses, resolution = list_expenses(db_session, test_user.id, "partner")
    assert resolution.effective.value == "ours"
    assert resolution.fell_back is True
    assert len(expenses) == 1

def test_list_filters_by_date_range(db_session, test_couple, test_user, test_category):
    make_expense(db_session, test_user.id, test_category.id, 10, date=date(2024, 1, 5))
    march = make_expense(db_session, test_user.id, test_category.id, 20, date=date(2024, 3, 5))
    expenses, _ = list_expenses(db_session, test_user.id, "ours", date(2024, 3, 1), date(2024, 3, 31))
    assert [item["id"] for item in expenses] == [march["id"]]

def test_update_revalidates_merged_record(db_session, test_couple, test_user, test_category):
    expense = make_expense(db_session, test_user.id, test_category.id, 100)

    with pytest.raises(ValidationError):
        update_expense(db_session, test_user.id, expense["id"], ExpenseUpdate(
            split_type="custom", split_ratio_user1=80, split_ratio_user2=30
        ))
    db_session.expire_all()
    assert get_expense(db_session, test_user.id, expense["id"])["split_type"] == "50/50"

    updated = update_expense(db_session, test_user.id, expense["id"], ExpenseUpdate(
        split_type="custom", split_ratio_user1=80, split_ratio_user2=20, amount=50
    ))
    assert updated["amount"] == 50.0
    assert updated["owed_share"] == 40.0

def test_expense_of_other_couple_is_not_found(db_session, test_couple, test_user, test_category):
    expense = make_expense(db_session, test_user.id, test_category.id, 100)
    outsider = create_user(db_session, UserCreate(email="outsider@example.com", display_name="Outsider"))

    with pytest.raises(HTTPException) as excinfo:
        get_expense(db_session, outsider.id, expense["id"])
    assert excinfo.value.status_code == 404

def test_delete_expense(db_session, test_couple, test_user, test_category):
    expense = make_expense(db_session, test_user.id, test_category.id, 100)
    delete_expense(db_session, test_user.id, expense["id"])
    assert db_session.query(Expense).count() == 0

def test_ratios_rounding_past_tolerance_are_rejected_before_storing(db_session, test_couple, test_user, test_category):
    """40.005/60.005 sum to 100.01 but are stored as 40.01/60.01"""
    with pytest.raises(ValidationError) as excinfo:
        make_expense(
            db_session, test_user.id, test_category.id, 100,
            split_type="custom", split_ratio_user1=40.005, split_ratio_user2=60.005
        )
    assert excinfo.value.field == "split_ratio_user1"
    assert db_session.query(Expense).count() == 0

    summary = couple_summary(db_session, test_user.id)
    assert summary["totals"]["ours"] == 0.0

def test_ratios_are_stored_at_two_decimals(db_session, test_couple, test_user, test_category):
    expense = make_expense(
        db_session, test_user.id, test_category.id, 100,
        split_type="custom", split_ratio_user1=40.004, split_ratio_user2=59.996
    )
    assert expense["split_ratio_user1"] == 40.0
    assert expense["split_ratio_user2"] == 60.0
    assert expense["owed_share"] == 40.0

    summary = couple_summary(db_session, test_user.id)
    assert summary["totals"]["ours"] == 100.0
    assert summary["totals"]["mine"] == 40.0
    assert summary["totals"]["partner"] == 60.0

def test_recent_expenses_newest_first(db_session, test_couple, test_user, test_partner, test_category):
    january = make_expense(db_session, test_user.id, test_category.id, 10, date=date(2024, 1, 5))
    march = make_expense(db_session, test_partner.id, test_category.id, 20, date=date(2024, 3, 5))
    february = make_expense(db_session, test_user.id, test_category.id, 30, date=date(2024, 2, 5))

    recent = recent_expenses(db_session, test_user.id)
    assert [item["id"] for item in recent] == [march["id"], february["id"], january["id"]]
    assert recent[0]["owed_share"] == 10.0

    assert [item["id"] for item in recent_expenses(db_session, test_user.id, limit=1)] == [march["id"]]

# API layer tests
def test_create_expense_api(client, test_couple, test_user, test_category):
    response = client.post(
        f"/api/v1/expenses/?user_id={test_user.id}",
        json={
            "amount": 60,
            "date": "2024-03-12",
            "category_id": test_category.id,
            "split_type": "custom",
            "split_ratio_user1": 70,
            "split_ratio_user2": 30,
            "description": "Dinner"
        }
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["amount"] == 60.0
    assert data["owed_share"] == 42.0
    assert data["paid_by_name"] == "Test User"

def test_create_expense_api_field_level_error(client, test_couple, test_user, test_category):
    response = client.post(
        f"/api/v1/expenses/?user_id={test_user.id}",
        json={
            "amount": 60,
            "category_id": test_category.id,
            "split_type": "custom",
            "split_ratio_user1": 70,
            "split_ratio_user2": 20
        }
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = response.json()["detail"]
    assert detail[0]["field"] == "split_ratio_user1"
    assert "100" in detail[0]["message"]

def test_list_expenses_api_reports_effective_scope(client, test_user, test_category):
    client.post(
        f"/api/v1/expenses/?user_id={test_user.id}",
        json={"amount": 15, "category_id": test_category.id}
    )
    response = client.get(f"/api/v1/expenses/?user_id={test_user.id}&scope=partner")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["X-Effective-Scope"] == "ours"
    assert len(response.json()) == 1

def test_delete_expense_api(client, test_couple, test_user, test_category):
    created = client.post(
        f"/api/v1/expenses/?user_id={test_user.id}",
        json={"amount": 15, "category_id": test_category.id}
    ).json()

    response = client.delete(f"/api/v1/expenses/{created['id']}?user_id={test_user.id}")
    assert response.status_code == status.HTTP_200_OK

    response = client.get(f"/api/v1/expenses/{created['id']}?user_id={test_user.id}")
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_recent_expenses_api(client, test_couple, test_user, test_category):
    for amount in range(1, 8):
        client.post(
            f"/api/v1/expenses/?user_id={test_user.id}",
            json={"amount": amount, "category_id": test_category.id, "date": f"2024-03-0{amount}"}
        )

    response = client.get(f"/api/v1/expenses/recent?user_id={test_user.id}")
    assert response.status_code == status.HTTP_200_OK
    assert [item["amount"] for item in response.json()] == [7.0, 6.0, 5.0, 4.0, 3.0]

    response = client.get(f"/api/v1/expenses/recent?user_id={test_user.id}&limit=0")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
