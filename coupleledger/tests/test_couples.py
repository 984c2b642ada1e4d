import pytest
from datetime import date
from decimal import Decimal
from fastapi import status, HTTPException

from coupleledger.app.models.models import Couple, Expense
from coupleledger.app.schemas.expenses import ExpenseCreate
from coupleledger.app.schemas.users import UserCreate
from coupleledger.app.services.couple_service import get_household, link_partner, unlink_partner, couple_view
from coupleledger.app.services.expense_service import create_expense
from coupleledger.app.services.user_service import create_user

@pytest.fixture
def anna(db_session):
    return create_user(db_session, UserCreate(email="anna@example.com", display_name="Anna"))

@pytest.fixture
def ben(db_session):
    return create_user(db_session, UserCreate(email="ben@example.com", display_name="Ben"))

# Service layer tests
def test_new_user_gets_single_person_household(db_session, anna):
    couple = get_household(db_session, anna.id)
    assert couple.partner_1_id == anna.id
    assert couple.partner_2_id is None
    assert couple.connected is False
    assert couple_view(couple, anna.id).has_partner is False

def test_link_partner_by_email(db_session, anna, ben):
    couple = link_partner(db_session, anna.id, "ben@example.com")

    assert couple.partner_1_id == anna.id
    assert couple.partner_2_id == ben.id
    assert couple.connected is True
    # Ben's own household is folded into the couple
    assert db_session.query(Couple).count() == 1
    assert get_household(db_session, ben.id).id == couple.id

def test_link_moves_partner_expenses_and_swaps_ratios(db_session, anna, ben, test_category):
    create_expense(db_session, ben.id, ExpenseCreate(
        amount=100, date=date(2024, 2, 1), category_id=test_category.id,
        split_type="custom", split_ratio_user1=70, split_ratio_user2=30
    ))

    couple = link_partner(db_session, anna.id, "ben@example.com")
    expense = db_session.query(Expense).one()

    assert expense.couple_id == couple.id
    # Ben was user1 of his household and is user2 now
    assert expense.split_ratio_user1 == Decimal("30")
    assert expense.split_ratio_user2 == Decimal("70")

def test_link_with_self_is_rejected(db_session, anna):
    with pytest.raises(HTTPException) as excinfo:
        link_partner(db_session, anna.id, "ANNA@example.com")
    assert excinfo.value.status_code == 400

def test_link_with_unknown_email_is_rejected(db_session, anna):
    with pytest.raises(HTTPException) as excinfo:
        link_partner(db_session, anna.id, "nobody@example.com")
    assert excinfo.value.status_code == 404

def test_link_when_already_linked_conflicts(db_session, anna, ben):
    link_partner(db_session, anna.id, "ben@example.com")
    carl = create_user(db_session, UserCreate(email="carl@example.com", display_name="Carl"))

    with pytest.raises(HTTPException) as excinfo:
        link_partner(db_session, anna.id, "carl@example.com")
    assert excinfo.value.status_code == 409

    with pytest.raises(HTTPException) as excinfo:
        link_partner(db_session, carl.id, "ben@example.com")
    assert excinfo.value.status_code == 409

def test_unlink_and_relink(db_session, anna, ben):
    link_partner(db_session, anna.id, "ben@example.com")

    couple = unlink_partner(db_session, ben.id)
    assert couple.connected is False
    assert couple.partner_2_id == ben.id
    assert couple_view(couple, anna.id).has_partner is False

    couple = link_partner(db_session, anna.id, "ben@example.com")
    assert couple.connected is True

def test_unlink_without_partner_fails(db_session, anna):
    with pytest.raises(HTTPException) as excinfo:
        unlink_partner(db_session, anna.id)
    assert excinfo.value.status_code == 400

# API layer tests
def test_link_couple_api(client, anna, ben):
    response = client.post(
        f"/api/v1/couple/link?user_id={anna.id}",
        json={"partner_email": "ben@example.com"}
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["connected"] is True
    assert data["partner_2_id"] == ben.id

def test_couple_summary_api(client, test_couple, test_user, test_partner, test_category):
    client.post(
        f"/api/v1/expenses/?user_id={test_user.id}",
        json={"amount": 100, "category_id": test_category.id, "date": "2024-03-01"}
    )
    client.post(
        f"/api/v1/expenses/?user_id={test_partner.id}",
        json={
            "amount": 60, "category_id": test_category.id, "date": "2024-03-02",
            "split_type": "custom", "split_ratio_user1": 70, "split_ratio_user2": 30
        }
    )

    response = client.get(f"/api/v1/couple/summary?user_id={test_user.id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["totals"] == {"ours": 160.0, "mine": 92.0, "partner": 68.0}
    assert data["couple"]["connected"] is True
    assert data["couple"]["partner"]["email"] == "partner@example.com"
    assert data["metadata"]["currency"] == "SEK"

def test_couple_summary_api_without_partner(client, test_user):
    response = client.get(f"/api/v1/couple/summary?user_id={test_user.id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["totals"]["partner"] is None
    assert data["couple"]["partner"] is None
    assert data["metadata"]["partner_scope"] == "disabled"
