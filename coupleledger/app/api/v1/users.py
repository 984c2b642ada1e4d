from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from coupleledger.app.schemas.users import UserCreate, UserResponse, UserUpdate
from coupleledger.app.services.user_service import (
    create_user, get_user_by_id, get_user_by_email, get_all_users, update_user
)
from coupleledger.app.database import get_db_session

router = APIRouter()

@router.post("/", response_model=UserResponse)
def create_user_route(user_data: UserCreate, db: Session = Depends(get_db_session)):
    """
    Register a user.

    - 400 if the email is taken
    - The user starts in a household of one until a partner is linked
    """
    return create_user(db, user_data)

@router.get("/", response_model=List[UserResponse])
def get_users_route(db: Session = Depends(get_db_session)):
    """All registered users"""
    return get_all_users(db)

@router.get("/lookup", response_model=UserResponse)
def lookup_user_route(email: str = Query(..., description="Email to look up"), db: Session = Depends(get_db_session)):
    """
    Find a user by email, e.g. before sending a link request.

    - 404 if nobody is registered with that email
    """
    user = get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=404, detail=f"No user registered with email {email}")
    return user

@router.get("/{user_id}", response_model=UserResponse)
def get_user_route(user_id: str, db: Session = Depends(get_db_session)):
    """One user by ID; 404 if unknown"""
    return get_user_by_id(db, user_id)

@router.patch("/{user_id}", response_model=UserResponse)
def update_user_route(user_id: str, user_data: UserUpdate, db: Session = Depends(get_db_session)):
    """
    Change display name or color.

    - Email is fixed once registered
    """
    return update_user(db, user_id, user_data)
