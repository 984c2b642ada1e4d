from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.models.models import User, Couple
from coupleledger.app.schemas.users import UserCreate, UserUpdate

logger = structlog.get_logger(__name__)

def create_user(db: Session, user_data: UserCreate):
    """Service function to create a new user together with their own household"""
    # Check if user with this email already exists
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        email=user_data.email,
        display_name=user_data.display_name,
        color=user_data.color
    )
    db.add(new_user)
    db.flush()

    # Every user starts in a household of one until they link a partner
    db.add(Couple(partner_1_id=new_user.id, connected=False))
    db.commit()
    db.refresh(new_user)

    logger.info("user_created", user_id=new_user.id)
    return new_user

def get_all_users(db: Session):
    """Service function to get all users"""
    return db.query(User).all()

def get_user_by_id(db: Session, user_id: str):
    """Service function to get a user by ID"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail=f"User with id {user_id} not found")
    return user

def get_user_by_email(db: Session, email: str):
    """Service function to get a user by email"""
    return db.query(User).filter(User.email == email).first()

def update_user(db: Session, user_id: str, user_data: UserUpdate):
    """Service function to update a user's information"""
    user = get_user_by_id(db, user_id)

    if user_data.display_name is not None:
        user.display_name = user_data.display_name
    if user_data.color is not None:
        user.color = user_data.color

    db.commit()
    db.refresh(user)
    return user

def display_name(user: User) -> str:
    """Name used in settlement messages; falls back to the email's local part"""
    if user is None:
        return "Unknown"
    return user.display_name or user.email.split("@")[0]
