import os

# Point the app at the test database before anything reads the settings
TEST_DATABASE_URL = "sqlite:///./test.db"
os.environ["COUPLELEDGER_DATABASE_URL"] = TEST_DATABASE_URL

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from uuid import uuid4

from coupleledger.app.models.models import Base, User, Couple, Category
from coupleledger.app.database import get_db_session
from coupleledger.app.main import app

@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    # Teardown - drop all tables
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="function")
def db_session(db_engine):
    """Returns a fresh SQLAlchemy session for each test"""
    Session = sessionmaker(bind=db_engine)
    session = Session()

    # Clear out test data from previous run, children first
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()

    yield session
    session.close()

@pytest.fixture
def client(db_session):
    """Test client fixture that uses the db_session fixture"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

@pytest.fixture
def test_user(db_session):
    """Creates a test user and returns it"""
    user = User(
        id=str(uuid4()),
        email="test@example.com",
        display_name="Test User"
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user

@pytest.fixture
def test_partner(db_session):
    """Creates the second user of the couple"""
    partner = User(
        id=str(uuid4()),
        email="partner@example.com",
        display_name="Partner User"
    )
    db_session.add(partner)
    db_session.commit()
    db_session.refresh(partner)
    return partner

@pytest.fixture
def test_couple(db_session, test_user, test_partner):
    """Creates a connected couple: test_user is user1, test_partner user2"""
    couple = Couple(
        id=str(uuid4()),
        partner_1_id=test_user.id,
        partner_2_id=test_partner.id,
        connected=True
    )
    db_session.add(couple)
    db_session.commit()
    db_session.refresh(couple)
    return couple

@pytest.fixture
def test_category(db_session):
    """Creates a test category and returns it"""
    category = Category(
        id=str(uuid4()),
        name="Groceries",
        icon="cart"
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category

@pytest.fixture
def second_category(db_session):
    category = Category(
        id=str(uuid4()),
        name="Rent",
        icon="home"
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category
