from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coupleledger.app.config import get_settings

DATABASE_URL = get_settings().database_url

engine = create_engine(
    DATABASE_URL, connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def create_tables():
    from coupleledger.app.models.models import Base
    Base.metadata.create_all(bind=engine)

def drop_tables():
    from coupleledger.app.models.models import Base
    Base.metadata.drop_all(bind=engine)

# One session per request; anything left uncommitted by a failed request is rolled back
def get_db_session():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
