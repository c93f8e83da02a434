from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from storefront.core_settings import get_settings
from storefront.domain.models import Base

settings = get_settings()
DATABASE_URL = settings.database_url
engine = create_engine(DATABASE_URL, echo=False, future=True, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a block of writes as one transaction.

    Commits when the block finishes and rolls back every write made inside it
    when anything raises; the original exception is re-raised unchanged.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise

def init_models():
    Base.metadata.create_all(engine)
