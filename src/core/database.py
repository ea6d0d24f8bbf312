"""Database connection and session management.

This module handles the database connection using SQLAlchemy.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config import DATA_DIR, DATABASE_URL
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401

_connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # Ensure data directory exists
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    _connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency for getting a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

