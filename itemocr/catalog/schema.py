"""
itemocr/catalog/schema.py: Database schema definitions using SQLAlchemy
"""

from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

from itemocr.config import DATABASE_PATH

Base = declarative_base()


class Item(Base):
    """Item name in the catalog language (Traditional Chinese by default)."""
    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Item(id={self.id}, name='{self.name}')>"


def make_engine(database_path=DATABASE_PATH):
    """Create an engine for a SQLite file, creating its directory if needed."""
    database_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{database_path}", echo=False)


# Database engine and session factory
engine = create_engine(f"sqlite:///{DATABASE_PATH}", echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Initialize database - create all tables."""
    if bind is None:
        DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        bind = engine
    Base.metadata.create_all(bind=bind)
