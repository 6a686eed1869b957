# noa/services/database.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from noa.db import Base, get_engine, get_session_factory


@contextmanager
def db_session(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    db = (factory or get_session_factory())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Ensure pgvector extension and create all tables.
    Called once from the application lifespan.
    """
    engine = get_engine()
    if engine.dialect.name == "postgresql":
        with engine.connect() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector;"))
            conn.commit()

    Base.metadata.create_all(bind=engine)
