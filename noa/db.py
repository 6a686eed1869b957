# noa/db.py
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from pgvector.sqlalchemy import Vector

from noa.config import get_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """
    Engine for DATABASE_URL, created on first use so importing the models
    does not require a reachable database.
    """
    settings = get_settings()
    return create_engine(
        settings.database_url,
        echo=False,
        future=True,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(
        bind=get_engine(),
        autoflush=False,
        autocommit=False,
        future=True,
    )


class Base(DeclarativeBase):
    """
    Base class for ORM models.
    """
    pass


# Re-export Vector so models.py can import from noa.db
VectorType = Vector
