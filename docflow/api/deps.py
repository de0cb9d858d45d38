from functools import lru_cache
from typing import Generator

from docflow.core.config import get_settings
from docflow.db.session import SessionLocal
from docflow.services.collaborators import Collaborators


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def _shared_collaborators() -> Collaborators:
    # One connection pool for the whole process
    return Collaborators.from_settings(get_settings())


def get_collaborators() -> Collaborators:
    """Outbound service clients dependency."""
    return _shared_collaborators()
