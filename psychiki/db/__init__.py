"""Database helpers (engine/session export, schema bootstrap)."""

from .session import Base, get_engine, get_session
from . import models  # noqa: F401  # registers tables on Base.metadata


def create_all() -> None:
    """Create missing tables; existing ones are left untouched."""
    Base.metadata.create_all(bind=get_engine())


__all__ = ["Base", "create_all", "get_engine", "get_session"]
