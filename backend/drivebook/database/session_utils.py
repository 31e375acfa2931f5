# backend/drivebook/database/session_utils.py
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Name of the dialect behind ``session`` ("sqlite", "postgresql", ...)."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    return bind.dialect.name or default
