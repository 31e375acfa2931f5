# backend/drivebook/models/user.py
"""Minimal user record; identity itself is managed by the auth provider."""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<User {self.email}>"
