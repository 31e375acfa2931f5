# backend/drivebook/api/dependencies/auth.py
"""
Caller identity.

Authentication is handled upstream; the gateway forwards the authenticated
user id in the X-User-Id header. Admins are listed in ADMIN_USER_IDS or
flagged on their user row.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...core.config import settings
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def is_admin_user(user_id: str, user: Optional[User] = None) -> bool:
    return user_id in settings.admin_user_ids or bool(user is not None and user.is_admin)


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "code": "NOT_AUTHENTICATED", "details": {}},
        )
    return x_user_id.strip()


def get_current_user_is_admin(
    user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)
) -> bool:
    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id)
    return is_admin_user(user_id, user)


def require_admin(
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_current_user_is_admin),
) -> str:
    if not is_admin:
        logger.warning("admin_access_denied", extra={"user_id": user_id})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Admin access required", "code": "FORBIDDEN", "details": {}},
        )
    return user_id
