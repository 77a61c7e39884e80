"""
Request identity.

There is no authentication: clients send the id of a user they created in the
X-User-Id header, and trust within a circle comes from sharing its link.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .domain.users.service import UserService
from .models import User
from .shared.validators import validate_uuid

logger = logging.getLogger(__name__)


def _resolve_user(db: Session, user_id: str) -> Optional[User]:
    if not validate_uuid(user_id):
        return None

    service = UserService(db)
    user = service.repo.get_user_by_id(db, user_id)
    if user:
        service.touch_last_active(user)
    return user


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the acting user from X-User-Id; 401 when missing or unknown"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User ID required")

    user = _resolve_user(db, x_user_id)
    if not user:
        logger.warning(f"❌ Unknown user id in X-User-Id header: {x_user_id}")
        raise HTTPException(status_code=401, detail="Invalid user ID")
    return user


async def get_optional_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Same as get_current_user but anonymous requests are allowed"""
    if not x_user_id:
        return None
    return _resolve_user(db, x_user_id)
