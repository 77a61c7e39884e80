"""User service - Business logic for user operations"""

import logging

from sqlalchemy.orm import Session

from ...models import User
from ...shared.errors import ERROR_MESSAGES, ForbiddenError, NotFoundError, ValidationError
from ...shared.validators import validate_display_name
from .repository import UserRepository
from .schemas import USER_NAME_MAX_LENGTH

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    def create_user(self, name: str) -> User:
        try:
            name = validate_display_name(name, USER_NAME_MAX_LENGTH)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        user = self.repo.create_user(self.db, name)
        logger.info(f"👤 Created user {user.id}")
        return user

    def get_user(self, user_id: str) -> User:
        user = self.repo.get_user_by_id(self.db, user_id)
        if not user:
            raise NotFoundError(ERROR_MESSAGES["USER_NOT_FOUND"])
        return user

    def update_user(self, user_id: str, actor: User, name: str) -> User:
        """Users may only rename themselves"""
        if user_id != actor.id:
            raise ForbiddenError("Can only update your own profile")

        try:
            name = validate_display_name(name, USER_NAME_MAX_LENGTH)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        return self.repo.update_user(self.db, self.get_user(user_id), name)

    def touch_last_active(self, user: User) -> User:
        return self.repo.touch_last_active(self.db, user)
