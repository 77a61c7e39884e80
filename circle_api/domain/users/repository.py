"""User repository - Database operations for users"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import User, utcnow


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def create_user(db: Session, name: str) -> User:
        user = User(name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update_user(db: Session, user: User, name: str) -> User:
        """Rename a user; counts as activity"""
        user.name = name
        user.last_active = utcnow()
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def touch_last_active(db: Session, user: User) -> User:
        user.last_active = utcnow()
        db.commit()
        db.refresh(user)
        return user
