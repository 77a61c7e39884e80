"""Circle repository - Database operations for circles and memberships"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Circle, CircleMember, User, utcnow


class CircleRepository:
    """Repository for circle and membership database operations"""

    @staticmethod
    def get_circle_by_slug(db: Session, slug: str) -> Optional[Circle]:
        return db.query(Circle).filter(Circle.slug == slug).first()

    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Circle.id).filter(Circle.slug == slug).first() is not None

    @staticmethod
    def create_circle(db: Session, name: str, slug: str, description: Optional[str]) -> Circle:
        circle = Circle(name=name, slug=slug, description=description)
        db.add(circle)
        db.commit()
        db.refresh(circle)
        return circle

    @staticmethod
    def get_active_members(db: Session, circle_id: str) -> list[User]:
        return (
            db.query(User)
            .join(CircleMember, CircleMember.user_id == User.id)
            .filter(CircleMember.circle_id == circle_id, CircleMember.is_active.is_(True))
            .order_by(CircleMember.joined_at)
            .all()
        )

    @staticmethod
    def get_membership(db: Session, circle_id: str, user_id: str) -> Optional[CircleMember]:
        return (
            db.query(CircleMember)
            .filter(CircleMember.circle_id == circle_id, CircleMember.user_id == user_id)
            .first()
        )

    @staticmethod
    def is_member(db: Session, circle_id: str, user_id: str) -> bool:
        return (
            db.query(CircleMember.id)
            .filter(
                CircleMember.circle_id == circle_id,
                CircleMember.user_id == user_id,
                CircleMember.is_active.is_(True),
            )
            .first()
            is not None
        )

    @staticmethod
    def activate_membership(db: Session, circle_id: str, user_id: str) -> CircleMember:
        """
        Add a member, or re-activate a previous membership.
        The (circle_id, user_id) unique constraint keeps one row per pair.
        """
        membership = CircleRepository.get_membership(db, circle_id, user_id)
        if membership:
            membership.is_active = True
            membership.joined_at = utcnow()
        else:
            membership = CircleMember(circle_id=circle_id, user_id=user_id)
            db.add(membership)

        db.commit()
        db.refresh(membership)
        return membership

    @staticmethod
    def deactivate_membership(db: Session, membership: CircleMember) -> CircleMember:
        membership.is_active = False
        db.commit()
        db.refresh(membership)
        return membership
