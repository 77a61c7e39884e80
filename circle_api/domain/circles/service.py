"""Circle service - Business logic for circles and the membership directory"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import FRONTEND_URL
from ...models import Circle, CircleMember, User
from ...services.event_broker import EventBroker
from ...shared.errors import ERROR_MESSAGES, ForbiddenError, NotFoundError, ServerError, ValidationError
from ...shared.validators import generate_slug, validate_display_name
from ...utils.sanitization import validate_and_sanitize_input
from ..users.repository import UserRepository
from ..users.schemas import UserResponse
from .repository import CircleRepository
from .schemas import CIRCLE_NAME_MAX_LENGTH

logger = logging.getLogger(__name__)

# A six character random suffix makes collisions rare; a few retries make them moot
MAX_SLUG_ATTEMPTS = 5


def share_url(circle: Circle) -> str:
    return f"{FRONTEND_URL}/join/{circle.slug}"


class CircleService:
    """Service layer for circles and memberships"""

    def __init__(self, db: Session, events: EventBroker):
        self.db = db
        self.events = events
        self.repo = CircleRepository()
        self.users = UserRepository()

    def create_circle(
        self,
        name: str,
        description: Optional[str] = None,
        creator: Optional[User] = None,
    ) -> Circle:
        """Create a circle with a fresh slug; the creator, if known, joins it"""
        try:
            name = validate_display_name(name, CIRCLE_NAME_MAX_LENGTH)
            description = validate_and_sanitize_input(description, max_length=500)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        for _ in range(MAX_SLUG_ATTEMPTS):
            slug = generate_slug(name)
            if not self.repo.slug_exists(self.db, slug):
                break
        else:
            logger.error(f"❌ Could not allocate a unique slug for circle {name!r}")
            raise ServerError("Failed to create circle")

        circle = self.repo.create_circle(self.db, name, slug, description)
        logger.info(f"⭕ Created circle {circle.slug}")

        if creator is not None:
            self.repo.activate_membership(self.db, circle.id, creator.id)

        return circle

    def get_circle(self, slug: str) -> Circle:
        circle = self.repo.get_circle_by_slug(self.db, slug)
        if not circle:
            raise NotFoundError(ERROR_MESSAGES["CIRCLE_NOT_FOUND"])
        return circle

    def list_members(self, slug: str) -> list[User]:
        circle = self.get_circle(slug)
        return self.repo.get_active_members(self.db, circle.id)

    def is_member(self, circle_id: str, user_id: str) -> bool:
        return self.repo.is_member(self.db, circle_id, user_id)

    def require_member(self, circle: Circle, user_id: str) -> None:
        if not self.is_member(circle.id, user_id):
            logger.warning(f"⚠️ User {user_id} is not a member of circle {circle.slug}")
            raise ForbiddenError(ERROR_MESSAGES["USER_NOT_MEMBER"])

    def join_circle(self, slug: str, user_id: str) -> tuple[CircleMember, bool]:
        """
        Join, or rejoin after leaving.

        Returns the membership and whether it was (re)activated by this call;
        a current member gets the existing row back unchanged and no event.
        """
        circle = self.get_circle(slug)
        user = self.users.get_user_by_id(self.db, user_id)
        if not user:
            raise NotFoundError(ERROR_MESSAGES["USER_NOT_FOUND"])

        existing = self.repo.get_membership(self.db, circle.id, user.id)
        if existing and existing.is_active:
            return existing, False

        membership = self.repo.activate_membership(self.db, circle.id, user.id)
        logger.info(f"👋 User {user.id} joined circle {circle.slug}")

        self.events.publish(
            circle.slug, "user_joined", UserResponse.model_validate(user).model_dump(mode="json")
        )
        return membership, True

    def leave_circle(self, slug: str, user: User) -> CircleMember:
        circle = self.get_circle(slug)
        membership = self.repo.get_membership(self.db, circle.id, user.id)
        if not membership or not membership.is_active:
            raise NotFoundError("Membership not found")

        membership = self.repo.deactivate_membership(self.db, membership)
        logger.info(f"👋 User {user.id} left circle {circle.slug}")

        self.events.publish(
            circle.slug, "user_left", UserResponse.model_validate(user).model_dump(mode="json")
        )
        return membership
