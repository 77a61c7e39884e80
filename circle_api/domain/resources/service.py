"""Resource service - Business logic for the resource registry"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import Resource, User, utcnow
from ...services.event_broker import EventBroker
from ...shared.errors import ERROR_MESSAGES, ConflictError, ForbiddenError, NotFoundError, ValidationError
from ...shared.validators import validate_display_name
from ...utils.sanitization import sanitize_string, validate_and_sanitize_input
from ..circles.service import CircleService
from ..claims.intervals import Interval
from ..claims.locks import ResourceLockRegistry, resource_locks
from ..claims.repository import ClaimRepository
from .repository import ResourceRepository
from .schemas import RESOURCE_NAME_MAX_LENGTH, ResourceResponse

logger = logging.getLogger(__name__)


class ResourceService:
    """Service layer for resource business logic"""

    def __init__(
        self,
        db: Session,
        events: EventBroker,
        locks: ResourceLockRegistry = resource_locks,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.events = events
        self.locks = locks
        self.clock = clock
        self.repo = ResourceRepository()
        self.claims = ClaimRepository()
        self.circles = CircleService(db, events)

    def list_resources(self, circle_slug: str) -> list[Resource]:
        circle = self.circles.get_circle(circle_slug)
        return self.repo.get_resources_by_circle(self.db, circle.id)

    def get_resource(self, resource_id: str) -> Resource:
        resource = self.repo.get_resource_by_id(self.db, resource_id)
        if not resource:
            raise NotFoundError(ERROR_MESSAGES["RESOURCE_NOT_FOUND"])
        return resource

    def is_available_now(self, resource: Resource) -> bool:
        """Derived availability: no active claim overlaps the current instant"""
        return not self.claims.find_conflicts(self.db, resource.id, Interval.at(self.clock()))

    def to_response(self, resource: Resource) -> ResourceResponse:
        return ResourceResponse.model_validate(resource).model_copy(
            update={"is_available_now": self.is_available_now(resource)}
        )

    def create_resource(
        self,
        circle_slug: str,
        user: User,
        name: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Resource:
        """Register a resource; only circle members may add to a circle"""
        circle = self.circles.get_circle(circle_slug)
        self.circles.require_member(circle, user.id)

        resource_data = {
            "circle_id": circle.id,
            "created_by": user.id,
            "name": sanitize_string(self._clean_name(name)),
            "description": self._clean_text(description, 500),
            "category": self._clean_text(category, 50),
        }
        resource = self.repo.create_resource(self.db, **resource_data)
        logger.info(f"📦 Resource {resource.id} created in circle {circle.slug} by user {user.id}")

        self._publish(resource, "resource_created")
        return resource

    def update_resource(
        self,
        resource_id: str,
        user: User,
        name: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Resource:
        resource = self._get_owned_resource(resource_id, user)

        updates = {}
        if name is not None:
            updates["name"] = sanitize_string(self._clean_name(name))
        if description is not None:
            updates["description"] = self._clean_text(description, 500)
        if category is not None:
            updates["category"] = self._clean_text(category, 50)

        resource = self.repo.update_resource(self.db, resource, **updates)
        logger.info(f"📦 Resource {resource.id} updated by user {user.id}")

        self._publish(resource, "resource_updated")
        return resource

    def delete_resource(self, resource_id: str, user: User) -> Resource:
        """
        Soft delete. Refused while the resource still has active claims, checked
        under the resource lock so no claim can slip in between.
        """
        resource = self._get_owned_resource(resource_id, user)

        with self.locks.hold(resource.id):
            try:
                # Same row lock request_claim takes, so no claim commits mid-delete
                self.repo.get_resource_by_id(self.db, resource.id, include_inactive=True, for_update=True)
                if self.claims.has_active_claims(self.db, resource.id):
                    logger.warning(f"⚠️ Refusing to delete resource {resource.id} with active claims")
                    raise ConflictError(ERROR_MESSAGES["RESOURCE_HAS_ACTIVE_CLAIMS"])
                resource = self.repo.soft_delete_resource(self.db, resource)
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"🗑️ Resource {resource.id} deleted by user {user.id}")
        self._publish(resource, "resource_deleted")
        return resource

    def _get_owned_resource(self, resource_id: str, user: User) -> Resource:
        resource = self.get_resource(resource_id)
        if resource.created_by != user.id:
            logger.warning(f"⚠️ User {user.id} is not the owner of resource {resource.id}")
            raise ForbiddenError(ERROR_MESSAGES["RESOURCE_NOT_OWNER"])
        return resource

    @staticmethod
    def _clean_name(name: str) -> str:
        try:
            return validate_display_name(name, RESOURCE_NAME_MAX_LENGTH)
        except ValueError as e:
            raise ValidationError(str(e)) from None

    @staticmethod
    def _clean_text(value: Optional[str], max_length: int) -> Optional[str]:
        try:
            return validate_and_sanitize_input(value, max_length=max_length)
        except ValueError as e:
            raise ValidationError(str(e)) from None

    def _publish(self, resource: Resource, event_type: str) -> None:
        self.events.publish(
            resource.circle.slug,
            event_type,
            ResourceResponse.model_validate(resource).model_dump(mode="json"),
        )
