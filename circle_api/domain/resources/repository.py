"""Resource repository - Database operations for resources"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Resource


class ResourceRepository:
    """Repository for resource database operations"""

    @staticmethod
    def get_resource_by_id(
        db: Session,
        resource_id: str,
        include_inactive: bool = False,
        for_update: bool = False,
    ) -> Optional[Resource]:
        query = db.query(Resource).filter(Resource.id == resource_id)
        if not include_inactive:
            query = query.filter(Resource.is_active.is_(True))
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_resources_by_circle(db: Session, circle_id: str) -> list[Resource]:
        """Active resources of a circle, newest first"""
        return (
            db.query(Resource)
            .filter(Resource.circle_id == circle_id, Resource.is_active.is_(True))
            .order_by(Resource.created_at.desc())
            .all()
        )

    @staticmethod
    def create_resource(db: Session, **resource_data) -> Resource:
        resource = Resource(**resource_data)
        db.add(resource)
        db.commit()
        db.refresh(resource)
        return resource

    @staticmethod
    def update_resource(db: Session, resource: Resource, **updates) -> Resource:
        """Update a resource with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(resource, key):
                setattr(resource, key, value)

        db.commit()
        db.refresh(resource)
        return resource

    @staticmethod
    def soft_delete_resource(db: Session, resource: Resource) -> Resource:
        """Resources are never hard-deleted; claims keep pointing at them"""
        resource.is_active = False
        db.commit()
        db.refresh(resource)
        return resource
