"""Resource router - FastAPI endpoints for the resource registry"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...database import get_db
from ...identity import get_current_user
from ...models import User
from ...services.event_broker import EventBroker, get_event_broker
from ..claims.locks import ResourceLockRegistry, get_resource_locks
from .schemas import ResourceCreate, ResourceResponse, ResourceUpdate
from .service import ResourceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Resources"])


def get_resource_service(
    db: Session = Depends(get_db),
    events: EventBroker = Depends(get_event_broker),
    locks: ResourceLockRegistry = Depends(get_resource_locks),
) -> ResourceService:
    """Dependency injection for ResourceService"""
    return ResourceService(db, events, locks)


@router.get("/circles/{slug}/resources", response_model=list[ResourceResponse])
async def list_resources(slug: str, service: ResourceService = Depends(get_resource_service)):
    """Active resources of a circle, newest first, with current availability"""
    return [service.to_response(r) for r in service.list_resources(slug)]


@router.post("/circles/{slug}/resources", response_model=ResourceResponse, status_code=201)
async def create_resource(
    slug: str,
    data: ResourceCreate,
    current_user: User = Depends(get_current_user),
    service: ResourceService = Depends(get_resource_service),
):
    resource = service.create_resource(
        slug, current_user, data.name, description=data.description, category=data.category
    )
    return service.to_response(resource)


@router.get("/resources/{resource_id}", response_model=ResourceResponse)
async def get_resource(resource_id: str, service: ResourceService = Depends(get_resource_service)):
    return service.to_response(service.get_resource(resource_id))


@router.put("/resources/{resource_id}", response_model=ResourceResponse)
async def update_resource(
    resource_id: str,
    data: ResourceUpdate,
    current_user: User = Depends(get_current_user),
    service: ResourceService = Depends(get_resource_service),
):
    """Update a resource; creator only"""
    resource = service.update_resource(
        resource_id,
        current_user,
        name=data.name,
        description=data.description,
        category=data.category,
    )
    return service.to_response(resource)


@router.delete("/resources/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: str,
    current_user: User = Depends(get_current_user),
    service: ResourceService = Depends(get_resource_service),
):
    """Soft delete; refused with 409 while active claims exist"""
    service.delete_resource(resource_id, current_user)
    return Response(status_code=204)
