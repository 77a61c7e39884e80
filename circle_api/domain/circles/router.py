"""Circle router - FastAPI endpoints for circles, membership and the event stream"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...config import SSE_KEEPALIVE_SECONDS
from ...database import get_db
from ...identity import get_current_user, get_optional_user
from ...models import Circle, User
from ...services.event_broker import CircleEvent, EventBroker, get_event_broker
from ..users.schemas import UserResponse
from .schemas import CircleCreate, CircleResponse, JoinCircleRequest, MembershipResponse
from .service import CircleService, share_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/circles", tags=["Circles"])


def get_circle_service(
    db: Session = Depends(get_db),
    events: EventBroker = Depends(get_event_broker),
) -> CircleService:
    """Dependency injection for CircleService"""
    return CircleService(db, events)


def _circle_response(circle: Circle) -> CircleResponse:
    return CircleResponse.model_validate(circle).model_copy(update={"share_url": share_url(circle)})


@router.post("", response_model=CircleResponse, status_code=201)
async def create_circle(
    data: CircleCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    service: CircleService = Depends(get_circle_service),
):
    """Create a circle. When X-User-Id is sent the creator becomes its first member."""
    circle = service.create_circle(data.name, data.description, creator=current_user)
    return _circle_response(circle)


@router.get("/{slug}", response_model=CircleResponse)
async def get_circle(slug: str, service: CircleService = Depends(get_circle_service)):
    return _circle_response(service.get_circle(slug))


@router.get("/{slug}/members", response_model=list[UserResponse])
async def list_members(slug: str, service: CircleService = Depends(get_circle_service)):
    return service.list_members(slug)


@router.post("/{slug}/join", response_model=MembershipResponse, status_code=201)
async def join_circle(
    slug: str,
    data: JoinCircleRequest,
    response: Response,
    service: CircleService = Depends(get_circle_service),
):
    """201 when the user joins or rejoins, 200 when they already belong"""
    membership, joined = service.join_circle(slug, data.user_id)
    if not joined:
        response.status_code = 200
    return membership


@router.post("/{slug}/leave", response_model=MembershipResponse)
async def leave_circle(
    slug: str,
    current_user: User = Depends(get_current_user),
    service: CircleService = Depends(get_circle_service),
):
    return service.leave_circle(slug, current_user)


@router.get("/{slug}/events")
async def circle_events(
    slug: str,
    request: Request,
    service: CircleService = Depends(get_circle_service),
    events: EventBroker = Depends(get_event_broker),
):
    """Server-sent events stream of everything that changes inside a circle"""
    circle = service.get_circle(slug)

    async def event_stream():
        subscription = events.subscribe(circle.slug)
        logger.info(f"📡 Event stream opened for circle {circle.slug}")
        try:
            yield CircleEvent(type="connected", data={"circle": circle.slug}).to_sse()
            while not await request.is_disconnected():
                event = await subscription.get(timeout=SSE_KEEPALIVE_SECONDS)
                if event is None:
                    yield ": keepalive\n\n"
                else:
                    yield event.to_sse()
        finally:
            events.unsubscribe(circle.slug, subscription)
            logger.info(f"📡 Event stream closed for circle {circle.slug}")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
