"""Claim router - FastAPI endpoints for claim scheduling"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import AwareDatetime
from sqlalchemy.orm import Session

from ...database import get_db
from ...identity import get_current_user
from ...models import User
from ...services.event_broker import EventBroker, get_event_broker
from .locks import ResourceLockRegistry, get_resource_locks
from .schemas import AvailabilityResponse, ClaimCreate, ClaimResponse, ClaimStatus, ClaimUpdate
from .service import ClaimScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Claims"])


def get_claim_scheduler(
    db: Session = Depends(get_db),
    events: EventBroker = Depends(get_event_broker),
    locks: ResourceLockRegistry = Depends(get_resource_locks),
) -> ClaimScheduler:
    """Dependency injection for ClaimScheduler"""
    return ClaimScheduler(db, events, locks)


@router.get("/resources/{resource_id}/claims", response_model=list[ClaimResponse])
async def list_claims(
    resource_id: str,
    status: Optional[ClaimStatus] = Query(None),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    """Claims of a resource ordered by start time"""
    return scheduler.list_claims(resource_id, status)


@router.get("/resources/{resource_id}/availability", response_model=AvailabilityResponse)
async def check_availability(
    resource_id: str,
    start: AwareDatetime = Query(...),
    end: AwareDatetime = Query(...),
    exclude_claim_id: Optional[str] = Query(None),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    """Whether [start, end) is free, and which claims block it if not"""
    conflicts = scheduler.find_conflicts(resource_id, start, end, exclude_claim_id)
    return AvailabilityResponse(
        resource_id=resource_id,
        start_time=start,
        end_time=end,
        available=not conflicts,
        conflicts=[ClaimResponse.model_validate(c) for c in conflicts],
    )


@router.post("/resources/{resource_id}/claims", response_model=ClaimResponse, status_code=201)
async def request_claim(
    resource_id: str,
    data: ClaimCreate,
    current_user: User = Depends(get_current_user),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    """Reserve a window; 409 when it overlaps an active claim"""
    return scheduler.request_claim(
        resource_id,
        current_user.id,
        data.start_time,
        data.end_time,
        is_recurring=data.is_recurring,
        recurring_pattern=data.recurring_pattern,
        notes=data.notes,
    )


@router.get("/claims/{claim_id}", response_model=ClaimResponse)
async def get_claim(claim_id: str, scheduler: ClaimScheduler = Depends(get_claim_scheduler)):
    return scheduler.get_claim(claim_id)


@router.patch("/claims/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    claim_id: str,
    data: ClaimUpdate,
    current_user: User = Depends(get_current_user),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    return scheduler.update_claim(
        claim_id, current_user.id, start=data.start_time, end=data.end_time, notes=data.notes
    )


@router.post("/claims/{claim_id}/return", response_model=ClaimResponse)
async def return_claim(
    claim_id: str,
    current_user: User = Depends(get_current_user),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    """Hand the resource back; claimant only"""
    return scheduler.return_claim(claim_id, current_user.id)


@router.delete("/claims/{claim_id}", status_code=204)
async def cancel_claim(
    claim_id: str,
    current_user: User = Depends(get_current_user),
    scheduler: ClaimScheduler = Depends(get_claim_scheduler),
):
    scheduler.cancel_claim(claim_id, current_user.id)
    return Response(status_code=204)
