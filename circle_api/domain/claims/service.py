"""
Claim Scheduler
Decides whether a time window on a resource may be reserved and drives the
claim lifecycle.

Invariants kept here:
- start_time < end_time for every claim, including after an early return
- active claims on one resource never overlap under [start, end) semantics
- status only moves active → completed or active → cancelled

Every check-then-write runs inside the resource's in-process lock and holds the
resource row under SELECT ... FOR UPDATE until the commit, so two requests for
the same window cannot both pass the conflict check, even from separate worker
processes.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import (
    CLAIM_ACTIVE,
    CLAIM_CANCELLED,
    CLAIM_COMPLETED,
    RECURRING_PATTERNS,
    Claim,
    Resource,
    utcnow,
)
from ...services.event_broker import EventBroker
from ...shared.errors import (
    ERROR_MESSAGES,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ...utils.sanitization import validate_and_sanitize_input
from ..circles.service import CircleService
from ..resources.repository import ResourceRepository
from .intervals import Interval
from .locks import ResourceLockRegistry, resource_locks
from .repository import ClaimRepository
from .schemas import ClaimResponse

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    CLAIM_ACTIVE: {CLAIM_COMPLETED, CLAIM_CANCELLED},
    CLAIM_COMPLETED: set(),
    CLAIM_CANCELLED: set(),
}


def _as_utc(value: datetime, label: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{label} must include a timezone offset")
    return value.astimezone(timezone.utc)


class ClaimScheduler:
    """Service layer for claim scheduling and conflict detection"""

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
        self.repo = ClaimRepository()
        self.resources = ResourceRepository()
        self.circles = CircleService(db, events)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_claim(self, claim_id: str) -> Claim:
        claim = self.repo.get_claim_by_id(self.db, claim_id)
        if not claim:
            raise NotFoundError(ERROR_MESSAGES["CLAIM_NOT_FOUND"])
        return claim

    def list_claims(self, resource_id: str, status: Optional[str] = None) -> list[Claim]:
        self._get_active_resource(resource_id)
        return self.repo.get_claims_by_resource(self.db, resource_id, status)

    def find_conflicts(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_claim_id: Optional[str] = None,
    ) -> list[Claim]:
        """Active claims blocking [start, end) on the resource"""
        interval = Interval(start, end)
        self._get_active_resource(resource_id)
        return self.repo.find_conflicts(self.db, resource_id, interval, exclude_claim_id)

    def is_available(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_claim_id: Optional[str] = None,
    ) -> bool:
        """True iff no active claim overlaps [start, end), optionally ignoring one claim"""
        return not self.find_conflicts(resource_id, start, end, exclude_claim_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_claim(
        self,
        resource_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        is_recurring: bool = False,
        recurring_pattern: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Claim:
        """Reserve [start, end) on a resource for a circle member"""
        interval = Interval(start, end)
        self._validate_recurrence(is_recurring, recurring_pattern)
        notes = self._clean_notes(notes)

        resource = self._get_active_resource(resource_id)
        self.circles.require_member(resource.circle, user_id)

        with self.locks.hold(resource.id):
            try:
                # Row lock for deployments with several worker processes
                if not self.resources.get_resource_by_id(self.db, resource.id, for_update=True):
                    raise NotFoundError(ERROR_MESSAGES["RESOURCE_NOT_FOUND"])

                self._raise_on_conflicts(resource.id, interval)
                claim = self.repo.add_claim(
                    self.db,
                    resource_id=resource.id,
                    user_id=user_id,
                    start_time=interval.start,
                    end_time=interval.end,
                    is_recurring=is_recurring,
                    recurring_pattern=recurring_pattern,
                    notes=notes,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(claim)
        logger.info(
            f"📅 Claim {claim.id} created on resource {resource.id} "
            f"[{interval.start.isoformat()}, {interval.end.isoformat()}) by user {user_id}"
        )
        self._publish(resource, "claim_created", claim)
        return claim

    def update_claim(
        self,
        claim_id: str,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Claim:
        """Move an active claim and/or edit its notes; a new window is re-validated"""
        claim = self._get_owned_claim(claim_id, user_id, action="update")
        notes = self._clean_notes(notes)

        with self.locks.hold(claim.resource_id):
            try:
                self._lock_resource_row(claim.resource_id)
                claim = self.repo.get_claim_by_id(self.db, claim_id, for_update=True)
                if claim.status != CLAIM_ACTIVE:
                    raise ConflictError(
                        f"Cannot update a {claim.status} claim", details={"status": claim.status}
                    )

                interval = Interval(start or claim.start_time, end or claim.end_time)
                if interval.start != claim.start_time or interval.end != claim.end_time:
                    self._raise_on_conflicts(claim.resource_id, interval, exclude_claim_id=claim.id)
                    claim.start_time = interval.start
                    claim.end_time = interval.end

                if notes is not None:
                    claim.notes = notes

                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(claim)
        logger.info(f"📅 Claim {claim.id} updated by user {user_id}")
        self._publish(claim.resource, "claim_updated", claim)
        return claim

    def return_claim(
        self,
        claim_id: str,
        requesting_user_id: str,
        now: Optional[datetime] = None,
    ) -> Claim:
        """
        Mark an active claim completed.

        Only the claimant may return. Returning at or before the scheduled start
        is rejected (cancel instead); an early return shortens the window to
        `now`, a late return keeps the scheduled end.
        """
        now = _as_utc(now or self.clock(), "now")
        claim = self._get_owned_claim(claim_id, requesting_user_id, action="return")

        with self.locks.hold(claim.resource_id):
            try:
                self._lock_resource_row(claim.resource_id)
                claim = self.repo.get_claim_by_id(self.db, claim_id, for_update=True)
                self._check_transition(claim, CLAIM_COMPLETED)

                if now <= claim.start_time:
                    raise ConflictError(
                        "Claim has not started yet; cancel it instead",
                        details={"start_time": claim.start_time.isoformat(), "returned_at": now.isoformat()},
                    )

                if now < claim.end_time:
                    claim.end_time = now
                claim.returned_at = now
                claim.status = CLAIM_COMPLETED
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(claim)
        logger.info(f"✅ Claim {claim.id} returned by user {requesting_user_id}")
        self._publish(claim.resource, "claim_returned", claim)
        return claim

    def cancel_claim(self, claim_id: str, requesting_user_id: str) -> Claim:
        """Withdraw an active claim; its window becomes available again"""
        claim = self._get_owned_claim(claim_id, requesting_user_id, action="cancel")

        with self.locks.hold(claim.resource_id):
            try:
                self._lock_resource_row(claim.resource_id)
                claim = self.repo.get_claim_by_id(self.db, claim_id, for_update=True)
                self._check_transition(claim, CLAIM_CANCELLED)
                claim.status = CLAIM_CANCELLED
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(claim)
        logger.info(f"🚫 Claim {claim.id} cancelled by user {requesting_user_id}")
        self._publish(claim.resource, "claim_cancelled", claim)
        return claim

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_active_resource(self, resource_id: str) -> Resource:
        resource = self.resources.get_resource_by_id(self.db, resource_id)
        if not resource:
            raise NotFoundError(ERROR_MESSAGES["RESOURCE_NOT_FOUND"])
        return resource

    def _lock_resource_row(self, resource_id: str) -> None:
        """Take the resource row lock every claim mutation and resource delete share"""
        self.resources.get_resource_by_id(self.db, resource_id, include_inactive=True, for_update=True)

    def _get_owned_claim(self, claim_id: str, user_id: str, action: str) -> Claim:
        claim = self.get_claim(claim_id)
        if claim.user_id != user_id:
            logger.warning(f"⚠️ User {user_id} tried to {action} claim {claim_id} owned by {claim.user_id}")
            raise ForbiddenError(ERROR_MESSAGES["CLAIM_NOT_OWNER"])
        return claim

    def _raise_on_conflicts(
        self,
        resource_id: str,
        interval: Interval,
        exclude_claim_id: Optional[str] = None,
    ) -> None:
        conflicts = self.repo.find_conflicts(self.db, resource_id, interval, exclude_claim_id)
        if conflicts:
            blocking = [c.id for c in conflicts]
            logger.warning(
                f"⚠️ Conflict on resource {resource_id} for "
                f"[{interval.start.isoformat()}, {interval.end.isoformat()}): blocked by {blocking}"
            )
            raise ConflictError(
                ERROR_MESSAGES["RESOURCE_UNAVAILABLE"],
                details={"conflicting_claim_ids": blocking},
            )

    @staticmethod
    def _check_transition(claim: Claim, target: str) -> None:
        if target not in ALLOWED_TRANSITIONS.get(claim.status, set()):
            raise ConflictError(
                f"Cannot move claim from {claim.status} to {target}",
                details={"status": claim.status},
            )

    @staticmethod
    def _validate_recurrence(is_recurring: bool, recurring_pattern: Optional[str]) -> None:
        if recurring_pattern is None:
            return
        if recurring_pattern not in RECURRING_PATTERNS:
            raise ValidationError(f"recurring_pattern must be one of {', '.join(RECURRING_PATTERNS)}")
        if not is_recurring:
            raise ValidationError("recurring_pattern requires is_recurring")

    @staticmethod
    def _clean_notes(notes: Optional[str]) -> Optional[str]:
        try:
            return validate_and_sanitize_input(notes, max_length=500)
        except ValueError as e:
            raise ValidationError(str(e)) from None

    def _publish(self, resource: Resource, event_type: str, claim: Claim) -> None:
        self.events.publish(
            resource.circle.slug,
            event_type,
            ClaimResponse.model_validate(claim).model_dump(mode="json"),
        )
