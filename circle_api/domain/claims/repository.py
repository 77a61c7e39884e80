"""Claim repository - Database operations for claims

Writes here only flush; the scheduler commits inside its per-resource
critical section.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CLAIM_ACTIVE, Claim
from .intervals import Interval


class ClaimRepository:
    """Repository for claim database operations"""

    @staticmethod
    def get_claim_by_id(db: Session, claim_id: str, for_update: bool = False) -> Optional[Claim]:
        query = db.query(Claim).filter(Claim.id == claim_id)
        if for_update:
            # Re-read under the row lock so a concurrent transition is seen
            query = query.populate_existing().with_for_update()
        return query.first()

    @staticmethod
    def get_claims_by_resource(
        db: Session, resource_id: str, status: Optional[str] = None
    ) -> list[Claim]:
        query = db.query(Claim).filter(Claim.resource_id == resource_id)
        if status:
            query = query.filter(Claim.status == status)
        return query.order_by(Claim.start_time, Claim.created_at).all()

    @staticmethod
    def find_conflicts(
        db: Session,
        resource_id: str,
        interval: Interval,
        exclude_claim_id: Optional[str] = None,
    ) -> list[Claim]:
        """Active claims on the resource whose [start, end) overlaps `interval`"""
        query = db.query(Claim).filter(
            Claim.resource_id == resource_id,
            Claim.status == CLAIM_ACTIVE,
            interval.overlap_clause(Claim.start_time, Claim.end_time),
        )
        if exclude_claim_id:
            query = query.filter(Claim.id != exclude_claim_id)
        return query.order_by(Claim.start_time).all()

    @staticmethod
    def has_active_claims(db: Session, resource_id: str) -> bool:
        return (
            db.query(Claim.id)
            .filter(Claim.resource_id == resource_id, Claim.status == CLAIM_ACTIVE)
            .first()
            is not None
        )

    @staticmethod
    def add_claim(db: Session, **claim_data) -> Claim:
        claim = Claim(status=CLAIM_ACTIVE, **claim_data)
        db.add(claim)
        db.flush()
        return claim
