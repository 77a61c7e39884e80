import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base

CLAIM_ACTIVE = "active"
CLAIM_COMPLETED = "completed"
CLAIM_CANCELLED = "cancelled"

RECURRING_PATTERNS = ("weekly", "monthly")


def generate_id():
    """Generate a UUID4 string identifier"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamp on every backend.

    PostgreSQL keeps the offset natively; SQLite stores naive UTC text, so
    values are normalized to UTC on the way in and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored, attach a timezone")
        value = value.astimezone(timezone.utc)
        if dialect.name == "postgresql":
            return value
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    last_active = Column(UTCDateTime, default=utcnow, nullable=False)

    memberships = relationship("CircleMember", back_populates="user")


class Circle(Base):
    __tablename__ = "circles"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    # Assigned once at creation, never changes
    slug = Column(String(120), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    members = relationship("CircleMember", back_populates="circle")
    resources = relationship("Resource", back_populates="circle")


class CircleMember(Base):
    __tablename__ = "circle_members"
    __table_args__ = (UniqueConstraint("circle_id", "user_id", name="uq_circle_member"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    circle_id = Column(String(36), ForeignKey("circles.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    joined_at = Column(UTCDateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    circle = relationship("Circle", back_populates="members")
    user = relationship("User", back_populates="memberships")


class Resource(Base):
    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=generate_id)
    circle_id = Column(String(36), ForeignKey("circles.id"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    # Stored HTML-escaped, which can be several times the 100 character input limit
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)  # Soft delete flag
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    circle = relationship("Circle", back_populates="resources")
    # Back-reference only; soft-deleting a resource leaves its claims in place
    claims = relationship("Claim", back_populates="resource")


class Claim(Base):
    """Time-bounded reservation of a resource over [start_time, end_time)"""

    __tablename__ = "claims"
    __table_args__ = (
        Index("ix_claims_resource_status_window", "resource_id", "status", "start_time", "end_time"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    resource_id = Column(String(36), ForeignKey("resources.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)  # Exclusive upper bound
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurring_pattern = Column(String(20), nullable=True)  # weekly, monthly; metadata only
    # Status workflow: active → completed (returned) | active → cancelled
    status = Column(String(20), default=CLAIM_ACTIVE, nullable=False)
    notes = Column(Text, nullable=True)
    returned_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    resource = relationship("Resource", back_populates="claims")
