import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class BottleUsage(Base):
    """One moderator's bottle counters for one local calendar day."""
    __tablename__ = "bottle_usage"
    __table_args__ = (
        UniqueConstraint("moderator_id", "usage_date", name="uq_bottle_usage_moderator_day"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    moderator_id = Column(UUID(as_uuid=True), ForeignKey("moderators.id", ondelete="CASCADE"), nullable=False, index=True)
    usage_date = Column(Date, nullable=False, index=True)

    filled_bottles = Column(Integer, nullable=False, default=0)
    sales = Column(Integer, nullable=False, default=0)
    empty_bottles = Column(Integer, nullable=False, default=0)
    remaining_bottles = Column(Integer, nullable=False, default=0)
    returned_bottles = Column(Integer, nullable=False, default=0)
    empty_returned = Column(Integer, nullable=False, default=0)
    remaining_returned = Column(Integer, nullable=False, default=0)
    damaged_bottles = Column(Integer, nullable=False, default=0)
    refilled_bottles = Column(Integer, nullable=False, default=0)
    caps = Column(Integer, nullable=False, default=0)
    revenue = Column(Integer, nullable=False, default=0)
    expense = Column(Integer, nullable=False, default=0)
    done = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "moderator_id": self.moderator_id,
            "usage_date": self.usage_date,
            "filled_bottles": self.filled_bottles,
            "sales": self.sales,
            "empty_bottles": self.empty_bottles,
            "remaining_bottles": self.remaining_bottles,
            "returned_bottles": self.returned_bottles,
            "empty_returned": self.empty_returned,
            "remaining_returned": self.remaining_returned,
            "damaged_bottles": self.damaged_bottles,
            "refilled_bottles": self.refilled_bottles,
            "caps": self.caps,
            "revenue": self.revenue,
            "expense": self.expense,
            "done": bool(self.done),
            "created_at": self.created_at,
        }
