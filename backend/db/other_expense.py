import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class OtherExpense(Base):
    __tablename__ = "other_expenses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    moderator_id = Column(UUID(as_uuid=True), ForeignKey("moderators.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    description = Column(Text, nullable=False, default="")
    refilled_bottles = Column(Integer, nullable=False, default=0)
    date = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "moderator_id": self.moderator_id,
            "amount": self.amount,
            "description": self.description,
            "refilled_bottles": self.refilled_bottles,
            "date": self.date,
            "created_at": self.created_at,
        }
