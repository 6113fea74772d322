import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class Miscellaneous(Base):
    """Ad-hoc delivery to someone who is not a registered customer."""
    __tablename__ = "miscellaneous"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    moderator_id = Column(UUID(as_uuid=True), ForeignKey("moderators.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    is_paid = Column(Boolean, nullable=False, default=False)
    payment = Column(Integer, nullable=False, default=0)
    filled_bottles = Column(Integer, nullable=False, default=0)
    empty_bottles = Column(Integer, nullable=False, default=0)
    damaged_bottles = Column(Integer, nullable=False, default=0)
    delivery_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "moderator_id": self.moderator_id,
            "customer_name": self.customer_name,
            "description": self.description,
            "is_paid": bool(self.is_paid),
            "payment": self.payment,
            "filled_bottles": self.filled_bottles,
            "empty_bottles": self.empty_bottles,
            "damaged_bottles": self.damaged_bottles,
            "delivery_date": self.delivery_date,
            "created_at": self.created_at,
        }
