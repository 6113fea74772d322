import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    moderator_id = Column(UUID(as_uuid=True), ForeignKey("moderators.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    payment = Column(Integer, nullable=False, default=0)
    filled_bottles = Column(Integer, nullable=False, default=0)
    empty_bottles = Column(Integer, nullable=False, default=0)
    foc = Column(Integer, nullable=False, default=0)  # free of charge
    damaged_bottles = Column(Integer, nullable=False, default=0)
    is_online = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "moderator_id": self.moderator_id,
            "delivery_date": self.delivery_date,
            "payment": self.payment,
            "filled_bottles": self.filled_bottles,
            "empty_bottles": self.empty_bottles,
            "foc": self.foc,
            "damaged_bottles": self.damaged_bottles,
            "is_online": bool(self.is_online),
            "created_at": self.created_at,
        }
