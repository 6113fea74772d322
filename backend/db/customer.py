import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(String, nullable=False, unique=True, index=True)  # business code, lowercase
    name = Column(String, nullable=False)
    address = Column(Text, nullable=False)
    area = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    mobile_number = Column(String, nullable=True)

    bottle_price = Column(Integer, nullable=False)
    bottles = Column(Integer, nullable=False, default=0)  # bottles currently held
    deposit = Column(Integer, nullable=False, default=0)  # bottles on deposit
    deposit_price = Column(Integer, nullable=False, default=1000)
    balance = Column(Integer, nullable=False, default=0)  # may go negative (owed)
    is_active = Column(Boolean, nullable=False, default=True)
    customer_since = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "name": self.name,
            "address": self.address,
            "area": self.area,
            "phone": self.phone,
            "mobile_number": self.mobile_number,
            "bottle_price": self.bottle_price,
            "bottles": self.bottles,
            "deposit": self.deposit,
            "deposit_price": self.deposit_price,
            "balance": self.balance,
            "is_active": bool(self.is_active),
            "customer_since": self.customer_since,
        }
