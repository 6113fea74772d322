import uuid
from sqlalchemy import Boolean, Column, DateTime, JSON, String
from sqlalchemy.dialects.postgresql import UUID

from core.dates import utcnow
from .database import Base


class Moderator(Base):
    """Field agent running daily delivery routes. Names are stored lowercase."""
    __tablename__ = "moderators"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    areas = Column(JSON, nullable=False, default=list)
    is_working = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "areas": list(self.areas or []),
            "is_working": bool(self.is_working),
            "created_at": self.created_at,
        }
