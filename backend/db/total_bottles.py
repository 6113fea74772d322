from sqlalchemy import Column, DateTime, Integer

from core.dates import utcnow
from .database import Base

TOTAL_BOTTLES_ID = 1


class TotalBottles(Base):
    """
    Warehouse bottle pool. A single row (id = 1); `version` is bumped on every
    flush so two writers that read the same version cannot both commit.
    """
    __tablename__ = "total_bottles"

    id = Column(Integer, primary_key=True, default=TOTAL_BOTTLES_ID)
    total_bottles = Column(Integer, nullable=False, default=0)
    available_bottles = Column(Integer, nullable=False, default=0)
    used_bottles = Column(Integer, nullable=False, default=0)
    damaged_bottles = Column(Integer, nullable=False, default=0)
    deposit_bottles = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def to_schema(self):
        return {
            "total_bottles": self.total_bottles,
            "available_bottles": self.available_bottles,
            "used_bottles": self.used_bottles,
            "damaged_bottles": self.damaged_bottles,
            "deposit_bottles": self.deposit_bottles,
            "version": self.version,
            "updated_at": self.updated_at,
        }
