from fastapi_users.db import SQLAlchemyBaseUserTableUUID
from sqlalchemy import Column, String
from .database import Base


class User(SQLAlchemyBaseUserTableUUID, Base):
    """Admin account. Admin procedures require an active superuser."""
    __tablename__ = "users"

    name = Column(String, nullable=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "is_superuser": self.is_superuser,
        }
