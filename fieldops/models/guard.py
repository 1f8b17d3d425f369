"""
Guard and post models (owned by HR / operations; read-only for attendance)
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fieldops.db.base import Base


class GuardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    # Unmapped posts have no coordinates; the geofence then admits any position
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    guards = relationship("Guard", back_populates="current_post")


class Guard(Base):
    __tablename__ = "guards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, nullable=True, index=True)  # auth account id
    ci = Column(String, unique=True, nullable=False)  # national identity number
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=GuardStatus.ACTIVE.value)
    current_post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    current_post = relationship("Post", back_populates="guards")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
