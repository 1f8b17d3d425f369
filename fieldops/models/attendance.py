"""
Attendance record model: one row per shift, opened at check-in and closed once at check-out.
"""
from sqlalchemy import Column, Integer, Date, DateTime, Float, Boolean, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fieldops.db.base import Base


OPEN_RECORD_INDEX = "uq_attendance_records_open_per_guard"


class AttendanceStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"  # checked in inside the post geofence
    FLAGGED = "FLAGGED"  # checked in outside the geofence; kept for supervisor review


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    guard_id = Column(Integer, ForeignKey("guards.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    work_date = Column(Date, nullable=False, index=True)
    check_in_at = Column(DateTime(timezone=True), nullable=False)
    check_in_latitude = Column(Float, nullable=False)
    check_in_longitude = Column(Float, nullable=False)
    inside_geofence = Column(Boolean, nullable=False)
    distance_meters = Column(Float, nullable=True)  # None when the post has no coordinates
    status = Column(SQLEnum(AttendanceStatus), nullable=False)
    check_out_at = Column(DateTime(timezone=True), nullable=True)
    check_out_latitude = Column(Float, nullable=True)
    check_out_longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    guard = relationship("Guard")
    post = relationship("Post")

    __table_args__ = (
        # At most one open shift per guard, whatever the in-memory workflow believes
        Index(
            OPEN_RECORD_INDEX,
            "guard_id",
            unique=True,
            sqlite_where=check_out_at.is_(None),
            postgresql_where=check_out_at.is_(None),
        ),
    )
