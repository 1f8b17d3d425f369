"""
Weapon and weapon custody ledger models.
WeaponLogEntry rows are append-only: nothing in the codebase updates or deletes them.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fieldops.db.base import Base


class WeaponAction(str, enum.Enum):
    CHECKIN = "CHECKIN"  # guard receives the weapon when starting the shift
    CHECKOUT = "CHECKOUT"  # guard delivers the weapon when ending the shift


class Weapon(Base):
    __tablename__ = "weapons"

    id = Column(Integer, primary_key=True, index=True)
    serial_number = Column(String, unique=True, nullable=False)
    type = Column(String, nullable=False)
    caliber = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    ammo_count = Column(Integer, nullable=False, default=0)
    # Bumped on every ammo update; handovers compare-and-swap on it
    version = Column(Integer, nullable=False, default=1)
    assigned_guard_id = Column(Integer, ForeignKey("guards.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    assigned_guard = relationship("Guard")
    log_entries = relationship("WeaponLogEntry", back_populates="weapon", order_by="WeaponLogEntry.id")


class WeaponLogEntry(Base):
    __tablename__ = "weapon_log_entries"

    id = Column(Integer, primary_key=True, index=True)
    weapon_id = Column(Integer, ForeignKey("weapons.id"), nullable=False, index=True)
    guard_id = Column(Integer, ForeignKey("guards.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True)
    action = Column(SQLEnum(WeaponAction), nullable=False)
    ammo_observed = Column(Integer, nullable=False)
    ammo_expected = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    weapon = relationship("Weapon", back_populates="log_entries")

    @property
    def deficit(self) -> int:
        return self.ammo_observed - self.ammo_expected
