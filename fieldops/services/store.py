"""
Persistence collaborator for the attendance workflow and custody ledger.

AttendanceStore is the contract the core depends on; SqlAttendanceStore
implements it over a SQLAlchemy session. Writes are flushed, not committed:
the caller owns the unit of work and calls commit()/rollback(), so a custody
entry, the ammo update and the attendance write land together or not at all.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fieldops.core.exceptions import (
    ConcurrentHandover,
    DuplicateCheckIn,
    NoOpenAttendanceRecord,
    PersistenceWriteFailed,
)
from fieldops.models.attendance import OPEN_RECORD_INDEX, AttendanceRecord
from fieldops.models.guard import Guard, Post
from fieldops.models.weapon import Weapon, WeaponLogEntry

_log = logging.getLogger(__name__)


def _is_open_record_conflict(error: IntegrityError) -> bool:
    """True when ``error`` comes from the one-open-record-per-guard index."""
    message = str(error.orig)
    # PostgreSQL names the index; SQLite names the indexed column
    return OPEN_RECORD_INDEX in message or "attendance_records.guard_id" in message


class AttendanceStore(Protocol):
    async def get_guard_by_user(self, user_id: str) -> Optional[Guard]: ...

    async def get_assigned_post(self, guard_id: int) -> Optional[Post]: ...

    async def get_assigned_weapon(self, guard_id: int) -> Optional[Weapon]: ...

    async def get_attendance_record(self, record_id: int) -> Optional[AttendanceRecord]: ...

    async def find_open_attendance_record(self, guard_id: int) -> Optional[AttendanceRecord]: ...

    async def find_latest_attendance_record(self, guard_id: int, work_date: date) -> Optional[AttendanceRecord]: ...

    async def list_open_attendance_records(self) -> List[AttendanceRecord]: ...

    async def create_attendance_record(self, record: AttendanceRecord) -> int: ...

    async def update_attendance_record(self, record_id: int, patch: Dict[str, Any]) -> None: ...

    async def create_weapon_log_entry(self, entry: WeaponLogEntry) -> int: ...

    async def update_weapon_ammo_count(self, weapon_id: int, count: int,
                                       expected_version: Optional[int] = None) -> None: ...

    async def list_weapon_log_entries(self, weapon_id: int) -> List[WeaponLogEntry]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlAttendanceStore:
    """AttendanceStore backed by a request-scoped SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # --- reads ---

    async def get_guard_by_user(self, user_id: str) -> Optional[Guard]:
        return self.db.query(Guard).filter(Guard.user_id == user_id).first()

    async def get_assigned_post(self, guard_id: int) -> Optional[Post]:
        return (
            self.db.query(Post)
            .join(Guard, Guard.current_post_id == Post.id)
            .filter(Guard.id == guard_id)
            .first()
        )

    async def get_assigned_weapon(self, guard_id: int) -> Optional[Weapon]:
        weapon = self.db.query(Weapon).filter(Weapon.assigned_guard_id == guard_id).first()
        if weapon is not None:
            # ammo_count/version must reflect the row, not an identity-map copy
            self.db.refresh(weapon)
        return weapon

    async def get_attendance_record(self, record_id: int) -> Optional[AttendanceRecord]:
        return self.db.query(AttendanceRecord).filter(AttendanceRecord.id == record_id).first()

    async def find_open_attendance_record(self, guard_id: int) -> Optional[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.guard_id == guard_id,
                AttendanceRecord.check_out_at.is_(None),
            )
            .first()
        )

    async def find_latest_attendance_record(self, guard_id: int, work_date: date) -> Optional[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.guard_id == guard_id,
                AttendanceRecord.work_date == work_date,
            )
            .order_by(AttendanceRecord.check_in_at.desc(), AttendanceRecord.id.desc())
            .first()
        )

    async def list_open_attendance_records(self) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.check_out_at.is_(None))
            .order_by(AttendanceRecord.check_in_at.desc())
            .all()
        )

    async def list_weapon_log_entries(self, weapon_id: int) -> List[WeaponLogEntry]:
        return (
            self.db.query(WeaponLogEntry)
            .filter(WeaponLogEntry.weapon_id == weapon_id)
            .order_by(WeaponLogEntry.created_at, WeaponLogEntry.id)
            .all()
        )

    # --- writes (flushed; committed by the caller) ---

    async def create_attendance_record(self, record: AttendanceRecord) -> int:
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if not _is_open_record_conflict(e):
                raise PersistenceWriteFailed(f"Could not create attendance record: {e.orig}")
            # another device opened a shift for this guard first
            _log.warning("open attendance record already exists for guard_id=%s: %s", record.guard_id, e.orig)
            raise DuplicateCheckIn()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceWriteFailed(f"Could not create attendance record: {e}")
        _log.debug("attendance record flushed: id=%s guard_id=%s", record.id, record.guard_id)
        return record.id

    async def update_attendance_record(self, record_id: int, patch: Dict[str, Any]) -> None:
        """Apply ``patch`` to an open record. A record that was closed meanwhile is not touched."""
        stmt = (
            update(AttendanceRecord)
            .where(
                AttendanceRecord.id == record_id,
                AttendanceRecord.check_out_at.is_(None),
            )
            .values(**patch)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceWriteFailed(f"Could not update attendance record: {e}")
        if result.rowcount == 0:
            self.db.rollback()
            raise NoOpenAttendanceRecord(f"Attendance record {record_id} is no longer open")

    async def create_weapon_log_entry(self, entry: WeaponLogEntry) -> int:
        self.db.add(entry)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceWriteFailed(f"Could not record weapon handover: {e}")
        return entry.id

    async def update_weapon_ammo_count(self, weapon_id: int, count: int,
                                       expected_version: Optional[int] = None) -> None:
        """
        Set the authoritative ammo count. With ``expected_version`` the update is a
        compare-and-swap: it only applies if nobody else updated the weapon since.
        """
        stmt = update(Weapon).where(Weapon.id == weapon_id)
        if expected_version is not None:
            stmt = stmt.where(Weapon.version == expected_version)
        stmt = stmt.values(ammo_count=count, version=Weapon.version + 1)
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceWriteFailed(f"Could not update weapon ammunition: {e}")
        if result.rowcount == 0:
            self.db.rollback()
            _log.warning(
                "stale handover rejected: weapon_id=%s expected_version=%s", weapon_id, expected_version
            )
            raise ConcurrentHandover()

    async def commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            _log.warning("commit rejected by constraint: %s", e.orig)
            if _is_open_record_conflict(e):
                raise DuplicateCheckIn()
            raise PersistenceWriteFailed(f"Could not commit: {e.orig}")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceWriteFailed(f"Could not commit: {e}")

    async def rollback(self) -> None:
        self.db.rollback()
