"""
Database models
"""
from fieldops.models.guard import Guard, GuardStatus, Post
from fieldops.models.attendance import AttendanceRecord, AttendanceStatus
from fieldops.models.weapon import Weapon, WeaponLogEntry, WeaponAction

__all__ = [
    "Guard",
    "GuardStatus",
    "Post",
    "AttendanceRecord",
    "AttendanceStatus",
    "Weapon",
    "WeaponLogEntry",
    "WeaponAction",
]
