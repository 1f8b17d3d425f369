"""
Weapon chain-of-custody ledger.

Every handover of a firearm at check-in/check-out appends one immutable
WeaponLogEntry and moves Weapon.ammo_count to the observed quantity, which
becomes the baseline for the next handover. A shortfall against that
baseline must be justified in the notes.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fieldops.core.exceptions import MissingJustification, ValidationError
from fieldops.models.weapon import WeaponAction, WeaponLogEntry
from fieldops.services.snapshots import GuardRef, PostRef, WeaponRef
from fieldops.services.store import AttendanceStore
from fieldops.utils.datetime_utils import now_utc

_log = logging.getLogger(__name__)

QUANTITY_LABELS = {
    WeaponAction.CHECKIN: "received",
    WeaponAction.CHECKOUT: "delivered",
}


def build_handover_notes(
    action: WeaponAction,
    observed_ammo: int,
    notes: Optional[str] = None,
    outgoing_guard_name: Optional[str] = None,
) -> str:
    """Compose the ledger text: tagged quantity, the guard handing over, then the free-text note."""
    parts = [f"Ammo {QUANTITY_LABELS[action]}: {observed_ammo}"]
    if outgoing_guard_name and outgoing_guard_name.strip():
        parts.append(f"Outgoing guard: {outgoing_guard_name.strip()}")
    if notes and notes.strip():
        parts.append(f"Notes: {notes.strip()}")
    return " | ".join(parts)


class CustodyLedger:
    def __init__(self, store: AttendanceStore):
        self.store = store

    async def record_handover(
        self,
        weapon: WeaponRef,
        guard: GuardRef,
        post: Optional[PostRef],
        action: WeaponAction,
        observed_ammo: int,
        expected_ammo: int,
        notes: Optional[str] = None,
        outgoing_guard_name: Optional[str] = None,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WeaponLogEntry:
        """
        Validate and record one handover.

        ``expected_ammo`` (and ``expected_version``) are the values read when the
        workflow started; they are not re-read here. The writes are flushed to the
        store but not committed, the caller commits them with its own writes.

        Raises:
            MissingJustification: observed < expected and notes are blank. Nothing is written.
            ValidationError: observed_ammo is negative.
            ConcurrentHandover: the weapon changed since ``expected_version`` was read.
        """
        if observed_ammo < 0:
            raise ValidationError("Observed ammunition cannot be negative")

        deficit = observed_ammo - expected_ammo
        if deficit < 0 and not (notes and notes.strip()):
            _log.info(
                "handover rejected: weapon_id=%s guard_id=%s deficit=%s without justification",
                weapon.id, guard.id, deficit,
            )
            raise MissingJustification(
                f"Expected {expected_ammo} rounds but {observed_ammo} were counted; explain the difference"
            )

        entry = WeaponLogEntry(
            weapon_id=weapon.id,
            guard_id=guard.id,
            post_id=post.id if post is not None else None,
            action=action,
            ammo_observed=observed_ammo,
            ammo_expected=expected_ammo,
            notes=build_handover_notes(action, observed_ammo, notes, outgoing_guard_name),
            created_at=now or now_utc(),
        )
        await self.store.create_weapon_log_entry(entry)
        await self.store.update_weapon_ammo_count(weapon.id, observed_ammo, expected_version=expected_version)

        _log.info(
            "handover recorded: weapon_id=%s guard_id=%s action=%s observed=%s expected=%s",
            weapon.id, guard.id, action.value, observed_ammo, expected_ammo,
        )
        return entry

    async def history(self, weapon_id: int) -> List[WeaponLogEntry]:
        """All handovers of a weapon, oldest first."""
        return await self.store.list_weapon_log_entries(weapon_id)
