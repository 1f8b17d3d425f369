"""
Tests for the weapon custody ledger (ammunition reconciliation)
"""
import asyncio

import pytest

from fieldops.core.exceptions import ConcurrentHandover, MissingJustification, ValidationError
from fieldops.models.weapon import WeaponAction, WeaponLogEntry
from fieldops.services.custody_ledger import CustodyLedger, build_handover_notes
from fieldops.services.snapshots import GuardRef, PostRef, WeaponRef
from fieldops.services.store import SqlAttendanceStore


def _handover(db, weapon, guard, post, observed, notes=None, action=WeaponAction.CHECKIN,
              expected_version=None, outgoing_guard_name=None):
    store = SqlAttendanceStore(db)
    ref = WeaponRef.from_model(weapon)

    async def go():
        entry = await CustodyLedger(store).record_handover(
            weapon=ref,
            guard=GuardRef.from_model(guard),
            post=PostRef.from_model(post),
            action=action,
            observed_ammo=observed,
            expected_ammo=ref.ammo_count,
            notes=notes,
            outgoing_guard_name=outgoing_guard_name,
            expected_version=expected_version if expected_version is not None else ref.version,
        )
        await store.commit()
        return entry

    return asyncio.run(go())


def _entries(db):
    return db.query(WeaponLogEntry).all()


def test_shortfall_without_notes_rejected(db, test_post, test_guard, test_weapon):
    with pytest.raises(MissingJustification) as exc_info:
        _handover(db, test_weapon, test_guard, test_post, observed=8, notes="")
    assert exc_info.value.kind == "ValidationMissingJustification"

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 10
    assert _entries(db) == []


def test_shortfall_with_whitespace_notes_rejected(db, test_post, test_guard, test_weapon):
    with pytest.raises(MissingJustification):
        _handover(db, test_weapon, test_guard, test_post, observed=8, notes="   ")
    assert _entries(db) == []


def test_shortfall_with_notes_accepted(db, test_post, test_guard, test_weapon):
    entry = _handover(db, test_weapon, test_guard, test_post, observed=8, notes="2 rounds used at the range")

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 8
    assert test_weapon.version == 2
    assert entry.ammo_observed == 8
    assert entry.ammo_expected == 10
    assert entry.deficit == -2
    assert entry.notes == "Ammo received: 8 | Notes: 2 rounds used at the range"
    assert len(_entries(db)) == 1


def test_exact_count_needs_no_notes(db, test_post, test_guard, test_weapon):
    entry = _handover(db, test_weapon, test_guard, test_post, observed=10)

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 10
    assert entry.notes == "Ammo received: 10"


def test_surplus_needs_no_notes(db, test_post, test_guard, test_weapon):
    _handover(db, test_weapon, test_guard, test_post, observed=12)

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 12


def test_negative_count_rejected(db, test_post, test_guard, test_weapon):
    with pytest.raises(ValidationError):
        _handover(db, test_weapon, test_guard, test_post, observed=-1, notes="typo")
    assert _entries(db) == []


def test_stale_version_rejected_and_nothing_written(db, test_post, test_guard, test_weapon):
    # Another handover moved the weapon on after our baseline was read
    test_weapon.version = 2
    test_weapon.ammo_count = 9
    db.commit()

    with pytest.raises(ConcurrentHandover):
        _handover(db, test_weapon, test_guard, test_post, observed=10, expected_version=1)

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 9
    assert test_weapon.version == 2
    assert _entries(db) == []


def test_outgoing_guard_and_checkout_label(db, test_post, test_guard, test_weapon):
    entry = _handover(
        db, test_weapon, test_guard, test_post, observed=10,
        action=WeaponAction.CHECKOUT, outgoing_guard_name="Pedro Ruiz",
    )
    assert entry.action == WeaponAction.CHECKOUT
    assert entry.notes == "Ammo delivered: 10 | Outgoing guard: Pedro Ruiz"


def test_history_is_oldest_first(db, test_post, test_guard, test_weapon):
    _handover(db, test_weapon, test_guard, test_post, observed=10)
    db.refresh(test_weapon)
    _handover(db, test_weapon, test_guard, test_post, observed=9, notes="one misfire",
              action=WeaponAction.CHECKOUT)

    history = asyncio.run(CustodyLedger(SqlAttendanceStore(db)).history(test_weapon.id))
    assert [e.action for e in history] == [WeaponAction.CHECKIN, WeaponAction.CHECKOUT]
    assert [e.ammo_observed for e in history] == [10, 9]
    assert history[1].ammo_expected == 10


def test_build_handover_notes_skips_blank_parts():
    assert build_handover_notes(WeaponAction.CHECKIN, 5, notes="  ", outgoing_guard_name="") == "Ammo received: 5"
