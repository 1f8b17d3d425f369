"""
Weapon custody endpoints (supervisors only)
"""
from fastapi import APIRouter, Depends

from fieldops.core.deps import get_store, require_supervisor
from fieldops.schemas.attendance import WeaponLogEntryDto, WeaponLogListResponse
from fieldops.services.access_control import Session
from fieldops.services.custody_ledger import CustodyLedger
from fieldops.services.store import SqlAttendanceStore

router = APIRouter()


@router.get("/{weapon_id}/logs", response_model=WeaponLogListResponse)
async def weapon_logs_endpoint(
    weapon_id: int,
    session: Session = Depends(require_supervisor),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Chain of custody for one weapon, oldest handover first."""
    entries = await CustodyLedger(store).history(weapon_id)
    return WeaponLogListResponse(
        items=[WeaponLogEntryDto.model_validate(e) for e in entries],
        total=len(entries),
    )
