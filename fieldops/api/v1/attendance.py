"""
Attendance endpoints for the guard's device.

The device drives the workflow step by step: post a location (or the location
error it got), begin check-in, confirm custody when armed, and the same for
check-out. Every response carries the workflow state and the allowed next
actions, so the device always knows which retry to offer.
"""
import logging
from fastapi import APIRouter, Depends

from fieldops.core.deps import get_current_guard, get_store, require_supervisor
from fieldops.models.guard import Guard
from fieldops.schemas.attendance import (
    AttendanceRecordDto,
    CoordinatesDto,
    CustodyConfirmRequest,
    GeofenceDto,
    LocationRequest,
    OnDutyItemDto,
    OnDutyListResponse,
    PendingCustodyDto,
    WeaponLogEntryDto,
    WorkflowStateDto,
)
from fieldops.services.access_control import Session
from fieldops.services.attendance_workflow import AttendanceWorkflow
from fieldops.services.geofence import Coordinates
from fieldops.services.geolocation import DeviceReportedPosition
from fieldops.services.store import SqlAttendanceStore
from fieldops.services.workflow_registry import registry

router = APIRouter()
_log = logging.getLogger(__name__)


def _fix_dto(fix):
    return CoordinatesDto.model_validate(fix) if fix is not None else None


async def _state_response(workflow: AttendanceWorkflow, store: SqlAttendanceStore,
                          include_handover: bool = False) -> WorkflowStateDto:
    record = None
    if workflow.record_id is not None:
        record = await store.get_attendance_record(workflow.record_id)

    pending = None
    if workflow.pending is not None:
        pending = PendingCustodyDto(
            action=workflow.pending.action.value,
            weapon_id=workflow.pending.weapon.id,
            serial_number=workflow.pending.weapon.serial_number,
            expected_ammo=workflow.pending.weapon.ammo_count,
        )

    handover = None
    if include_handover and workflow.last_handover is not None:
        handover = WeaponLogEntryDto.model_validate(workflow.last_handover)

    return WorkflowStateDto(
        guard_id=workflow.guard.id,
        work_date=workflow.work_date,
        state=workflow.state.value,
        allowed_actions=sorted(a.value for a in workflow.allowed_actions()),
        check_in_fix=_fix_dto(workflow.check_in_fix),
        check_out_fix=_fix_dto(workflow.check_out_fix),
        geofence=GeofenceDto.model_validate(workflow.geofence_result) if workflow.geofence_result else None,
        pending_custody=pending,
        last_error=workflow.last_error.kind if workflow.last_error else None,
        record=AttendanceRecordDto.model_validate(record) if record is not None else None,
        handover=handover,
    )


@router.get("/state", response_model=WorkflowStateDto)
async def state_endpoint(
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Current workflow state for the calling guard (rebuilt from stored records if needed)."""
    workflow = await registry.get(guard, store)
    return await _state_response(workflow, store)


@router.post("/location", response_model=WorkflowStateDto)
async def location_endpoint(
    body: LocationRequest,
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """
    Hand the device's position (or its geolocation error) to the workflow.
    Geolocation errors are answered with their kind; the state then shows LOCATION_ERROR.
    """
    workflow = await registry.get(guard, store)
    if body.error is not None:
        position = DeviceReportedPosition(error_code=body.error, error_message=body.error_message)
    else:
        position = DeviceReportedPosition(
            coordinates=Coordinates(latitude=body.lat, longitude=body.lng, accuracy=body.accuracy)
        )
    await workflow.request_location(position)
    return await _state_response(workflow, store)


@router.post("/check-in", response_model=WorkflowStateDto)
async def check_in_endpoint(
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Begin check-in. Armed guards get AWAITING_CUSTODY_CHECK_IN; others are checked in."""
    workflow = await registry.get(guard, store)
    await workflow.begin_check_in()
    return await _state_response(workflow, store)


@router.post("/custody", response_model=WorkflowStateDto)
async def custody_endpoint(
    body: CustodyConfirmRequest,
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Confirm the ammunition handover and commit the pending check-in or check-out."""
    workflow = await registry.get(guard, store)
    await workflow.confirm_custody(
        observed_ammo=body.observed_ammo,
        notes=body.notes,
        outgoing_guard_name=body.outgoing_guard_name,
    )
    return await _state_response(workflow, store, include_handover=True)


@router.post("/custody/cancel", response_model=WorkflowStateDto)
async def custody_cancel_endpoint(
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Abandon the custody step without writing anything."""
    workflow = await registry.get(guard, store)
    await workflow.cancel_custody()
    return await _state_response(workflow, store)


@router.post("/check-out", response_model=WorkflowStateDto)
async def check_out_endpoint(
    guard: Guard = Depends(get_current_guard),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Begin check-out (needs a location posted after check-in)."""
    workflow = await registry.get(guard, store)
    await workflow.begin_check_out()
    return await _state_response(workflow, store)


@router.get("/on-duty", response_model=OnDutyListResponse)
async def on_duty_endpoint(
    session: Session = Depends(require_supervisor),
    store: SqlAttendanceStore = Depends(get_store),
):
    """Supervisors: every open shift, newest first."""
    records = await store.list_open_attendance_records()
    items = []
    for record in records:
        item = OnDutyItemDto.model_validate(record)
        item.guard_name = record.guard.full_name if record.guard else None
        item.post_name = record.post.name if record.post else None
        items.append(item)
    _log.debug("on-duty board: user_id=%s open=%s", session.user_id, len(items))
    return OnDutyListResponse(items=items, total=len(items))
