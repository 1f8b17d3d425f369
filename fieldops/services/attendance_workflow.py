"""
Attendance workflow: check-in/check-out of a guard at a post, with geofence
evaluation and, for armed guards, an ammunition handover that must succeed
before the attendance write commits.

One instance per guard per working day. Every operation is a single coroutine;
the I/O calls inside it (position fix, store reads, the final commit) are its
only suspension points and run one at a time. A failed operation never moves
the state forward: the workflow stays in its last stable state and keeps what
was already captured (a position fix, the custody baseline) so the user can
retry.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, FrozenSet, Optional

from fieldops.core.config import settings
from fieldops.core.exceptions import (
    DuplicateCheckIn,
    GeolocationError,
    GeolocationTimeout,
    GeolocationUnavailable,
    InvalidTransition,
    LocationRequired,
    NoOpenAttendanceRecord,
)
from fieldops.models.attendance import AttendanceRecord, AttendanceStatus
from fieldops.models.weapon import WeaponAction, WeaponLogEntry
from fieldops.services import geofence
from fieldops.services.custody_ledger import CustodyLedger
from fieldops.services.geofence import Coordinates, GeofenceResult
from fieldops.services.geolocation import GeolocationProvider
from fieldops.services.snapshots import GuardRef, PostRef, WeaponRef
from fieldops.services.store import AttendanceStore
from fieldops.utils.datetime_utils import get_work_date, now_utc

_log = logging.getLogger(__name__)


class WorkflowState(str, enum.Enum):
    IDLE = "IDLE"
    LOCATING = "LOCATING"
    LOCATION_ERROR = "LOCATION_ERROR"
    LOCATION_READY = "LOCATION_READY"
    AWAITING_CUSTODY_CHECK_IN = "AWAITING_CUSTODY_CHECK_IN"
    CHECKED_IN = "CHECKED_IN"
    AWAITING_CUSTODY_CHECK_OUT = "AWAITING_CUSTODY_CHECK_OUT"
    CHECKED_OUT = "CHECKED_OUT"


class Action(str, enum.Enum):
    REQUEST_LOCATION = "REQUEST_LOCATION"
    BEGIN_CHECK_IN = "BEGIN_CHECK_IN"
    CONFIRM_CUSTODY = "CONFIRM_CUSTODY"
    CANCEL_CUSTODY = "CANCEL_CUSTODY"
    BEGIN_CHECK_OUT = "BEGIN_CHECK_OUT"


TRANSITIONS: Dict[WorkflowState, FrozenSet[Action]] = {
    WorkflowState.IDLE: frozenset({Action.REQUEST_LOCATION}),
    WorkflowState.LOCATING: frozenset(),
    WorkflowState.LOCATION_ERROR: frozenset({Action.REQUEST_LOCATION}),
    WorkflowState.LOCATION_READY: frozenset({Action.REQUEST_LOCATION, Action.BEGIN_CHECK_IN}),
    WorkflowState.AWAITING_CUSTODY_CHECK_IN: frozenset({Action.CONFIRM_CUSTODY, Action.CANCEL_CUSTODY}),
    WorkflowState.CHECKED_IN: frozenset({Action.REQUEST_LOCATION, Action.BEGIN_CHECK_OUT}),
    WorkflowState.AWAITING_CUSTODY_CHECK_OUT: frozenset({Action.CONFIRM_CUSTODY, Action.CANCEL_CUSTODY}),
    WorkflowState.CHECKED_OUT: frozenset(),
}


@dataclass(frozen=True)
class PendingHandover:
    """Custody step waiting for the guard's ammunition count."""
    action: WeaponAction
    weapon: WeaponRef
    post: Optional[PostRef]


class AttendanceWorkflow:
    def __init__(
        self,
        guard,
        store: AttendanceStore,
        geolocation: Optional[GeolocationProvider] = None,
        *,
        radius_meters: Optional[float] = None,
        location_timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.guard = GuardRef.from_model(guard)
        self.store = store
        self.geolocation = geolocation
        self.radius_meters = radius_meters if radius_meters is not None else settings.GEOFENCE_RADIUS_METERS
        self.location_timeout_seconds = (
            location_timeout_seconds
            if location_timeout_seconds is not None
            else settings.GEOLOCATION_TIMEOUT_SECONDS
        )
        self.clock = clock
        self.work_date: date = get_work_date(clock())

        self.state = WorkflowState.IDLE
        self.check_in_fix: Optional[Coordinates] = None
        self.check_out_fix: Optional[Coordinates] = None
        self.last_error: Optional[GeolocationError] = None
        self.post: Optional[PostRef] = None
        self.geofence_result: Optional[GeofenceResult] = None
        self.pending: Optional[PendingHandover] = None
        self.record_id: Optional[int] = None
        self.last_handover: Optional[WeaponLogEntry] = None
        self._lock = asyncio.Lock()

    @classmethod
    async def restore(cls, guard, store: AttendanceStore, geolocation: Optional[GeolocationProvider] = None,
                      **kwargs) -> "AttendanceWorkflow":
        """
        Rebuild today's workflow from stored records: an open record means the guard
        is on shift, a record already closed today means the day is done.
        """
        workflow = cls(guard, store, geolocation, **kwargs)
        open_record = await store.find_open_attendance_record(workflow.guard.id)
        if open_record is not None:
            workflow.record_id = open_record.id
            workflow.state = WorkflowState.CHECKED_IN
        else:
            latest = await store.find_latest_attendance_record(workflow.guard.id, workflow.work_date)
            if latest is not None:
                workflow.record_id = latest.id
                workflow.state = WorkflowState.CHECKED_OUT
        _log.debug("workflow restored: guard_id=%s state=%s", workflow.guard.id, workflow.state.value)
        return workflow

    # --- state helpers ---

    def allowed_actions(self) -> FrozenSet[Action]:
        return TRANSITIONS[self.state]

    def _require(self, action: Action) -> None:
        if action not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{action.value} is not allowed while {self.state.value}")

    def _move(self, new_state: WorkflowState) -> None:
        if new_state is not self.state:
            _log.info("guard_id=%s %s -> %s", self.guard.id, self.state.value, new_state.value)
        self.state = new_state

    async def _unit_of_work(self, work):
        """Run the writes in ``work`` and commit them together; any failure rolls all of them back."""
        try:
            result = await work()
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise
        return result

    # --- location ---

    async def request_location(self, geolocation: Optional[GeolocationProvider] = None) -> Coordinates:
        """
        Acquire a position fix, bounded by ``location_timeout_seconds``.

        Before check-in a fix leads to LOCATION_READY and a failure to LOCATION_ERROR.
        While checked in the fix is kept for check-out and the state stays CHECKED_IN.
        A provider failure that is not a GeolocationError is reported as GeolocationUnavailable.
        """
        async with self._lock:
            self._require(Action.REQUEST_LOCATION)
            provider = geolocation or self.geolocation
            if provider is None:
                raise GeolocationUnavailable("No geolocation source configured")

            stable = self.state
            self._move(WorkflowState.LOCATING)
            try:
                fix = await asyncio.wait_for(
                    provider.get_current_position(self.location_timeout_seconds, high_accuracy=True),
                    timeout=self.location_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                error = GeolocationTimeout()
                self._location_failed(stable, error)
                raise error from e
            except GeolocationError as e:
                self._location_failed(stable, e)
                raise
            except asyncio.CancelledError:
                self._move(stable)
                raise
            except Exception as e:
                _log.exception("guard_id=%s geolocation provider failed", self.guard.id)
                error = GeolocationUnavailable(f"Geolocation provider failed: {e}")
                self._location_failed(stable, error)
                raise error from e

            self.last_error = None
            if stable is WorkflowState.CHECKED_IN:
                self.check_out_fix = fix
                self._move(WorkflowState.CHECKED_IN)
            else:
                self.check_in_fix = fix
                self._move(WorkflowState.LOCATION_READY)
            return fix

    def _location_failed(self, stable: WorkflowState, error: GeolocationError) -> None:
        _log.warning("guard_id=%s location failed: %s", self.guard.id, error.kind)
        self.last_error = error
        if stable is WorkflowState.CHECKED_IN:
            self.check_out_fix = None
            self._move(WorkflowState.CHECKED_IN)
        else:
            self.check_in_fix = None
            self._move(WorkflowState.LOCATION_ERROR)

    # --- check-in ---

    async def begin_check_in(self) -> WorkflowState:
        """
        Start a check-in from LOCATION_READY. Armed guards go on to the custody step;
        unarmed guards are committed right away.

        Raises:
            DuplicateCheckIn: the guard already has an open record (state unchanged)
        """
        async with self._lock:
            self._require(Action.BEGIN_CHECK_IN)
            if await self.store.find_open_attendance_record(self.guard.id) is not None:
                _log.info("guard_id=%s check-in rejected: open record exists", self.guard.id)
                raise DuplicateCheckIn()

            post = await self.store.get_assigned_post(self.guard.id)
            self.post = PostRef.from_model(post) if post is not None else None
            self.geofence_result = geofence.evaluate(
                self.check_in_fix,
                self.post.coordinates if self.post is not None else None,
                self.radius_meters,
            )

            weapon = await self.store.get_assigned_weapon(self.guard.id)
            if weapon is not None:
                self.pending = PendingHandover(
                    action=WeaponAction.CHECKIN,
                    weapon=WeaponRef.from_model(weapon),
                    post=self.post,
                )
                self._move(WorkflowState.AWAITING_CUSTODY_CHECK_IN)
                return self.state

            self.record_id = await self._unit_of_work(lambda: self._write_check_in(self.clock()))
            self._after_check_in()
            return self.state

    async def _write_check_in(self, now: datetime) -> int:
        inside = self.geofence_result.inside
        record = AttendanceRecord(
            guard_id=self.guard.id,
            post_id=self.post.id if self.post is not None else None,
            work_date=get_work_date(now),
            check_in_at=now,
            check_in_latitude=self.check_in_fix.latitude,
            check_in_longitude=self.check_in_fix.longitude,
            inside_geofence=inside,
            distance_meters=self.geofence_result.distance_meters,
            status=AttendanceStatus.CONFIRMED if inside else AttendanceStatus.FLAGGED,
            check_out_at=None,
        )
        return await self.store.create_attendance_record(record)

    def _after_check_in(self) -> None:
        self.pending = None
        # check-out needs a fix taken after this point
        self.check_out_fix = None
        self._move(WorkflowState.CHECKED_IN)

    # --- check-out ---

    async def begin_check_out(self) -> WorkflowState:
        """
        Start a check-out from CHECKED_IN with a fix taken since check-in.
        The geofence is not evaluated again.

        Raises:
            LocationRequired: no fresh fix yet
            NoOpenAttendanceRecord: the open record disappeared (state unchanged)
        """
        async with self._lock:
            self._require(Action.BEGIN_CHECK_OUT)
            if self.check_out_fix is None:
                raise LocationRequired("Request a fresh location before checking out")

            record = await self.store.find_open_attendance_record(self.guard.id)
            if record is None:
                _log.warning("guard_id=%s check-out rejected: no open record", self.guard.id)
                raise NoOpenAttendanceRecord()
            self.record_id = record.id
            self.post = PostRef.from_model(record.post) if record.post is not None else None

            weapon = await self.store.get_assigned_weapon(self.guard.id)
            if weapon is not None:
                self.pending = PendingHandover(
                    action=WeaponAction.CHECKOUT,
                    weapon=WeaponRef.from_model(weapon),
                    post=self.post,
                )
                self._move(WorkflowState.AWAITING_CUSTODY_CHECK_OUT)
                return self.state

            await self._unit_of_work(lambda: self._write_check_out(self.clock()))
            self._after_check_out()
            return self.state

    async def _write_check_out(self, now: datetime) -> None:
        await self.store.update_attendance_record(
            self.record_id,
            {
                "check_out_at": now,
                "check_out_latitude": self.check_out_fix.latitude,
                "check_out_longitude": self.check_out_fix.longitude,
            },
        )

    def _after_check_out(self) -> None:
        self.pending = None
        self._move(WorkflowState.CHECKED_OUT)

    # --- custody ---

    async def confirm_custody(
        self,
        observed_ammo: int,
        notes: Optional[str] = None,
        outgoing_guard_name: Optional[str] = None,
    ) -> WorkflowState:
        """
        Record the ammunition count for the pending handover and commit the pending
        check-in or check-out with it, in one unit of work.

        Raises:
            MissingJustification: shortfall without notes (state unchanged, retry with notes)
            ConcurrentHandover: the weapon changed since the custody step began; cancel and begin again
            PersistenceWriteFailed: nothing was saved (state unchanged, retry)
        """
        async with self._lock:
            self._require(Action.CONFIRM_CUSTODY)
            pending = self.pending
            ledger = CustodyLedger(self.store)
            checking_in = self.state is WorkflowState.AWAITING_CUSTODY_CHECK_IN
            now = self.clock()

            async def work():
                entry = await ledger.record_handover(
                    weapon=pending.weapon,
                    guard=self.guard,
                    post=pending.post,
                    action=pending.action,
                    observed_ammo=observed_ammo,
                    expected_ammo=pending.weapon.ammo_count,
                    notes=notes,
                    outgoing_guard_name=outgoing_guard_name,
                    expected_version=pending.weapon.version,
                    now=now,
                )
                if checking_in:
                    return entry, await self._write_check_in(now)
                await self._write_check_out(now)
                return entry, None

            entry, record_id = await self._unit_of_work(work)
            self.last_handover = entry
            if checking_in:
                self.record_id = record_id
                self._after_check_in()
            else:
                self._after_check_out()
            return self.state

    async def cancel_custody(self) -> WorkflowState:
        """Abandon the custody step. Nothing has been written; captured fixes are kept."""
        async with self._lock:
            self._require(Action.CANCEL_CUSTODY)
            self.pending = None
            if self.state is WorkflowState.AWAITING_CUSTODY_CHECK_IN:
                self._move(WorkflowState.LOCATION_READY)
            else:
                self._move(WorkflowState.CHECKED_IN)
            return self.state
