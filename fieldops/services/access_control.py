"""
Access control gate in front of the attendance workflow.

The session is owned by the authentication service; here it is an explicit
value handed to the gate, never read from global state. The gate checks the
role/password policy once and resolves which Guard the workflow acts for.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fieldops.core.exceptions import AccessDenied, GuardInactive, GuardNotFound, PasswordChangeRequired
from fieldops.models.guard import Guard, GuardStatus
from fieldops.services.store import AttendanceStore

_log = logging.getLogger(__name__)


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    FINANCE = "FINANCE"
    OPERATIONS = "OPERATIONS"
    CLIENT = "CLIENT"
    GUARD = "GUARD"


# Roles allowed to drive a guard's own check-in/check-out
ATTENDANCE_ROLES = frozenset({Role.GUARD, Role.OPERATIONS, Role.ADMIN})
# Roles allowed to look at other guards' shifts and weapon ledgers
SUPERVISOR_ROLES = frozenset({Role.OPERATIONS, Role.ADMIN})


@dataclass(frozen=True)
class Session:
    user_id: str
    role: Optional[Role]
    requires_password_change: bool = False
    client_scope: Optional[str] = None


class SessionProvider(Protocol):
    def current_session(self) -> Session: ...


def _check_session(session: Session, allowed: frozenset) -> None:
    if session.requires_password_change:
        raise PasswordChangeRequired()
    if session.role is None or session.role not in allowed:
        _log.info("access denied: user_id=%s role=%s", session.user_id, session.role)
        raise AccessDenied(f"Access denied. Required roles: {sorted(r.value for r in allowed)}")


class AccessControlGate:
    def __init__(self, sessions: SessionProvider, store: AttendanceStore):
        self.sessions = sessions
        self.store = store

    def require_supervisor(self) -> Session:
        session = self.sessions.current_session()
        _check_session(session, SUPERVISOR_ROLES)
        return session

    async def resolve_guard(self) -> Guard:
        """
        Return the Guard the current session may run attendance for.

        Raises:
            PasswordChangeRequired, AccessDenied: session policy not met
            GuardNotFound: no guard is linked to the session's user
            GuardInactive: the guard is not in ACTIVE employment status
        """
        session = self.sessions.current_session()
        _check_session(session, ATTENDANCE_ROLES)

        guard = await self.store.get_guard_by_user(session.user_id)
        if guard is None:
            raise GuardNotFound()
        if guard.status != GuardStatus.ACTIVE.value:
            raise GuardInactive(f"Guard status is {guard.status}")
        return guard
