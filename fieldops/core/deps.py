"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session as DbSession
from fieldops.db.session import SessionLocal
from fieldops.core.security import decode_token
from fieldops.models.guard import Guard
from fieldops.services.access_control import AccessControlGate, Role, Session
from fieldops.services.store import SqlAttendanceStore


security = HTTPBearer()


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: DbSession = Depends(get_db)) -> SqlAttendanceStore:
    return SqlAttendanceStore(db)


class TokenSessionProvider:
    """Session collaborator backed by the verified bearer token of the current request."""

    def __init__(self, session: Session):
        self._session = session

    def current_session(self) -> Session:
        return self._session


def session_from_claims(payload: dict) -> Session:
    """
    Build a Session from token claims: sub, role, client_id, requires_password_change.
    An unknown role maps to None, which no policy admits.
    """
    sub_value = payload.get("sub")
    if sub_value is None:
        raise ValueError("Token has no subject")
    try:
        role = Role(payload["role"]) if payload.get("role") else None
    except ValueError:
        role = None
    return Session(
        user_id=str(sub_value),
        role=role,
        requires_password_change=bool(payload.get("requires_password_change", False)),
        client_scope=payload.get("client_id"),
    )


async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Session:
    """
    Resolve the caller's Session from the JWT issued by the authentication service
    """
    try:
        payload = decode_token(credentials.credentials)
        return session_from_claims(payload)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_access_gate(
    session: Session = Depends(get_current_session),
    store: SqlAttendanceStore = Depends(get_store),
) -> AccessControlGate:
    return AccessControlGate(TokenSessionProvider(session), store)


async def get_current_guard(gate: AccessControlGate = Depends(get_access_gate)) -> Guard:
    """The guard the caller runs attendance for (role, password and employment checks applied)"""
    return await gate.resolve_guard()


def require_supervisor(gate: AccessControlGate = Depends(get_access_gate)) -> Session:
    """OPERATIONS or ADMIN"""
    return gate.require_supervisor()
