from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.redis import RedisClient, get_redis
from app.core.scheduler import Clock, SystemClock
from app.core.security import decode_access_token
from app.db.session import get_session
from app.engine.visibility import visible_providers
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService
from app.services.queue_service import QueueService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

_system_clock = SystemClock()

@dataclass
class OperatorContext:
    user_id: str
    role: str # admin, doctor, assistant, patient
    doctor_id: Optional[UUID] = None
    assigned_doctor_ids: List[UUID] = field(default_factory=list)

    def assignment_index(self) -> dict:
        if self.role == "doctor":
            return {self.user_id: [self.doctor_id] if self.doctor_id else []}
        if self.role == "assistant":
            return {self.user_id: list(self.assigned_doctor_ids)}
        return {}

    def can_see(self, doctor_id: UUID) -> bool:
        return doctor_id in visible_providers(self.role, self.user_id, self.assignment_index(), [doctor_id])

def _parse_operator(payload: dict) -> OperatorContext:
    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise ValueError("token is missing sub or role")
    doctor_id = payload.get("doctor_id")
    return OperatorContext(
        user_id=str(user_id),
        role=role,
        doctor_id=UUID(doctor_id) if doctor_id else None,
        assigned_doctor_ids=[UUID(d) for d in payload.get("assigned_doctor_ids") or []],
    )

async def get_optional_operator(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[OperatorContext]:
    if not token:
        return None
    try:
        return _parse_operator(decode_access_token(token))
    except (PyJWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_operator(operator: Optional[OperatorContext] = Depends(get_optional_operator)) -> OperatorContext:
    if operator is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return operator

def require_staff(operator: OperatorContext = Depends(get_current_operator)) -> OperatorContext:
    if operator.role not in ("admin", "doctor", "assistant"):
        raise HTTPException(status_code=403, detail="Staff access required")
    return operator

def require_admin(operator: OperatorContext = Depends(get_current_operator)) -> OperatorContext:
    if operator.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return operator

def ensure_visible(operator: OperatorContext, doctor_id: UUID):
    if not operator.can_see(doctor_id):
        raise HTTPException(status_code=403, detail="Not authorized for this doctor")

def get_clock() -> Clock:
    return _system_clock

def get_optional_queue_monitor(request: Request):
    return getattr(request.app.state, "queue_monitor", None)

def get_queue_monitor(request: Request):
    monitor = getattr(request.app.state, "queue_monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Live queue monitor is not running")
    return monitor

async def get_doctor_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> DoctorService:
    return DoctorService(session, clock)

async def get_appointment_service(
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> AppointmentService:
    return AppointmentService(session, clock)

async def get_queue_service(
    session: AsyncSession = Depends(get_session),
    redis: RedisClient = Depends(get_redis),
    clock: Clock = Depends(get_clock),
) -> QueueService:
    return QueueService(session, redis, clock)
