from fastapi import APIRouter, Depends
from datetime import date
from typing import List, Optional
from uuid import UUID

from app.api.deps import (
    OperatorContext,
    ensure_visible,
    get_clock,
    get_doctor_service,
    require_admin,
    require_staff,
)
from app.core.scheduler import Clock
from app.core.timeutils import local_date
from app.engine.types import Session
from app.engine.visibility import visible_providers
from app.schemas.doctor import (
    BreakStatusResponse,
    BreakUpdate,
    CapacityResponse,
    DoctorCreate,
    DoctorResponse,
    SessionConfigResponse,
    SessionsResponse,
    SlotsResponse,
)
from app.schemas.override import OverrideCreate, OverrideResponse
from app.services.doctor_service import DoctorService

router = APIRouter()

@router.post("/", response_model=DoctorResponse)
async def create_doctor(
    doctor: DoctorCreate,
    operator: OperatorContext = Depends(require_admin),
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.create_doctor(doctor)

@router.get("/", response_model=List[DoctorResponse])
async def read_doctors(
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    all_ids = await service.all_doctor_ids() if operator.role == "admin" else ()
    visible = visible_providers(operator.role, operator.user_id, operator.assignment_index(), all_ids)
    return await service.get_doctors(visible)

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def read_doctor(
    doctor_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.get_doctor(doctor_id)

@router.get("/{doctor_id}/session-config", response_model=SessionConfigResponse)
async def read_session_config(
    doctor_id: UUID,
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.get_session_config(doctor_id)

@router.get("/{doctor_id}/capacity", response_model=CapacityResponse)
async def read_capacity(
    doctor_id: UUID,
    day: date,
    session: Session,
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.get_capacity(doctor_id, day, session)

@router.get("/{doctor_id}/sessions", response_model=SessionsResponse)
async def read_sessions(
    doctor_id: UUID,
    day: Optional[date] = None,
    emergency: bool = False,
    clock: Clock = Depends(get_clock),
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.get_sessions(doctor_id, day or local_date(clock.now()), emergency)

@router.get("/{doctor_id}/slots", response_model=SlotsResponse)
async def read_slots(
    doctor_id: UUID,
    day: date,
    session: Session,
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.get_slots(doctor_id, day, session)

@router.get("/{doctor_id}/overrides", response_model=List[OverrideResponse])
async def read_overrides(
    doctor_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.get_overrides(doctor_id, day)

@router.post("/{doctor_id}/overrides", response_model=OverrideResponse)
async def create_override(
    doctor_id: UUID,
    override: OverrideCreate,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.create_override(doctor_id, override)

@router.delete("/{doctor_id}/overrides/{override_id}")
async def delete_override(
    doctor_id: UUID,
    override_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.deactivate_override(doctor_id, override_id)

@router.get("/{doctor_id}/break", response_model=BreakStatusResponse)
async def read_break_status(
    doctor_id: UUID,
    service: DoctorService = Depends(get_doctor_service)
):
    return await service.get_break_status(doctor_id)

@router.put("/{doctor_id}/break", response_model=BreakStatusResponse)
async def set_break(
    doctor_id: UUID,
    update: BreakUpdate,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.set_break(doctor_id, update.break_start, update.break_end)

@router.delete("/{doctor_id}/break", response_model=BreakStatusResponse)
async def clear_break(
    doctor_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: DoctorService = Depends(get_doctor_service)
):
    ensure_visible(operator, doctor_id)
    return await service.clear_break(doctor_id)
