from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from uuid import UUID

from app.api.deps import (
    OperatorContext,
    ensure_visible,
    get_appointment_service,
    get_optional_operator,
    get_optional_queue_monitor,
    require_staff,
)
from app.schemas.appointment import (
    AppointmentResponse,
    AppointmentStatusUpdate,
    BookingRequest,
    BookingResponse,
)
from app.services.appointment_service import AppointmentService
from app.services.queue_monitor import QueueMonitor

router = APIRouter()

@router.post("/", response_model=BookingResponse)
async def book_appointment(
    request: BookingRequest,
    operator: Optional[OperatorContext] = Depends(get_optional_operator),
    service: AppointmentService = Depends(get_appointment_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    if request.is_emergency and (operator is None or operator.role not in ("admin", "assistant")):
        raise HTTPException(status_code=403, detail="Emergency bookings are made by clinic staff")
    appointments = await service.book(request, actor_id=operator.user_id if operator else None)
    if monitor is not None:
        await monitor.publish(request.doctor_id, request.appointment_date)
    return BookingResponse(appointments=[AppointmentResponse.from_model(a) for a in appointments])

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(
    appointment_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.get_appointment(appointment_id)
    ensure_visible(operator, appointment.doctor_id)
    return AppointmentResponse.from_model(appointment)

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: UUID,
    update: AppointmentStatusUpdate,
    operator: OperatorContext = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    appointment = await service.get_appointment(appointment_id)
    ensure_visible(operator, appointment.doctor_id)
    appointment = await service.update_status(appointment_id, update.status, actor_id=operator.user_id)
    if monitor is not None:
        await monitor.publish(appointment.doctor_id, appointment.appointment_date)
    return AppointmentResponse.from_model(appointment)

