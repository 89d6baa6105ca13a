from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.deps import (
    OperatorContext,
    ensure_visible,
    get_clock,
    get_optional_queue_monitor,
    get_queue_monitor,
    get_queue_service,
    require_staff,
)
from app.core.scheduler import Clock
from app.core.timeutils import local_date
from app.schemas.appointment import AppointmentResponse
from app.schemas.queue import (
    CallNextRequest,
    QueueResponse,
    QueueStatsResponse,
    ReorderRequest,
    ResetOrderRequest,
)
from app.services.queue_monitor import QueueMonitor
from app.services.queue_service import QueueService

router = APIRouter()

def _day(day: Optional[date], clock: Clock) -> date:
    return day or local_date(clock.now())

async def _publish(monitor: Optional[QueueMonitor], doctor_id: UUID, day: date):
    if monitor is not None:
        await monitor.publish(doctor_id, day)

@router.get("/{doctor_id}", response_model=QueueResponse)
async def read_queue(
    doctor_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service)
):
    ensure_visible(operator, doctor_id)
    snapshot = await service.get_queue(doctor_id, _day(day, clock), operator.user_id)
    return QueueResponse.from_snapshot(snapshot)

@router.get("/{doctor_id}/board", response_model=QueueResponse)
async def read_queue_board(
    doctor_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    monitor: QueueMonitor = Depends(get_queue_monitor)
):
    ensure_visible(operator, doctor_id)
    snapshot = await monitor.get(doctor_id, _day(day, clock))
    return QueueResponse.from_snapshot(snapshot)

@router.get("/{doctor_id}/stats", response_model=QueueStatsResponse)
async def read_queue_stats(
    doctor_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service)
):
    ensure_visible(operator, doctor_id)
    return await service.get_stats(doctor_id, _day(day, clock))

@router.post("/{doctor_id}/reorder", response_model=QueueResponse)
async def reorder_queue(
    doctor_id: UUID,
    request: ReorderRequest,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    ensure_visible(operator, doctor_id)
    queue_day = _day(day, clock)
    snapshot = await service.reorder(
        doctor_id,
        queue_day,
        request.source_id,
        request.target_id,
        request.version,
        operator_id=operator.user_id,
    )
    await _publish(monitor, doctor_id, queue_day)
    return QueueResponse.from_snapshot(snapshot)

@router.post("/{doctor_id}/reset-order", response_model=QueueResponse)
async def reset_queue_order(
    doctor_id: UUID,
    request: ResetOrderRequest,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    ensure_visible(operator, doctor_id)
    queue_day = _day(day, clock)
    snapshot = await service.reset_order(doctor_id, queue_day, request.version, operator_id=operator.user_id)
    await _publish(monitor, doctor_id, queue_day)
    return QueueResponse.from_snapshot(snapshot)

@router.post("/{doctor_id}/skip/{appointment_id}", response_model=QueueResponse)
async def skip_appointment(
    doctor_id: UUID,
    appointment_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    ensure_visible(operator, doctor_id)
    queue_day = _day(day, clock)
    await service.skip(operator.user_id, doctor_id, queue_day, appointment_id)
    await _publish(monitor, doctor_id, queue_day)
    return QueueResponse.from_snapshot(await service.get_queue(doctor_id, queue_day, operator.user_id))

@router.post("/{doctor_id}/restore-skipped", response_model=QueueResponse)
async def restore_skipped(
    doctor_id: UUID,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service)
):
    ensure_visible(operator, doctor_id)
    queue_day = _day(day, clock)
    await service.restore_skipped(operator.user_id, doctor_id, queue_day)
    return QueueResponse.from_snapshot(await service.get_queue(doctor_id, queue_day, operator.user_id))

@router.post("/{doctor_id}/call-next", response_model=Optional[AppointmentResponse])
async def call_next(
    doctor_id: UUID,
    request: CallNextRequest,
    day: Optional[date] = None,
    operator: OperatorContext = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    ensure_visible(operator, doctor_id)
    queue_day = _day(day, clock)
    appointment = await service.call_next(
        doctor_id, queue_day, request.current_appointment_id, operator_id=operator.user_id
    )
    await _publish(monitor, doctor_id, queue_day)
    return AppointmentResponse.from_model(appointment) if appointment else None

@router.post("/appointments/{appointment_id}/check-in", response_model=AppointmentResponse)
async def check_in(
    appointment_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    appointment = await service.get_appointment(appointment_id)
    ensure_visible(operator, appointment.doctor_id)
    appointment = await service.check_in(appointment_id, actor_id=operator.user_id)
    await _publish(monitor, appointment.doctor_id, appointment.appointment_date)
    return AppointmentResponse.from_model(appointment)

@router.post("/appointments/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete(
    appointment_id: UUID,
    operator: OperatorContext = Depends(require_staff),
    service: QueueService = Depends(get_queue_service),
    monitor: Optional[QueueMonitor] = Depends(get_optional_queue_monitor)
):
    appointment = await service.get_appointment(appointment_id)
    ensure_visible(operator, appointment.doctor_id)
    appointment = await service.complete(appointment_id, actor_id=operator.user_id)
    await _publish(monitor, appointment.doctor_id, appointment.appointment_date)
    return AppointmentResponse.from_model(appointment)
