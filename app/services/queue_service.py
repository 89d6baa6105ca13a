from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.logger import logger
from app.core.redis import RedisClient
from app.core.scheduler import Clock, SystemClock
from app.core.timeutils import to_db
from app.db.models import Appointment, AuditLog, QueueState
from app.engine.exceptions import InvalidQueueState, QueueItemNotFound, StaleQueueVersion
from app.engine.ordering import QueueSnapshot, build_queue, ensure_open, move_before, sequential_orders
from app.engine.types import ACTIVE_STATUSES
from app.schemas.queue import QueueStatsResponse

class QueueService:
    def __init__(self, session: AsyncSession, redis: Optional[RedisClient] = None, clock: Optional[Clock] = None):
        self.session = session
        self.redis = redis
        self.clock = clock or SystemClock()

    async def get_day_appointments(self, doctor_id: UUID, day: date, statuses=None) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == day
        )
        if statuses:
            stmt = stmt.where(Appointment.status.in_(list(statuses)))
        # Stable input order for the derived queue
        stmt = stmt.order_by(Appointment.appointment_time, Appointment.token_number, Appointment.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_version(self, doctor_id: UUID, day: date) -> int:
        stmt = select(QueueState.version).where(
            QueueState.doctor_id == doctor_id,
            QueueState.queue_date == day
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def _get_or_create_state(self, doctor_id: UUID, day: date) -> QueueState:
        stmt = select(QueueState).where(
            QueueState.doctor_id == doctor_id,
            QueueState.queue_date == day
        )
        result = await self.session.execute(stmt)
        state = result.scalars().first()
        if state:
            return state

        state = QueueState(doctor_id=doctor_id, queue_date=day, version=0)
        self.session.add(state)
        try:
            await self.session.commit()
        except IntegrityError:
            # Created concurrently by another operator
            await self.session.rollback()
            result = await self.session.execute(stmt)
            return result.scalars().one()
        await self.session.refresh(state)
        return state

    async def _bump_version(self, state: QueueState, expected: int):
        """Compare-and-set the order version. Rejects when another write got there first."""
        # Rollback expires the state row
        doctor_id, day = state.doctor_id, state.queue_date
        stmt = (
            update(QueueState)
            .where(QueueState.id == state.id, QueueState.version == expected)
            .values(version=expected + 1, updated_at=datetime.utcnow())
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            current = await self.get_version(doctor_id, day)
            raise StaleQueueVersion(expected=expected, current=current)

    async def get_skipped(self, operator_id: Optional[str], doctor_id: UUID, day: date) -> set:
        if not operator_id or self.redis is None:
            return set()
        return await self.redis.get_skipped(operator_id, doctor_id, day)

    async def get_queue(self, doctor_id: UUID, day: date, operator_id: Optional[str] = None) -> QueueSnapshot:
        appointments = await self.get_day_appointments(doctor_id, day, ACTIVE_STATUSES)
        version = await self.get_version(doctor_id, day)
        skipped = await self.get_skipped(operator_id, doctor_id, day)
        items = build_queue(doctor_id, day, appointments, skipped_ids=skipped, now=self.clock.now())
        return QueueSnapshot(doctor_id=doctor_id, queue_date=day, version=version, items=items)

    def _audit(self, action: str, doctor_id: UUID, actor_id: Optional[str], **payload):
        self.session.add(AuditLog(actor_id=actor_id, doctor_id=doctor_id, action=action, payload=payload))

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    async def _get_active_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        try:
            ensure_open(appointment)
        except InvalidQueueState as exc:
            raise HTTPException(status_code=409, detail=exc.message)
        return appointment

    async def check_in(self, appointment_id: UUID, actor_id: Optional[str] = None) -> Appointment:
        appointment = await self._get_active_appointment(appointment_id)
        if appointment.checked_in_at is not None:
            return appointment

        appointment.checked_in_at = to_db(self.clock.now())
        appointment.updated_at = datetime.utcnow()
        self.session.add(appointment)
        self._audit("queue.check_in", appointment.doctor_id, actor_id, appointment_id=str(appointment.id))
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Token #{appointment.token_number} checked in for doctor {appointment.doctor_id}")
        return appointment

    async def complete(self, appointment_id: UUID, actor_id: Optional[str] = None) -> Appointment:
        appointment = await self._get_active_appointment(appointment_id)
        appointment.status = "completed"
        appointment.updated_at = datetime.utcnow()
        self.session.add(appointment)
        self._audit("queue.complete", appointment.doctor_id, actor_id, appointment_id=str(appointment.id))
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Token #{appointment.token_number} completed for doctor {appointment.doctor_id}")
        return appointment

    async def call_next(
        self,
        doctor_id: UUID,
        day: date,
        current_appointment_id: Optional[UUID] = None,
        operator_id: Optional[str] = None,
    ) -> Optional[Appointment]:
        """
        Finish the patient currently with the doctor (when given) and bring in
        the head of the queue, checking them in if they were not already.
        Returns the new head, or None when the queue is empty.
        """
        if current_appointment_id is not None:
            current = await self._get_active_appointment(current_appointment_id)
            if current.doctor_id != doctor_id:
                raise HTTPException(status_code=400, detail="Appointment belongs to another doctor")
            await self.complete(current_appointment_id, operator_id)

        snapshot = await self.get_queue(doctor_id, day, operator_id)
        if not snapshot.items:
            return None
        return await self.check_in(snapshot.items[0].appointment_id, operator_id)

    async def skip(self, operator_id: str, doctor_id: UUID, day: date, appointment_id: UUID):
        snapshot = await self.get_queue(doctor_id, day, operator_id)
        if appointment_id not in snapshot.ids:
            raise HTTPException(status_code=404, detail="Appointment is not in the queue")
        await self.redis.add_skipped(operator_id, doctor_id, day, appointment_id)
        logger.info(f"Operator {operator_id} skipped {appointment_id} in queue of doctor {doctor_id}")

    async def restore_skipped(self, operator_id: str, doctor_id: UUID, day: date):
        await self.redis.clear_skipped(operator_id, doctor_id, day)
        logger.info(f"Operator {operator_id} restored skipped items in queue of doctor {doctor_id}")

    async def reorder(
        self,
        doctor_id: UUID,
        day: date,
        source_id: UUID,
        target_id: UUID,
        expected_version: int,
        operator_id: Optional[str] = None,
    ) -> QueueSnapshot:
        """
        Move ``source_id`` immediately before ``target_id`` and persist
        queue orders 1..N for every queued appointment of the day.

        The move is computed on the operator's displayed queue. Items the
        operator has skipped keep their relative place in the full order so
        orders stay unique. The write is conditioned on ``expected_version``.
        """
        displayed = await self.get_queue(doctor_id, day, operator_id)
        full = await self.get_queue(doctor_id, day)
        try:
            if displayed.version != expected_version:
                raise StaleQueueVersion(expected=expected_version, current=displayed.version)
            # The move must make sense in what the operator sees
            move_before(displayed.ids, source_id, target_id)
            orders = sequential_orders(move_before(full.ids, source_id, target_id))

            state = await self._get_or_create_state(doctor_id, day)
            await self._bump_version(state, expected_version)
        except StaleQueueVersion as exc:
            logger.warning(f"Stale reorder for doctor {doctor_id} on {day}: {exc.message}")
            raise HTTPException(status_code=409, detail=exc.message)
        except QueueItemNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.message)

        appointments = {a.id: a for a in await self.get_day_appointments(doctor_id, day, ACTIVE_STATUSES)}
        if appointments.keys() != orders.keys():
            # Booked, completed or cancelled by another operator meanwhile
            await self.session.rollback()
            logger.warning(f"Queue of doctor {doctor_id} on {day} changed during reorder")
            raise HTTPException(status_code=409, detail="The queue changed while reordering. Refresh the queue and try again.")
        for appointment_id, order in orders.items():
            appointment = appointments[appointment_id]
            appointment.queue_order = order
            appointment.updated_at = datetime.utcnow()
            self.session.add(appointment)
        self._audit(
            "queue.reorder", doctor_id, operator_id,
            source_id=str(source_id), target_id=str(target_id), version=expected_version + 1,
        )

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(f"Queue reorder write failed for doctor {doctor_id} on {day}")
            raise HTTPException(status_code=503, detail="Queue order could not be saved. Refresh the queue and try again.")

        logger.info(f"Queue of doctor {doctor_id} on {day} reordered to version {expected_version + 1}")
        return await self.get_queue(doctor_id, day, operator_id)

    async def reset_order(
        self,
        doctor_id: UUID,
        day: date,
        expected_version: Optional[int] = None,
        operator_id: Optional[str] = None,
    ) -> QueueSnapshot:
        state = await self._get_or_create_state(doctor_id, day)
        current = state.version if expected_version is None else expected_version
        try:
            await self._bump_version(state, current)
        except StaleQueueVersion as exc:
            logger.warning(f"Stale order reset for doctor {doctor_id} on {day}: {exc.message}")
            raise HTTPException(status_code=409, detail=exc.message)

        for appointment in await self.get_day_appointments(doctor_id, day, ACTIVE_STATUSES):
            if appointment.queue_order is not None:
                appointment.queue_order = None
                appointment.updated_at = datetime.utcnow()
                self.session.add(appointment)
        self._audit("queue.reset_order", doctor_id, operator_id, version=current + 1)

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(f"Queue order reset failed for doctor {doctor_id} on {day}")
            raise HTTPException(status_code=503, detail="Queue order could not be reset. Refresh the queue and try again.")

        logger.info(f"Queue order of doctor {doctor_id} on {day} reset")
        return await self.get_queue(doctor_id, day, operator_id)

    async def get_stats(self, doctor_id: UUID, day: date) -> QueueStatsResponse:
        appointments = await self.get_day_appointments(doctor_id, day)
        items = build_queue(doctor_id, day, appointments, now=self.clock.now())
        checked_in = [item for item in items if item.status == "checked_in"]
        average = (
            sum(item.waiting_time_minutes for item in checked_in) / len(checked_in)
            if checked_in else 0.0
        )
        return QueueStatsResponse(
            doctor_id=doctor_id,
            date=day,
            total=len(items),
            waiting=len(items) - len(checked_in),
            checked_in=len(checked_in),
            completed=sum(1 for a in appointments if a.status == "completed"),
            average_wait_minutes=round(average, 1),
        )
