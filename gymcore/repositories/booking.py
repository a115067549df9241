"""
Repositorios async de sesiones de clase y reservas.

La capacidad se protege con el contador booked_count de ClassInstance:
reservar una plaza es un UPDATE condicional (booked_count < capacity) que
bloquea la fila de la sesión, así que los promotores concurrentes de una
misma sesión se serializan en la base de datos.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.models.member import Member
from gymcore.models.schedule import ClassInstance, ClassBooking, ClassInstanceStatus, BookingStatus
from gymcore.repositories.async_base import AsyncBaseRepository


class AsyncClassInstanceRepository(AsyncBaseRepository[ClassInstance]):

    async def get_upcoming(
        self,
        db: AsyncSession,
        *,
        now: datetime,
        limit: int
    ) -> List[ClassInstance]:
        """Sesiones programadas que aún no empezaron, las más próximas primero."""
        stmt = (
            select(ClassInstance)
            .where(
                ClassInstance.status == ClassInstanceStatus.SCHEDULED,
                ClassInstance.start_at >= now,
            )
            .order_by(ClassInstance.start_at, ClassInstance.id)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def reserve_seat(self, db: AsyncSession, class_instance_id: int) -> bool:
        """
        Ocupa una plaza si queda alguna.

        Returns:
            True si la plaza fue reservada por esta llamada
        """
        stmt = (
            update(ClassInstance)
            .where(
                ClassInstance.id == class_instance_id,
                ClassInstance.status == ClassInstanceStatus.SCHEDULED,
                ClassInstance.booked_count < ClassInstance.capacity,
            )
            .values(booked_count=ClassInstance.booked_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1

    async def release_seat(self, db: AsyncSession, class_instance_id: int) -> bool:
        stmt = (
            update(ClassInstance)
            .where(
                ClassInstance.id == class_instance_id,
                ClassInstance.booked_count > 0,
            )
            .values(booked_count=ClassInstance.booked_count - 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1


class AsyncClassBookingRepository(AsyncBaseRepository[ClassBooking]):

    async def count_booked(self, db: AsyncSession, class_instance_id: int) -> int:
        stmt = (
            select(func.count(ClassBooking.id))
            .where(
                ClassBooking.class_instance_id == class_instance_id,
                ClassBooking.status == BookingStatus.BOOKED,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    async def get_next_waitlisted(
        self,
        db: AsyncSession,
        class_instance_id: int
    ) -> Optional[ClassBooking]:
        """Primera reserva en lista de espera por booked_at (desempate por id)."""
        stmt = (
            select(ClassBooking)
            .where(
                ClassBooking.class_instance_id == class_instance_id,
                ClassBooking.status == BookingStatus.WAITLISTED,
            )
            .order_by(ClassBooking.booked_at, ClassBooking.id)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_member(
        self,
        db: AsyncSession,
        *,
        class_instance_id: int,
        member_id: int
    ) -> Optional[ClassBooking]:
        stmt = (
            select(ClassBooking)
            .where(
                ClassBooking.class_instance_id == class_instance_id,
                ClassBooking.member_id == member_id,
                ClassBooking.status != BookingStatus.CANCELED,
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(
        self,
        db: AsyncSession,
        booking_id: int,
        *,
        from_status: BookingStatus,
        to_status: BookingStatus,
        canceled_at: Optional[datetime] = None
    ) -> bool:
        """Cambia el estado de la reserva solo si sigue en from_status."""
        values = {"status": to_status}
        if canceled_at is not None:
            values["canceled_at"] = canceled_at
        stmt = (
            update(ClassBooking)
            .where(ClassBooking.id == booking_id, ClassBooking.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount == 1

    async def get_roster(
        self,
        db: AsyncSession,
        class_instance_id: int
    ) -> List[Tuple[ClassBooking, Optional[str]]]:
        """Reservas de la sesión con el nombre del miembro, en orden de llegada."""
        stmt = (
            select(ClassBooking, Member.full_name)
            .join(Member, Member.id == ClassBooking.member_id)
            .where(ClassBooking.class_instance_id == class_instance_id)
            .order_by(ClassBooking.booked_at, ClassBooking.id)
        )
        result = await db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]


class_instance_repository = AsyncClassInstanceRepository(ClassInstance)
class_booking_repository = AsyncClassBookingRepository(ClassBooking)
