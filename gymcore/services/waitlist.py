"""
WaitlistService - promoción de la lista de espera de sesiones de clase.

Cada promoción es una transacción:
1. Reservar plaza: UPDATE condicional de booked_count < capacity (bloquea la fila de la sesión).
2. Elegir la reserva en espera más antigua (booked_at, id). Las entradas de
   miembros suspendidos o con acceso restringido se cancelan por el camino.
3. UPDATE condicional waitlisted -> booked.
4. Commit. Cualquier fallo hace rollback y cuenta como "no promovido".

Como la reserva de plaza bloquea la sesión, dos promotores concurrentes de la
misma sesión se serializan y el orden FIFO se mantiene.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.clock import Clock
from gymcore.models.billing import AccessState
from gymcore.models.member import MemberStatus
from gymcore.models.schedule import BookingStatus, ClassBooking
from gymcore.repositories.billing import member_access_repository
from gymcore.repositories.booking import class_instance_repository, class_booking_repository
from gymcore.repositories.member import member_repository
from gymcore.schemas.booking import WaitlistSweepResult
from gymcore.services.notification_gateway import NotificationGateway, NotificationEvent

logger = logging.getLogger(__name__)


class WaitlistService:

    def __init__(self, clock: Clock, notifier: NotificationGateway, batch_size: int = 50):
        self.clock = clock
        self.notifier = notifier
        self.batch_size = batch_size

    async def run_sweep(self, db: AsyncSession) -> WaitlistSweepResult:
        """
        Recorre las sesiones programadas futuras y promueve mientras haya plazas libres.

        Una sesión llena se descarta con una sola consulta de conteo. En una sesión con
        capacidad C y B reservas se promueven min(C - B, en espera) miembros.
        """
        now = self.clock.now()
        instances = await class_instance_repository.get_upcoming(db, now=now, limit=self.batch_size)
        candidates = [(instance.id, instance.capacity) for instance in instances]
        await db.rollback()

        result = WaitlistSweepResult(scanned=len(candidates))

        for class_instance_id, capacity in candidates:
            try:
                booked = await class_booking_repository.count_booked(db, class_instance_id)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error contando reservas de la sesión {class_instance_id}: {e}", exc_info=True)
                continue

            if booked >= capacity:
                continue

            for _ in range(capacity - booked):
                promoted = await self.promote(db, class_instance_id)
                if promoted is None:
                    break
                result.promoted += 1

        logger.info(f"Sweep de lista de espera: {result.promoted} promovidos en {result.scanned} sesiones")
        return result

    async def _is_eligible(self, db: AsyncSession, member_id: int) -> bool:
        """Un miembro suspendido o con acceso restringido no puede ocupar la plaza."""
        member = await member_repository.get(db, member_id)
        if member is None or member.status != MemberStatus.ACTIVE:
            return False
        access = await member_access_repository.get_by_member(db, member_id)
        return access is None or access.access_state != AccessState.RESTRICTED

    async def promote(self, db: AsyncSession, class_instance_id: int) -> Optional[ClassBooking]:
        """
        Promueve al primer miembro elegible en espera si queda una plaza.

        Las entradas de miembros no elegibles que se encuentran por delante se
        cancelan en la misma transacción y la búsqueda sigue con la siguiente.

        Returns:
            La reserva promovida, o None si no había plaza o nadie elegible en espera
        """
        now = self.clock.now()
        removed = 0
        try:
            if not await class_instance_repository.reserve_seat(db, class_instance_id):
                await db.rollback()
                return None

            while True:
                booking = await class_booking_repository.get_next_waitlisted(db, class_instance_id)
                if booking is None:
                    break
                booking_id, member_id = booking.id, booking.member_id
                if await self._is_eligible(db, member_id):
                    break
                await class_booking_repository.transition(
                    db,
                    booking_id,
                    from_status=BookingStatus.WAITLISTED,
                    to_status=BookingStatus.CANCELED,
                    canceled_at=now,
                )
                removed += 1
                logger.info(
                    f"Reserva en espera {booking_id} del miembro {member_id} retirada de la sesión "
                    f"{class_instance_id}: miembro sin acceso"
                )

            if booking is None:
                if not removed:
                    await db.rollback()
                    return None
                # Persistir las bajas sin ocupar la plaza
                await class_instance_repository.release_seat(db, class_instance_id)
                await db.commit()
                return None

            moved = await class_booking_repository.transition(
                db,
                booking_id,
                from_status=BookingStatus.WAITLISTED,
                to_status=BookingStatus.BOOKED,
            )
            if not moved:
                await db.rollback()
                return None

            await db.commit()
            await db.refresh(booking)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error promoviendo lista de espera de la sesión {class_instance_id}: {e}", exc_info=True)
            return None

        logger.info(f"Reserva {booking_id} del miembro {member_id} promovida en la sesión {class_instance_id}")
        self.notifier.dispatch(
            NotificationEvent.WAITLIST_PROMOTED,
            member_id,
            class_instance_id=class_instance_id,
            booking_id=booking_id,
        )
        return booking
