"""
BookingService - reservas de miembros en sesiones de clase y roster para el staff.

Reservar ocupa plaza con el mismo UPDATE condicional que usa la promoción de la
lista de espera; si no queda plaza la reserva se crea en lista de espera.
Cancelar una reserva confirmada libera su plaza en la misma transacción y
después intenta una promoción.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.auth import Actor
from gymcore.core.clock import Clock
from gymcore.core.errors import (
    BookingError, ErrorKind, MemberError, StaffError, StoreWriteFailed
)
from gymcore.models.billing import AccessState
from gymcore.models.member import Member, MemberStatus
from gymcore.models.schedule import BookingStatus, ClassBooking, ClassInstanceStatus
from gymcore.repositories.billing import member_access_repository
from gymcore.repositories.booking import class_instance_repository, class_booking_repository
from gymcore.repositories.member import member_repository, staff_repository
from gymcore.schemas.booking import Roster, RosterEntry
from gymcore.services.waitlist import WaitlistService

logger = logging.getLogger(__name__)


class BookingService:
    """
    Servicio async de reservas.

    Métodos principales:
    - book() - Reservar plaza (o entrar en lista de espera)
    - cancel() - Cancelar una reserva propia
    - roster() - Listado de la sesión para el staff de la sede
    """

    def __init__(self, clock: Clock, waitlist: WaitlistService):
        self.clock = clock
        self.waitlist = waitlist

    async def _get_member(self, db: AsyncSession, actor: Actor) -> Member:
        member = await member_repository.get_by_user_id(db, actor.id)
        if member is None:
            raise MemberError(ErrorKind.MEMBER_NOT_FOUND)
        if member.status != MemberStatus.ACTIVE:
            raise MemberError(ErrorKind.MEMBERSHIP_INACTIVE)
        return member

    async def book(self, db: AsyncSession, *, actor: Actor, class_instance_id: int) -> ClassBooking:
        """
        Reserva una plaza en la sesión para el miembro autenticado.

        Raises:
            MemberError: MEMBER_NOT_FOUND, MEMBERSHIP_INACTIVE o ACCESS_RESTRICTED
            BookingError: CLASS_INSTANCE_NOT_FOUND, MEMBER_FACILITY_MISMATCH, CLASS_NOT_BOOKABLE
                o ALREADY_BOOKED
            StoreWriteFailed: si la reserva no se pudo guardar
        """
        member = await self._get_member(db, actor)
        member_id, member_facility_id = member.id, member.facility_id

        access = await member_access_repository.get_by_member(db, member_id)
        if access is not None and access.access_state == AccessState.RESTRICTED:
            raise MemberError(ErrorKind.ACCESS_RESTRICTED)

        now = self.clock.now()
        instance = await class_instance_repository.get(db, class_instance_id)
        if instance is None:
            raise BookingError(ErrorKind.CLASS_INSTANCE_NOT_FOUND)
        if instance.facility_id != member_facility_id:
            raise BookingError(ErrorKind.MEMBER_FACILITY_MISMATCH)
        if instance.status != ClassInstanceStatus.SCHEDULED or instance.start_at <= now:
            raise BookingError(ErrorKind.CLASS_NOT_BOOKABLE)

        existing = await class_booking_repository.get_active_for_member(
            db, class_instance_id=class_instance_id, member_id=member_id
        )
        if existing is not None:
            raise BookingError(ErrorKind.ALREADY_BOOKED)

        try:
            seat = await class_instance_repository.reserve_seat(db, class_instance_id)
            status = BookingStatus.BOOKED if seat else BookingStatus.WAITLISTED
            booking = await class_booking_repository.create(db, obj_in={
                "class_instance_id": class_instance_id,
                "member_id": member_id,
                "status": status,
                "booked_at": now,
            })
            await db.commit()
        except IntegrityError:
            # Otra petición del mismo miembro ganó la carrera por la sesión
            await db.rollback()
            logger.info(f"Reserva duplicada del miembro {member_id} en la sesión {class_instance_id} rechazada")
            raise BookingError(ErrorKind.ALREADY_BOOKED)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error reservando la sesión {class_instance_id} para miembro {member_id}: {e}", exc_info=True)
            raise StoreWriteFailed(detail="No se pudo guardar la reserva") from e

        logger.info(f"Miembro {member_id} {status.value} en la sesión {class_instance_id}")
        return booking

    async def cancel(self, db: AsyncSession, *, actor: Actor, booking_id: int) -> ClassBooking:
        """
        Cancela una reserva del miembro autenticado.

        Raises:
            BookingError: BOOKING_NOT_FOUND o BOOKING_NOT_ACTIVE
            StoreWriteFailed: si la cancelación no se pudo guardar
        """
        member = await member_repository.get_by_user_id(db, actor.id)
        if member is None:
            raise MemberError(ErrorKind.MEMBER_NOT_FOUND)

        booking = await class_booking_repository.get(db, booking_id)
        if booking is None or booking.member_id != member.id:
            raise BookingError(ErrorKind.BOOKING_NOT_FOUND)
        if booking.status not in (BookingStatus.BOOKED, BookingStatus.WAITLISTED):
            raise BookingError(ErrorKind.BOOKING_NOT_ACTIVE)

        class_instance_id = booking.class_instance_id
        previous_status = booking.status
        now = self.clock.now()

        try:
            moved = await class_booking_repository.transition(
                db,
                booking_id,
                from_status=previous_status,
                to_status=BookingStatus.CANCELED,
                canceled_at=now,
            )
            if not moved:
                # Cambió de estado entre la lectura y la escritura
                await db.rollback()
                raise BookingError(ErrorKind.BOOKING_NOT_ACTIVE)
            if previous_status == BookingStatus.BOOKED:
                await class_instance_repository.release_seat(db, class_instance_id)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error cancelando la reserva {booking_id}: {e}", exc_info=True)
            raise StoreWriteFailed(detail="No se pudo cancelar la reserva") from e

        logger.info(f"Reserva {booking_id} cancelada (estaba {previous_status.value})")

        if previous_status == BookingStatus.BOOKED:
            # La plaza liberada pasa al primero de la lista de espera
            await self.waitlist.promote(db, class_instance_id)

        await db.refresh(booking)
        return booking

    async def roster(self, db: AsyncSession, *, actor: Actor, class_instance_id: int) -> Roster:
        """
        Roster de la sesión, solo para staff de la misma sede.

        Raises:
            StaffError: STAFF_NOT_FOUND o STAFF_FACILITY_MISMATCH
            BookingError: CLASS_INSTANCE_NOT_FOUND
        """
        staff = await staff_repository.get_by_user_id(db, actor.id)
        if staff is None:
            raise StaffError(ErrorKind.STAFF_NOT_FOUND)

        instance = await class_instance_repository.get(db, class_instance_id)
        if instance is None:
            raise BookingError(ErrorKind.CLASS_INSTANCE_NOT_FOUND)
        if instance.facility_id != staff.facility_id:
            raise StaffError(ErrorKind.STAFF_FACILITY_MISMATCH)

        rows = await class_booking_repository.get_roster(db, class_instance_id)
        return Roster(
            class_instance_id=class_instance_id,
            roster=[
                RosterEntry(
                    booking_id=booking.id,
                    member_id=booking.member_id,
                    member_name=full_name or "Miembro",
                    status=booking.status,
                    booked_at=booking.booked_at,
                )
                for booking, full_name in rows
            ]
        )
