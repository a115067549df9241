from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.auth import Actor, get_current_actor
from gymcore.core.dependencies import get_booking_service
from gymcore.db.session import get_async_db
from gymcore.schemas.booking import Booking, CancelBookingRequest, ClassInstanceRequest, Roster
from gymcore.services.booking import BookingService

router = APIRouter()


@router.post("/book", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def book_class(
    request: ClassInstanceRequest,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
):
    """
    Reserva una plaza en la sesión. Si la sesión está llena la reserva
    queda en lista de espera (status=waitlisted).
    """
    return await service.book(db, actor=actor, class_instance_id=request.class_instance_id)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
):
    return await service.cancel(db, actor=actor, booking_id=request.booking_id)


@router.post("/roster", response_model=Roster)
async def get_class_roster(
    request: ClassInstanceRequest,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service)
):
    """Roster de la sesión para el staff de la sede."""
    return await service.roster(db, actor=actor, class_instance_id=request.class_instance_id)
