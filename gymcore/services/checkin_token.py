"""
CheckinTokenService - emisión y redención de tokens de check-in de un solo uso.

El miembro solicita un token opaco de TTL corto que se muestra como QR. El staff
de la sede lo escanea y la redención admite al miembro exactamente una vez:

- El token se consume con un UPDATE condicional (used = false AND no expirado).
- El registro del check-in se inserta en la misma transacción que el consumo.
- Si el miembro tiene el acceso restringido por morosidad, el token no se consume.
"""

from datetime import timedelta
import logging
import secrets
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.auth import Actor
from gymcore.core.clock import Clock
from gymcore.core.errors import (
    ErrorKind, MemberError, TokenError, StaffError, StoreWriteFailed
)
from gymcore.models.billing import AccessState
from gymcore.models.checkin import CheckinToken
from gymcore.models.member import MemberStatus
from gymcore.repositories.billing import member_access_repository
from gymcore.repositories.checkin import checkin_token_repository, checkin_event_repository
from gymcore.repositories.member import member_repository, staff_repository
from gymcore.schemas.checkin import CheckinRecord

logger = logging.getLogger(__name__)


class CheckinTokenService:
    """
    Servicio async de tokens de check-in.

    Métodos principales:
    - issue() - Emitir un token para el miembro autenticado
    - redeem() - Redimir un token desde el escáner del staff
    """

    def __init__(self, clock: Clock, token_ttl_seconds: int = 120):
        self.clock = clock
        self.token_ttl = timedelta(seconds=token_ttl_seconds)

    async def issue(
        self,
        db: AsyncSession,
        *,
        actor: Actor,
        facility_id: Optional[int] = None
    ) -> CheckinToken:
        """
        Emite un token de check-in para el miembro asociado al actor.

        Args:
            db: Sesión async de base de datos
            actor: Usuario autenticado (miembro)
            facility_id: Sede del check-in; solo se admite la sede principal del miembro

        Returns:
            CheckinToken persistido con used=False

        Raises:
            MemberError: MEMBER_NOT_FOUND, MEMBERSHIP_INACTIVE o MEMBER_FACILITY_MISMATCH
            StoreWriteFailed: si la inserción falla
        """
        member = await member_repository.get_by_user_id(db, actor.id)
        if member is None:
            raise MemberError(ErrorKind.MEMBER_NOT_FOUND)
        if member.status != MemberStatus.ACTIVE:
            raise MemberError(ErrorKind.MEMBERSHIP_INACTIVE)
        if facility_id is not None and facility_id != member.facility_id:
            raise MemberError(ErrorKind.MEMBER_FACILITY_MISMATCH)

        member_id, home_facility_id = member.id, member.facility_id
        now = self.clock.now()
        try:
            token = await checkin_token_repository.create(db, obj_in={
                "token": secrets.token_hex(16),
                "member_id": member_id,
                "facility_id": home_facility_id,
                "expires_at": now + self.token_ttl,
                "used": False,
                "created_by": actor.id,
                "created_at": now,
            })
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error guardando token de check-in para miembro {member_id}: {e}", exc_info=True)
            raise StoreWriteFailed(detail="No se pudo guardar el token") from e

        logger.info(f"Token de check-in emitido para miembro {member_id} en sede {token.facility_id}")
        return token

    async def redeem(self, db: AsyncSession, *, actor: Actor, token: str) -> CheckinRecord:
        """
        Redime un token y registra el check-in.

        Orden de validación: token inexistente, ya usado, expirado, staff inexistente,
        sede del staff distinta, miembro inexistente, miembro inactivo, acceso restringido.

        Raises:
            TokenError: TOKEN_NOT_FOUND, TOKEN_ALREADY_USED o TOKEN_EXPIRED
            StaffError: STAFF_NOT_FOUND o STAFF_FACILITY_MISMATCH
            MemberError: MEMBER_NOT_FOUND, MEMBER_INACTIVE o ACCESS_RESTRICTED
            StoreWriteFailed: si el registro del check-in no se pudo guardar
        """
        checkin_token = await checkin_token_repository.get_by_token(db, token)
        if checkin_token is None:
            raise TokenError(ErrorKind.TOKEN_NOT_FOUND)
        if checkin_token.used:
            raise TokenError(ErrorKind.TOKEN_ALREADY_USED)

        now = self.clock.now()
        if now > checkin_token.expires_at:
            raise TokenError(ErrorKind.TOKEN_EXPIRED)

        staff = await staff_repository.get_by_user_id(db, actor.id)
        if staff is None:
            raise StaffError(ErrorKind.STAFF_NOT_FOUND)
        if staff.facility_id != checkin_token.facility_id:
            raise StaffError(ErrorKind.STAFF_FACILITY_MISMATCH)

        member = await member_repository.get(db, checkin_token.member_id)
        if member is None:
            raise MemberError(ErrorKind.MEMBER_NOT_FOUND)
        if member.status != MemberStatus.ACTIVE:
            raise MemberError(ErrorKind.MEMBER_INACTIVE)

        access = await member_access_repository.get_by_member(db, member.id)
        if access is not None and access.access_state == AccessState.RESTRICTED:
            raise MemberError(ErrorKind.ACCESS_RESTRICTED)

        # El rollback expira las instancias de la sesión: trabajar con ids
        token_id, facility_id = checkin_token.id, checkin_token.facility_id
        member_id, staff_id = member.id, staff.id

        try:
            won = await checkin_token_repository.consume(db, token_id, now)
            if not won:
                await db.rollback()
                logger.info(f"Token {token_id} consumido por otra redención concurrente")
                raise TokenError(ErrorKind.TOKEN_ALREADY_USED)

            event = await checkin_event_repository.create(db, obj_in={
                "token_id": token_id,
                "member_id": member_id,
                "facility_id": facility_id,
                "staff_id": staff_id,
                "checked_in_at": now,
                "source": "qr",
            })
            checkin_id = event.id
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error registrando check-in del token {token_id}: {e}", exc_info=True)
            raise StoreWriteFailed(detail="No se pudo registrar el check-in") from e

        logger.info(
            f"Check-in {checkin_id}: miembro {member_id} admitido en sede {facility_id} por staff {staff_id}"
        )
        return CheckinRecord(
            checkin_id=checkin_id,
            member_id=member_id,
            facility_id=facility_id,
            staff_id=staff_id,
            checked_in_at=now,
        )
