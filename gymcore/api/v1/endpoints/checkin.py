from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.auth import Actor, get_current_actor
from gymcore.core.dependencies import get_checkin_token_service
from gymcore.db.session import get_async_db
from gymcore.schemas.checkin import (
    CheckinTokenIssueRequest,
    CheckinTokenIssued,
    CheckinRedeemRequest,
    CheckinRecord
)
from gymcore.services.checkin_token import CheckinTokenService

router = APIRouter()


@router.post("/tokens", response_model=CheckinTokenIssued, status_code=status.HTTP_201_CREATED)
async def issue_checkin_token(
    request: Optional[CheckinTokenIssueRequest] = None,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
    service: CheckinTokenService = Depends(get_checkin_token_service)
):
    """
    Emite un token de check-in de un solo uso para el miembro autenticado.

    El cliente lo muestra como QR hasta expires_at.
    """
    facility_id = request.facility_id if request else None
    return await service.issue(db, actor=actor, facility_id=facility_id)


@router.post("/redeem", response_model=CheckinRecord)
async def redeem_checkin_token(
    request: CheckinRedeemRequest,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
    service: CheckinTokenService = Depends(get_checkin_token_service)
):
    """
    Redime un token escaneado por el staff de la sede y registra la entrada.

    Errores: {"error": kind} con token_not_found, token_already_used, token_expired,
    staff_not_found, staff_facility_mismatch, member_not_found, member_inactive
    o access_restricted.
    """
    return await service.redeem(db, actor=actor, token=request.token)
