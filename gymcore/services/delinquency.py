"""
DelinquencyService - máquina de estados de morosidad de suscripciones.

    current --pago fallido--> pending_retry --gracia vencida--> past_due
       ^                           |                               |
       +------- pago recuperado ---+-------------------------------+

El paso a past_due restringe el acceso del miembro en la misma transacción.
Las selecciones del sweep se re-evalúan contra la base de datos en cada
ejecución: una segunda pasada no encuentra candidatos ya avanzados.
"""

from datetime import timedelta
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcore.core.clock import Clock
from gymcore.core.errors import BillingError, ErrorKind, StoreWriteFailed
from gymcore.models.billing import AccessState, DelinquencyState, Subscription
from gymcore.repositories.billing import subscription_repository, member_access_repository
from gymcore.schemas.billing import DelinquencySweepResult
from gymcore.services.notification_gateway import NotificationGateway, NotificationEvent

logger = logging.getLogger(__name__)


class DelinquencyService:

    def __init__(
        self,
        clock: Clock,
        notifier: NotificationGateway,
        grace_period_days: int = 7,
        expiry_notice_hours: int = 24,
        batch_size: int = 500
    ):
        self.clock = clock
        self.notifier = notifier
        self.grace_period = timedelta(days=grace_period_days)
        self.expiry_notice = timedelta(hours=expiry_notice_hours)
        self.batch_size = batch_size

    async def run_sweep(self, db: AsyncSession) -> DelinquencySweepResult:
        """
        Una pasada del sweep de morosidad.

        1. Suscripciones cuya gracia vence dentro de la ventana de aviso: se notifica
           billing.grace_period_expiring (fire-and-forget).
        2. Suscripciones con la gracia vencida: pasan a past_due y el acceso del
           miembro queda restringido. Un fallo en una fila no detiene las demás.

        Returns:
            DelinquencySweepResult con notificados, transicionados y escaneados
        """
        now = self.clock.now()
        result = DelinquencySweepResult()

        expiring = await subscription_repository.get_expiring(
            db, now=now, until=now + self.expiry_notice, limit=self.batch_size
        )
        for subscription in expiring:
            self.notifier.dispatch(
                NotificationEvent.GRACE_PERIOD_EXPIRING,
                subscription.member_id,
                subscription_id=subscription.id,
                grace_period_until=subscription.grace_period_until,
            )
            result.notified += 1

        expired = await subscription_repository.get_expired(db, now=now, limit=self.batch_size)
        # Las instancias se expiran con cada commit/rollback: copiar los datos antes
        candidates = [(s.id, s.member_id) for s in expired]
        await db.rollback()

        result.scanned = len(expiring) + len(candidates)

        for subscription_id, member_id in candidates:
            try:
                moved = await subscription_repository.transition(
                    db,
                    subscription_id,
                    from_states=[DelinquencyState.PENDING_RETRY],
                    to_state=DelinquencyState.PAST_DUE,
                    grace_period_until=None,
                    now=now,
                )
                if not moved:
                    # Otro proceso ya avanzó la fila
                    await db.rollback()
                    continue

                await member_access_repository.set_access_state(db, member_id, AccessState.RESTRICTED, now)
                await db.commit()
                result.transitioned += 1
                logger.info(f"Suscripción {subscription_id} pasó a past_due; acceso del miembro {member_id} restringido")
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Error pasando a past_due la suscripción {subscription_id}: {e}", exc_info=True)

        logger.info(
            f"Sweep de morosidad: {result.notified} notificados, "
            f"{result.transitioned} transicionados de {len(candidates)} vencidos"
        )
        return result

    async def record_payment_failed(self, db: AsyncSession, subscription_id: int) -> Subscription:
        """
        Registra un pago fallido: current -> pending_retry con período de gracia.

        Raises:
            BillingError: SUBSCRIPTION_NOT_FOUND o INVALID_STATE_TRANSITION
            StoreWriteFailed: si la escritura falla
        """
        now = self.clock.now()
        grace_period_until = now + self.grace_period

        subscription = await self._transition(
            db,
            subscription_id,
            from_states=[DelinquencyState.CURRENT],
            to_state=DelinquencyState.PENDING_RETRY,
            grace_period_until=grace_period_until,
            access_state=None,
        )
        self.notifier.dispatch(
            NotificationEvent.PAYMENT_FAILED,
            subscription.member_id,
            subscription_id=subscription.id,
            grace_period_until=grace_period_until,
        )
        return subscription

    async def record_payment_recovered(self, db: AsyncSession, subscription_id: int) -> Subscription:
        """
        Registra un pago exitoso: pending_retry/past_due -> current y acceso activo.

        Raises:
            BillingError: SUBSCRIPTION_NOT_FOUND o INVALID_STATE_TRANSITION
            StoreWriteFailed: si la escritura falla
        """
        subscription = await self._transition(
            db,
            subscription_id,
            from_states=[DelinquencyState.PENDING_RETRY, DelinquencyState.PAST_DUE],
            to_state=DelinquencyState.CURRENT,
            grace_period_until=None,
            access_state=AccessState.ACTIVE,
        )
        self.notifier.dispatch(
            NotificationEvent.PAYMENT_RECOVERED,
            subscription.member_id,
            subscription_id=subscription.id,
        )
        return subscription

    async def _transition(
        self,
        db: AsyncSession,
        subscription_id: int,
        *,
        from_states,
        to_state: DelinquencyState,
        grace_period_until,
        access_state: Optional[AccessState]
    ) -> Subscription:
        subscription = await subscription_repository.get(db, subscription_id)
        if subscription is None:
            raise BillingError(ErrorKind.SUBSCRIPTION_NOT_FOUND)

        member_id = subscription.member_id
        previous_state = subscription.delinquency_state
        now = self.clock.now()

        try:
            moved = await subscription_repository.transition(
                db,
                subscription_id,
                from_states=from_states,
                to_state=to_state,
                grace_period_until=grace_period_until,
                now=now,
            )
            if not moved:
                await db.rollback()
                raise BillingError(
                    ErrorKind.INVALID_STATE_TRANSITION,
                    f"No se puede pasar de {previous_state.value} a {to_state.value}"
                )
            if access_state is not None:
                await member_access_repository.set_access_state(db, member_id, access_state, now)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error actualizando la suscripción {subscription_id}: {e}", exc_info=True)
            raise StoreWriteFailed(detail="No se pudo actualizar la suscripción") from e

        await db.refresh(subscription)
        logger.info(f"Suscripción {subscription_id}: {previous_state.value} -> {to_state.value}")
        return subscription
