"""
Tests para DelinquencyService.
Sweep idempotente, restricción de acceso y eventos de pago externos.
"""

from datetime import timedelta

import pytest

from gymcore.core.errors import BillingError, ErrorKind
from gymcore.models import Subscription, DelinquencyState, AccessState
from gymcore.repositories.billing import member_access_repository
from gymcore.services.delinquency import DelinquencyService


@pytest.fixture
def service(clock, notifier):
    return DelinquencyService(clock, notifier, grace_period_days=7, expiry_notice_hours=24, batch_size=500)


async def add_subscription(db, member_id, state=DelinquencyState.CURRENT, grace_period_until=None):
    subscription = Subscription(
        member_id=member_id,
        delinquency_state=state,
        grace_period_until=grace_period_until,
    )
    db.add(subscription)
    await db.commit()
    return subscription


class TestDelinquencySweep:
    """Tests para run_sweep()."""

    @pytest.mark.asyncio
    async def test_expired_grace_moves_to_past_due(self, db, gym, service, clock):
        subscription = await add_subscription(
            db, gym.member_id, DelinquencyState.PENDING_RETRY, clock.now() - timedelta(minutes=1)
        )

        result = await service.run_sweep(db)

        assert result.transitioned == 1
        assert result.notified == 0
        await db.refresh(subscription)
        assert subscription.delinquency_state == DelinquencyState.PAST_DUE
        assert subscription.grace_period_until is None

        access = await member_access_repository.get_by_member(db, gym.member_id)
        assert access.access_state == AccessState.RESTRICTED

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, db, gym, service, clock, notifier, gateway_transport):
        """Una segunda pasada inmediata no re-transiciona ni re-notifica."""
        await add_subscription(db, gym.member_id, DelinquencyState.PENDING_RETRY, clock.now() - timedelta(hours=1))

        first = await service.run_sweep(db)
        second = await service.run_sweep(db)
        await notifier.aclose()

        assert first.transitioned == 1
        assert second.transitioned == 0
        assert second.notified == 0
        assert second.scanned == 0
        assert gateway_transport.payloads == []

    @pytest.mark.asyncio
    async def test_grace_expiring_soon_is_notified(self, db, gym, service, clock, notifier, gateway_transport):
        ends_soon = clock.now() + timedelta(hours=5)
        await add_subscription(db, gym.member_id, DelinquencyState.PENDING_RETRY, ends_soon)
        # Fuera de la ventana de aviso de 24h
        await add_subscription(db, gym.suspended_member_id, DelinquencyState.PENDING_RETRY,
                               clock.now() + timedelta(days=3))

        result = await service.run_sweep(db)
        await notifier.aclose()

        assert result.notified == 1
        assert result.transitioned == 0
        assert len(gateway_transport.payloads) == 1
        payload = gateway_transport.payloads[0]
        assert payload["event"] == "billing.grace_period_expiring"
        assert payload["member_id"] == gym.member_id
        assert gateway_transport.requests[0].headers["Authorization"] == "Bearer gateway-token"

    @pytest.mark.asyncio
    async def test_current_and_past_due_are_ignored(self, db, gym, service, clock):
        await add_subscription(db, gym.member_id, DelinquencyState.CURRENT)
        await add_subscription(db, gym.suspended_member_id, DelinquencyState.PAST_DUE)

        result = await service.run_sweep(db)

        assert result.notified == 0
        assert result.transitioned == 0
        assert result.scanned == 0

    @pytest.mark.asyncio
    async def test_row_failure_does_not_abort_batch(self, db, gym, service, clock, monkeypatch):
        """Si una fila falla, las demás se procesan y la fallida no se cuenta."""
        from sqlalchemy.exc import OperationalError
        from gymcore.repositories import billing as billing_module

        failing = await add_subscription(
            db, gym.member_id, DelinquencyState.PENDING_RETRY, clock.now() - timedelta(hours=2)
        )
        healthy = await add_subscription(
            db, gym.suspended_member_id, DelinquencyState.PENDING_RETRY, clock.now() - timedelta(hours=1)
        )
        failing_member_id = gym.member_id
        original = billing_module.member_access_repository.set_access_state

        async def flaky_set_access_state(session, member_id, access_state, now):
            if member_id == failing_member_id:
                raise OperationalError("UPDATE", {}, Exception("connection lost"))
            return await original(session, member_id, access_state, now)

        monkeypatch.setattr(billing_module.member_access_repository, "set_access_state", flaky_set_access_state)

        result = await service.run_sweep(db)

        assert result.transitioned == 1
        await db.refresh(failing)
        await db.refresh(healthy)
        # La transición fallida se revirtió completa
        assert failing.delinquency_state == DelinquencyState.PENDING_RETRY
        assert failing.grace_period_until is not None
        assert healthy.delinquency_state == DelinquencyState.PAST_DUE


class TestPaymentEvents:
    """Tests para record_payment_failed() y record_payment_recovered()."""

    @pytest.mark.asyncio
    async def test_payment_failed_starts_grace_period(self, db, gym, service, clock, notifier, gateway_transport):
        subscription = await add_subscription(db, gym.member_id)

        updated = await service.record_payment_failed(db, subscription.id)
        await notifier.aclose()

        assert updated.delinquency_state == DelinquencyState.PENDING_RETRY
        assert updated.grace_period_until == clock.now() + timedelta(days=7)
        assert [p["event"] for p in gateway_transport.payloads] == ["billing.payment_failed"]

    @pytest.mark.asyncio
    async def test_payment_failed_twice_is_rejected(self, db, gym, service):
        subscription = await add_subscription(db, gym.member_id)
        await service.record_payment_failed(db, subscription.id)

        with pytest.raises(BillingError) as exc:
            await service.record_payment_failed(db, subscription.id)
        assert exc.value.kind == ErrorKind.INVALID_STATE_TRANSITION

    @pytest.mark.asyncio
    async def test_unknown_subscription(self, db, gym, service):
        with pytest.raises(BillingError) as exc:
            await service.record_payment_recovered(db, 9999)
        assert exc.value.kind == ErrorKind.SUBSCRIPTION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_recovery_from_past_due_restores_access(self, db, gym, service, clock, notifier, gateway_transport):
        subscription = await add_subscription(
            db, gym.member_id, DelinquencyState.PENDING_RETRY, clock.now() - timedelta(days=1)
        )
        await service.run_sweep(db)

        updated = await service.record_payment_recovered(db, subscription.id)
        await notifier.aclose()

        assert updated.delinquency_state == DelinquencyState.CURRENT
        assert updated.grace_period_until is None
        access = await member_access_repository.get_by_member(db, gym.member_id)
        assert access.access_state == AccessState.ACTIVE
        assert "billing.payment_recovered" in [p["event"] for p in gateway_transport.payloads]

    @pytest.mark.asyncio
    async def test_recovery_from_current_is_rejected(self, db, gym, service):
        subscription = await add_subscription(db, gym.member_id)

        with pytest.raises(BillingError) as exc:
            await service.record_payment_recovered(db, subscription.id)
        assert exc.value.kind == ErrorKind.INVALID_STATE_TRANSITION

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, db, gym, service, clock):
        """current -> pending_retry -> (gracia vencida) past_due -> current."""
        subscription = await add_subscription(db, gym.member_id)

        await service.record_payment_failed(db, subscription.id)
        clock.advance(days=7, seconds=1)
        result = await service.run_sweep(db)
        assert result.transitioned == 1

        await db.refresh(subscription)
        assert subscription.delinquency_state == DelinquencyState.PAST_DUE

        await service.record_payment_recovered(db, subscription.id)
        await db.refresh(subscription)
        assert subscription.delinquency_state == DelinquencyState.CURRENT
