"""
Tests para ReportScheduleService.
Avance del reloj de programaciones, compare-and-set y disparo de entregas.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from gymcore.models import ReportSchedule, ReportCadence, ReportFormat
from gymcore.services.report_schedule import ReportScheduleService, advance


@pytest.fixture
def service(clock, delivery):
    return ReportScheduleService(clock, delivery, batch_size=100)


async def add_schedule(db, *, cadence, next_run_at, last_run_at=None, tz="UTC", is_active=True):
    schedule = ReportSchedule(
        report_id="attendance-summary",
        cadence=cadence,
        timezone=tz,
        last_run_at=last_run_at,
        next_run_at=next_run_at,
        delivery_emails=["owner@gym.test", "manager@gym.test"],
        format=ReportFormat.CSV,
        is_active=is_active,
    )
    db.add(schedule)
    await db.commit()
    return schedule


class TestReportSweep:
    """Tests para run_sweep()."""

    @pytest.mark.asyncio
    async def test_due_schedule_is_advanced(self, db, service, clock, delivery, delivery_transport):
        schedule = await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now() - timedelta(minutes=5))

        result = await service.run_sweep(db)
        await delivery.aclose()

        assert result.processed == [schedule.id]
        await db.refresh(schedule)
        assert schedule.last_run_at == clock.now()
        assert schedule.next_run_at == clock.now() + timedelta(days=1)

        assert len(delivery_transport.payloads) == 1
        payload = delivery_transport.payloads[0]
        assert payload["schedule_id"] == schedule.id
        assert payload["report_id"] == "attendance-summary"
        assert payload["format"] == "csv"
        assert sorted(payload["delivery_emails"]) == ["manager@gym.test", "owner@gym.test"]

    @pytest.mark.asyncio
    async def test_future_and_inactive_schedules_are_skipped(self, db, service, clock):
        await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now() + timedelta(hours=1))
        await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now() - timedelta(hours=1),
                           is_active=False)

        result = await service.run_sweep(db)

        assert result.processed == []
        assert result.scanned == 0

    @pytest.mark.asyncio
    async def test_second_run_processes_nothing(self, db, service, clock):
        await add_schedule(db, cadence=ReportCadence.WEEKLY, next_run_at=clock.now())

        first = await service.run_sweep(db)
        second = await service.run_sweep(db)

        assert len(first.processed) == 1
        assert second.processed == []

    @pytest.mark.asyncio
    async def test_n_sweeps_advance_n_periods(self, db, service, clock):
        """N sweeps, cada uno en su next_run_at, avanzan exactamente N días sin deriva."""
        start = clock.now()
        schedule = await add_schedule(
            db, cadence=ReportCadence.DAILY, next_run_at=start, last_run_at=start - timedelta(days=1)
        )

        for i in range(5):
            clock.set(schedule.next_run_at)
            result = await service.run_sweep(db)
            assert result.processed == [schedule.id]
            await db.refresh(schedule)
            assert schedule.next_run_at == start + timedelta(days=i + 1)
            assert schedule.last_run_at == start + timedelta(days=i)

    @pytest.mark.asyncio
    async def test_lost_compare_and_set_is_excluded(self, db, service, clock, monkeypatch):
        """Si otro sweep avanzó la programación, esta pasada no la cuenta."""
        from gymcore.repositories import report_schedule as schedule_module

        await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now())

        async def lost_advance(*args, **kwargs):
            return False

        monkeypatch.setattr(schedule_module.report_schedule_repository, "advance", lost_advance)

        result = await service.run_sweep(db)

        assert result.processed == []
        assert result.scanned == 1

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_next_run(self, db, service, clock, monkeypatch):
        from sqlalchemy.exc import OperationalError
        from gymcore.repositories import report_schedule as schedule_module

        schedule = await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now())
        schedule_id = schedule.id
        original = schedule_module.report_schedule_repository.advance

        async def failing_advance(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("timeout"))

        monkeypatch.setattr(schedule_module.report_schedule_repository, "advance", failing_advance)
        failed = await service.run_sweep(db)
        assert failed.processed == []

        monkeypatch.setattr(schedule_module.report_schedule_repository, "advance", original)
        retried = await service.run_sweep(db)
        assert retried.processed == [schedule_id]

    @pytest.mark.asyncio
    async def test_lost_schedule_does_not_block_the_next(
        self, db, service, clock, delivery, delivery_transport, monkeypatch
    ):
        """Tras perder un compare-and-set, las siguientes programaciones se avanzan y entregan."""
        from gymcore.repositories import report_schedule as schedule_module

        lost = await add_schedule(db, cadence=ReportCadence.DAILY, next_run_at=clock.now() - timedelta(hours=2))
        kept = await add_schedule(db, cadence=ReportCadence.WEEKLY, next_run_at=clock.now() - timedelta(hours=1))
        lost_id, kept_id = lost.id, kept.id
        original = schedule_module.report_schedule_repository.advance

        async def lose_first(db_, schedule_id, **kwargs):
            if schedule_id == lost_id:
                return False
            return await original(db_, schedule_id, **kwargs)

        monkeypatch.setattr(schedule_module.report_schedule_repository, "advance", lose_first)

        result = await service.run_sweep(db)
        await delivery.aclose()

        assert result.processed == [kept_id]
        assert [p["schedule_id"] for p in delivery_transport.payloads] == [kept_id]
        assert delivery_transport.payloads[0]["format"] == "csv"

    @pytest.mark.asyncio
    async def test_overlapping_sweeps_process_once(self, db, service, clock, session_factory):
        await add_schedule(db, cadence=ReportCadence.MONTHLY, next_run_at=clock.now())

        async def sweep():
            async with session_factory() as session:
                return await service.run_sweep(session)

        results = await asyncio.gather(sweep(), sweep())

        assert sum(len(r.processed) for r in results) == 1


class TestAdvance:
    """Tests para advance()."""

    def test_daily(self):
        now = datetime(2024, 5, 10, 8, 30, tzinfo=timezone.utc)
        assert advance(ReportCadence.DAILY, now) == datetime(2024, 5, 11, 8, 30, tzinfo=timezone.utc)

    def test_weekly(self):
        now = datetime(2024, 12, 28, 8, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.WEEKLY, now) == datetime(2025, 1, 4, 8, 0, tzinfo=timezone.utc)

    def test_monthly_clamps_to_last_day_in_leap_year(self):
        """31 de enero + 1 mes = 29 de febrero (2024 es bisiesto)."""
        now = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now) == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)

    def test_monthly_clamps_in_common_year(self):
        now = datetime(2023, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now) == datetime(2023, 2, 28, 9, 0, tzinfo=timezone.utc)

    def test_monthly_is_deterministic(self):
        now = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now) == advance(ReportCadence.MONTHLY, now)

    def test_monthly_regular_day(self):
        now = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now) == datetime(2024, 4, 15, 9, 0, tzinfo=timezone.utc)

    def test_daily_keeps_local_wall_clock_across_dst(self):
        """09:00 en Nueva York sigue siendo 09:00 local tras el cambio de horario."""
        # 2024-03-09 09:00 EST (UTC-5)
        now = datetime(2024, 3, 9, 14, 0, tzinfo=timezone.utc)
        # 2024-03-10 09:00 EDT (UTC-4)
        expected = datetime(2024, 3, 10, 13, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.DAILY, now, "America/New_York") == expected

    def test_monthly_uses_local_calendar(self):
        """El fin de mes se evalúa en la zona local de la programación."""
        # 2024-01-31 20:00 en Ciudad de México (UTC-6) = 2024-02-01 02:00 UTC
        now = datetime(2024, 2, 1, 2, 0, tzinfo=timezone.utc)
        # 2024-02-29 20:00 local = 2024-03-01 02:00 UTC
        expected = datetime(2024, 3, 1, 2, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now, "America/Mexico_City") == expected

    def test_unknown_timezone_falls_back_to_utc(self):
        now = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert advance(ReportCadence.MONTHLY, now, "Mars/Olympus_Mons") == datetime(
            2024, 2, 29, 9, 0, tzinfo=timezone.utc
        )

    def test_result_is_strictly_after_now(self):
        now = datetime(2024, 11, 2, 5, 30, tzinfo=timezone.utc)
        for cadence in ReportCadence:
            assert advance(cadence, now, "America/New_York") > now
