import os

# Configuración de entorno ANTES de importar la aplicación (get_settings está cacheado)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_gymcore.db")
os.environ.setdefault("WORKER_API_KEY", "test-worker-key")
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone
import json
from types import SimpleNamespace
from typing import List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from gymcore.core.auth import Actor
from gymcore.core.clock import FixedClock
from gymcore.db.base import Base
from gymcore.models import (
    Facility, Member, MemberStatus, Staff, ClassInstance, ClassInstanceStatus,
    ClassBooking, BookingStatus
)
from gymcore.services.notification_gateway import NotificationGateway
from gymcore.services.report_delivery import ReportDeliveryClient

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Base de datos SQLite en archivo temporal.

    Un archivo (no :memory:) permite que varias sesiones concurrentes usen
    conexiones distintas sobre los mismos datos.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'gymcore_test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


class RecordingTransport:
    """Transporte httpx que guarda cada payload JSON recibido."""

    def __init__(self, status_code: int = 202):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"queued": True})

    @property
    def payloads(self) -> list:
        return [json.loads(r.content) for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def gateway_transport():
    return RecordingTransport()


@pytest.fixture
def notifier(gateway_transport):
    return NotificationGateway(
        base_url="http://notifications.test/events",
        api_token="gateway-token",
        timeout=1.0,
        transport=gateway_transport.transport(),
    )


@pytest.fixture
def delivery_transport():
    return RecordingTransport()


@pytest.fixture
def delivery(delivery_transport):
    return ReportDeliveryClient(
        base_url="http://reports.test/runs",
        timeout=1.0,
        transport=delivery_transport.transport(),
    )


@pytest_asyncio.fixture
async def gym(db):
    """
    Dos sedes, un miembro activo, uno suspendido, staff en cada sede.

    Actores: member-1 (activo, sede A), member-2 (suspendido, sede A),
    staff-a (sede A), staff-b (sede B).
    """
    facility_a = Facility(name="Centro", timezone="America/Mexico_City")
    facility_b = Facility(name="Norte", timezone="America/Mexico_City")
    db.add_all([facility_a, facility_b])
    await db.flush()

    member = Member(user_id="member-1", facility_id=facility_a.id, full_name="Ana Pérez",
                    status=MemberStatus.ACTIVE)
    suspended = Member(user_id="member-2", facility_id=facility_a.id, full_name="Luis Gómez",
                       status=MemberStatus.SUSPENDED)
    staff_a = Staff(user_id="staff-a", facility_id=facility_a.id)
    staff_b = Staff(user_id="staff-b", facility_id=facility_b.id)
    db.add_all([member, suspended, staff_a, staff_b])
    await db.commit()

    return SimpleNamespace(
        facility_a_id=facility_a.id,
        facility_b_id=facility_b.id,
        member_id=member.id,
        suspended_member_id=suspended.id,
        staff_a_id=staff_a.id,
        staff_b_id=staff_b.id,
        member_actor=Actor(sub="member-1"),
        suspended_actor=Actor(sub="member-2"),
        staff_a_actor=Actor(sub="staff-a"),
        staff_b_actor=Actor(sub="staff-b"),
        unknown_actor=Actor(sub="nobody"),
    )


@pytest.fixture
def make_members(db):
    async def _make(facility_id: int, count: int, prefix: str = "extra") -> List[int]:
        return await create_members(db, facility_id, count, prefix)
    return _make


@pytest.fixture
def make_class_instance(db):
    async def _make(facility_id: int, **kwargs) -> int:
        return await create_class_instance(db, facility_id, **kwargs)
    return _make


async def create_members(db, facility_id: int, count: int, prefix: str = "extra") -> List[int]:
    members = [
        Member(user_id=f"{prefix}-{i}", facility_id=facility_id, full_name=f"Miembro {i}",
               status=MemberStatus.ACTIVE)
        for i in range(count)
    ]
    db.add_all(members)
    await db.commit()
    return [m.id for m in members]


async def create_class_instance(
    db,
    facility_id: int,
    *,
    capacity: int,
    booked_member_ids=(),
    waitlisted_member_ids=(),
    start_at: datetime = NOW + timedelta(days=1),
    status: ClassInstanceStatus = ClassInstanceStatus.SCHEDULED
) -> int:
    """
    Crea una sesión con reservas. booked_count se mantiene igual a las reservas BOOKED.
    Las reservas en espera reciben booked_at crecientes en el orden dado.
    """
    instance = ClassInstance(
        facility_id=facility_id,
        name="Spinning",
        capacity=capacity,
        booked_count=len(booked_member_ids),
        status=status,
        start_at=start_at,
    )
    db.add(instance)
    await db.flush()

    base = NOW - timedelta(days=2)
    for i, member_id in enumerate(booked_member_ids):
        db.add(ClassBooking(class_instance_id=instance.id, member_id=member_id,
                            status=BookingStatus.BOOKED, booked_at=base + timedelta(minutes=i)))
    for i, member_id in enumerate(waitlisted_member_ids):
        db.add(ClassBooking(class_instance_id=instance.id, member_id=member_id,
                            status=BookingStatus.WAITLISTED, booked_at=base + timedelta(hours=1, minutes=i)))
    await db.commit()
    return instance.id
