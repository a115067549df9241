from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, ForeignKey, Enum, CheckConstraint

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class DelinquencyState(str, enum.Enum):
    """Etapas de salud de facturación de una suscripción"""
    CURRENT = "current"
    PENDING_RETRY = "pending_retry"
    PAST_DUE = "past_due"


class AccessState(str, enum.Enum):
    ACTIVE = "active"
    RESTRICTED = "restricted"


class Subscription(Base):
    """
    Suscripción de un miembro.

    grace_period_until existe si y solo si delinquency_state es PENDING_RETRY.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    delinquency_state = Column(
        Enum(DelinquencyState), nullable=False, default=DelinquencyState.CURRENT, index=True
    )
    grace_period_until = Column(UTCDateTime, nullable=True, index=True)

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(delinquency_state = 'PENDING_RETRY' AND grace_period_until IS NOT NULL) OR "
            "(delinquency_state != 'PENDING_RETRY' AND grace_period_until IS NULL)",
            name="check_grace_period_matches_state",
        ),
    )


class MemberAccess(Base):
    """Estado de acceso derivado, sincronizado con la morosidad de la suscripción"""
    __tablename__ = "member_access"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, unique=True)
    access_state = Column(Enum(AccessState), nullable=False, default=AccessState.ACTIVE)
    updated_at = Column(UTCDateTime, nullable=True)
