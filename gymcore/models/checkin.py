from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class CheckinToken(Base):
    """
    Token de check-in de un solo uso y TTL corto, renderizado como QR.

    used pasa de False a True exactamente una vez, mediante un UPDATE
    condicional. Los tokens no se borran: quedan como auditoría.
    """
    __tablename__ = "checkin_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), nullable=False, unique=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(UTCDateTime, nullable=True)
    created_by = Column(String(255), nullable=False)  # Actor que solicitó el token
    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))


class CheckinEvent(Base):
    """Registro de una entrada admitida en una sede"""
    __tablename__ = "checkin_events"

    id = Column(Integer, primary_key=True, index=True)
    # Único: un token solo puede producir un check-in
    token_id = Column(Integer, ForeignKey("checkin_tokens.id"), nullable=False, unique=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    checked_in_at = Column(UTCDateTime, nullable=False)
    source = Column(String(20), nullable=False, default="qr")
