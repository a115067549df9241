from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class Facility(Base):
    """Sede física del gimnasio a la que se admite a los miembros"""
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
