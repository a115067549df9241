from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Enum
from sqlalchemy.orm import relationship

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class MemberStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class StaffRole(str, enum.Enum):
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class Member(Base):
    """
    Miembro de un gimnasio.
    user_id es el subject que entrega el colaborador de identidad.
    """
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)  # Sede principal
    full_name = Column(String(255), nullable=True)
    status = Column(Enum(MemberStatus), nullable=False, default=MemberStatus.ACTIVE)

    facility = relationship("Facility")

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))


class Staff(Base):
    """Personal del gimnasio, limitado a una sede"""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    role = Column(Enum(StaffRole), nullable=False, default=StaffRole.STAFF)

    facility = relationship("Facility")

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
