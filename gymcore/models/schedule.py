import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Enum, CheckConstraint, Index, text
from sqlalchemy.orm import relationship

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class ClassInstanceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CANCELED = "canceled"
    COMPLETED = "completed"


class BookingStatus(str, enum.Enum):
    BOOKED = "booked"
    WAITLISTED = "waitlisted"
    CANCELED = "canceled"


class ClassInstance(Base):
    """Sesión concreta de una clase con capacidad fija"""
    __tablename__ = "class_instances"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    # Contador mantenido de reservas BOOKED; toda reserva de plaza pasa por un UPDATE condicional
    booked_count = Column(Integer, nullable=False, default=0)
    status = Column(Enum(ClassInstanceStatus), nullable=False, default=ClassInstanceStatus.SCHEDULED)
    start_at = Column(UTCDateTime, nullable=False, index=True)

    bookings = relationship("ClassBooking", back_populates="class_instance")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_capacity_non_negative"),
        CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="check_booked_within_capacity"),
    )


class ClassBooking(Base):
    """Reserva (o posición en lista de espera) de un miembro en una sesión"""
    __tablename__ = "class_bookings"

    id = Column(Integer, primary_key=True, index=True)
    class_instance_id = Column(Integer, ForeignKey("class_instances.id"), nullable=False)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    status = Column(Enum(BookingStatus), nullable=False)
    booked_at = Column(UTCDateTime, nullable=False)  # Orden FIFO de la lista de espera
    canceled_at = Column(UTCDateTime, nullable=True)

    class_instance = relationship("ClassInstance", back_populates="bookings")

    __table_args__ = (
        Index("ix_class_bookings_instance_status_booked_at", "class_instance_id", "status", "booked_at"),
        # Una sola reserva activa (booked o en espera) por miembro y sesión
        Index(
            "uq_class_bookings_active_member",
            "class_instance_id",
            "member_id",
            unique=True,
            sqlite_where=text("status != 'CANCELED'"),
            postgresql_where=text("status != 'CANCELED'"),
        ),
    )
