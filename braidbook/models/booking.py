"""Booking model definitions."""

import enum

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text, Time, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from braidbook.database import Base


class BookingStatus(str, enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    REJECTED = 'rejected'


class AppointmentType(str, enum.Enum):
    AT_PROVIDER = 'at-provider'
    AT_HOME = 'at-home'


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

_ACTIVE_SLOT_PREDICATE = text("status IN ('pending', 'confirmed')")


def _enum_values(members):
    return [member.value for member in members]


class Booking(Base):
    """Represents a client's reservation of one slot for one service."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index('idx_bookings_provider_status', 'provider_id', 'status'),
        Index('idx_bookings_slot', 'slot_id'),
        # At most one active booking may hold a slot.
        Index(
            'uq_bookings_active_slot',
            'slot_id',
            unique=True,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
        ),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    # No foreign key: a freed slot may be deleted while cancelled bookings still reference it.
    slot_id = Column(Integer, nullable=False)

    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=False, index=True)
    client_phone = Column(String, nullable=False)
    client_address = Column(String)
    appointment_type = Column(
        Enum(AppointmentType, values_callable=_enum_values, native_enum=False),
        nullable=False,
    )

    status = Column(
        Enum(BookingStatus, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    # Copied from the slot and service when the booking is made.
    booking_date = Column(Date, nullable=False)
    booking_time = Column(Time, nullable=False)
    total_amount = Column(Numeric(10, 2))
    notes = Column(Text)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
