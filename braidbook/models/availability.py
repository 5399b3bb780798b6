"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Time
from sqlalchemy.sql import func

from braidbook.database import Base


class AvailabilitySlot(Base):
    """Represents a provider-declared bookable interval on one date."""
    __tablename__ = "availability_slots"
    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_slots_time_range'),
        Index('idx_slots_provider_date', 'provider_id', 'slot_date'),
        Index('idx_slots_booked_date', 'is_booked', 'slot_date'),
        # Deleted slot ids are never reissued; cancelled bookings still carry them.
        {'sqlite_autoincrement': True},
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
