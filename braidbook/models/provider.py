"""Provider model definitions."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from braidbook.database import Base


class ProviderStatus(str, enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class Provider(Base):
    """Represents a braider offering bookable services."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    contact_email = Column(String, unique=True, index=True, nullable=False)
    contact_phone = Column(String)
    bio = Column(Text)
    location = Column(String)
    status = Column(
        Enum(ProviderStatus, values_callable=lambda members: [m.value for m in members], native_enum=False),
        nullable=False,
        default=ProviderStatus.PENDING,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship("Service", back_populates="provider", order_by="Service.id")

    @property
    def is_bookable(self) -> bool:
        return self.is_active and self.status == ProviderStatus.APPROVED
