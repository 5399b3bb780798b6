"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from braidbook.database import Base


class Service(Base):
    """Represents one offering in a provider's catalog."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    provider = relationship("Provider", back_populates="services")
