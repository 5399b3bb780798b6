import os
from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from braidbook.database import Base, build_engine  # noqa: E402
from braidbook.models.availability import AvailabilitySlot  # noqa: E402
from braidbook.models.provider import Provider, ProviderStatus  # noqa: E402
from braidbook.models.service import Service  # noqa: E402
from braidbook.services.notifications import NotificationGateway  # noqa: E402


class RecordingGateway(NotificationGateway):
    def __init__(self):
        self.events: list[dict] = []

    def publish(self, event: dict) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> list[str]:
        return [event['event_type'] for event in self.events]


@pytest.fixture
def session_factory(tmp_path):
    # File-backed so sessions in other threads see the same database.
    engine = build_engine(f'sqlite:///{tmp_path / "braidbook-test.db"}')
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def no_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ('availability_routes', 'booking_routes', 'provider_routes'):
        monkeypatch.setattr(f'braidbook.routes.{module}.ensure_database_ready', lambda: None)


def add_provider(db, email='ana@braids.pt', status=ProviderStatus.APPROVED, is_active=True) -> Provider:
    provider = Provider(name='Ana Braids', contact_email=email, status=status, is_active=is_active)
    db.add(provider)
    db.commit()
    db.refresh(provider)
    return provider


def add_service(db, provider, name='Box braids', price='80.00', duration_minutes=180, is_available=True) -> Service:
    service = Service(
        provider_id=provider.id,
        name=name,
        price=Decimal(price),
        duration_minutes=duration_minutes,
        is_available=is_available,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def add_slot(db, provider, slot_date=date(2025, 8, 1), start=time(9, 0), end=time(10, 0), is_booked=False):
    slot = AvailabilitySlot(
        provider_id=provider.id,
        slot_date=slot_date,
        start_time=start,
        end_time=end,
        is_booked=is_booked,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@pytest.fixture
def provider(db) -> Provider:
    return add_provider(db)


@pytest.fixture
def service(db, provider) -> Service:
    return add_service(db, provider)


@pytest.fixture
def slot(db, provider) -> AvailabilitySlot:
    return add_slot(db, provider)


@pytest.fixture
def seed():
    """Row builders for tests that need more than the default provider, service and slot."""

    class Seed:
        provider = staticmethod(add_provider)
        service = staticmethod(add_service)
        slot = staticmethod(add_slot)

    return Seed
