import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import time
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from braidbook.core import errors
from braidbook.models.availability import AvailabilitySlot
from braidbook.models.booking import AppointmentType, Booking, BookingStatus
from braidbook.models.provider import ProviderStatus
from braidbook.services import reservations
from braidbook.services.reservations import ClientInfo


def client_info(**overrides) -> ClientInfo:
    values = {
        'name': 'Joana Silva',
        'email': 'joana@example.com',
        'phone': '+351 912 345 678',
        'address': None,
    }
    values.update(overrides)
    return ClientInfo(**values)


def test_reserve_creates_pending_booking_and_books_slot(db, provider, service, slot, gateway) -> None:
    booking = reservations.reserve(
        db, provider.id, service.id, slot.id, client_info(), AppointmentType.AT_PROVIDER, gateway=gateway,
    )

    assert booking.status == BookingStatus.PENDING
    assert booking.slot_id == slot.id
    assert booking.booking_date == slot.slot_date
    assert booking.booking_time == time(9, 0)
    assert booking.total_amount == Decimal('80.00')

    db.refresh(slot)
    assert slot.is_booked is True


def test_reserve_emits_booking_created_event(db, provider, service, slot, gateway) -> None:
    booking = reservations.reserve(
        db, provider.id, service.id, slot.id, client_info(), 'at-provider', gateway=gateway,
    )

    assert gateway.event_types == ['BookingCreated']
    assert gateway.events[0]['data'] == {
        'booking_id': booking.id,
        'provider_id': provider.id,
        'client_email': 'joana@example.com',
        'slot_date': '2025-08-01',
        'slot_time': '09:00',
    }


def test_second_reserve_on_same_slot_is_unavailable(db, provider, service, slot, gateway) -> None:
    reservations.reserve(db, provider.id, service.id, slot.id, client_info(), 'at-provider', gateway=gateway)

    with pytest.raises(errors.SlotUnavailable):
        reservations.reserve(
            db, provider.id, service.id, slot.id, client_info(email='rita@example.com'), 'at-provider',
            gateway=gateway,
        )

    assert db.query(Booking).count() == 1
    assert gateway.event_types == ['BookingCreated']


def test_concurrent_reserves_yield_exactly_one_booking(session_factory, db, provider, service, slot) -> None:
    barrier = threading.Barrier(2)

    def attempt(email: str):
        session = session_factory()
        try:
            barrier.wait()
            booking = reservations.reserve(
                session, provider.id, service.id, slot.id, client_info(email=email), 'at-provider',
            )
            return booking.id
        except errors.SlotUnavailable as exc:
            return exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(attempt, ['a@example.com', 'b@example.com']))

    successes = [outcome for outcome in outcomes if isinstance(outcome, int)]
    failures = [outcome for outcome in outcomes if isinstance(outcome, errors.SlotUnavailable)]
    assert len(successes) == 1
    assert len(failures) == 1

    db.expire_all()
    assert db.query(Booking).filter(Booking.slot_id == slot.id).count() == 1
    assert db.get(AvailabilitySlot, slot.id).is_booked is True


def test_reserve_requires_address_for_at_home(db, provider, service, slot) -> None:
    with pytest.raises(errors.ValidationError):
        reservations.reserve(db, provider.id, service.id, slot.id, client_info(address='  '), 'at-home')

    db.refresh(slot)
    assert slot.is_booked is False
    assert db.query(Booking).count() == 0


def test_reserve_at_home_keeps_address(db, provider, service, slot) -> None:
    booking = reservations.reserve(
        db, provider.id, service.id, slot.id, client_info(address=' Rua Augusta 10, Lisboa '), 'at-home',
    )

    assert booking.appointment_type == AppointmentType.AT_HOME
    assert booking.client_address == 'Rua Augusta 10, Lisboa'


@pytest.mark.parametrize(
    'overrides',
    [
        {'name': ' '},
        {'email': 'not-an-email'},
        {'phone': ''},
    ],
)
def test_reserve_rejects_missing_client_fields(db, provider, service, slot, overrides: dict) -> None:
    with pytest.raises(errors.ValidationError):
        reservations.reserve(db, provider.id, service.id, slot.id, client_info(**overrides), 'at-provider')


def test_reserve_rejects_unknown_appointment_type(db, provider, service, slot) -> None:
    with pytest.raises(errors.ValidationError):
        reservations.reserve(db, provider.id, service.id, slot.id, client_info(), 'salon')


def test_reserve_missing_slot_is_not_found(db, provider, service) -> None:
    with pytest.raises(errors.NotFound):
        reservations.reserve(db, provider.id, service.id, 999, client_info(), 'at-provider')


def test_reserve_slot_of_other_provider_is_not_found(db, service, provider, seed) -> None:
    other = seed.provider(db, email='bia@braids.pt')
    foreign_slot = seed.slot(db, other)

    with pytest.raises(errors.NotFound):
        reservations.reserve(db, provider.id, service.id, foreign_slot.id, client_info(), 'at-provider')

    db.refresh(foreign_slot)
    assert foreign_slot.is_booked is False


def test_reserve_service_of_other_provider_is_not_found(db, provider, slot, seed) -> None:
    other = seed.provider(db, email='bia@braids.pt')
    foreign_service = seed.service(db, other)

    with pytest.raises(errors.NotFound):
        reservations.reserve(db, provider.id, foreign_service.id, slot.id, client_info(), 'at-provider')


def test_reserve_withdrawn_service_is_rejected(db, provider, slot, seed) -> None:
    withdrawn = seed.service(db, provider, is_available=False)

    with pytest.raises(errors.ValidationError):
        reservations.reserve(db, provider.id, withdrawn.id, slot.id, client_info(), 'at-provider')


@pytest.mark.parametrize(
    ('status', 'is_active'),
    [
        (ProviderStatus.PENDING, True),
        (ProviderStatus.REJECTED, True),
        (ProviderStatus.APPROVED, False),
    ],
)
def test_reserve_with_hidden_provider_is_not_found(db, seed, status, is_active) -> None:
    hidden = seed.provider(db, email='hidden@braids.pt', status=status, is_active=is_active)
    hidden_service = seed.service(db, hidden)
    hidden_slot = seed.slot(db, hidden)

    with pytest.raises(errors.NotFound):
        reservations.reserve(db, hidden.id, hidden_service.id, hidden_slot.id, client_info(), 'at-provider')


def test_reserve_rejects_client_double_booking_at_same_time(db, provider, service, slot, seed) -> None:
    other = seed.provider(db, email='bia@braids.pt')
    other_service = seed.service(db, other)
    same_time_slot = seed.slot(db, other, slot.slot_date, slot.start_time, slot.end_time)
    reservations.reserve(db, provider.id, service.id, slot.id, client_info(), 'at-provider')

    with pytest.raises(errors.DuplicateBooking):
        reservations.reserve(
            db, other.id, other_service.id, same_time_slot.id, client_info(email=' JOANA@example.com '), 'at-provider',
        )

    db.refresh(same_time_slot)
    assert same_time_slot.is_booked is False


def test_reserve_survives_gateway_failure(db, provider, service, slot) -> None:
    class BrokenGateway:
        def publish(self, event: dict) -> None:
            raise ConnectionError('mail relay down')

    booking = reservations.reserve(
        db, provider.id, service.id, slot.id, client_info(), 'at-provider', gateway=BrokenGateway(),
    )

    assert booking.status == BookingStatus.PENDING


def test_reserve_storage_failure_leaves_slot_free(db, provider, service, slot, gateway) -> None:
    def fail_insert(mapper, connection, target):
        raise OperationalError('INSERT INTO bookings', {}, Exception('disk I/O error'))

    event.listen(Booking, 'before_insert', fail_insert)
    try:
        with pytest.raises(errors.StorageFailure):
            reservations.reserve(db, provider.id, service.id, slot.id, client_info(), 'at-provider', gateway=gateway)
    finally:
        event.remove(Booking, 'before_insert', fail_insert)

    db.refresh(slot)
    assert slot.is_booked is False
    assert db.query(Booking).count() == 0
    assert gateway.events == []


def test_reserve_rejected_by_active_booking_index(db, provider, service, slot, gateway) -> None:
    # An active booking already holds the slot even though its flag reads free.
    db.add(Booking(
        provider_id=provider.id,
        service_id=service.id,
        slot_id=slot.id,
        client_name='Rita Sousa',
        client_email='rita@example.com',
        client_phone='913000000',
        appointment_type=AppointmentType.AT_PROVIDER,
        status=BookingStatus.PENDING,
        booking_date=slot.slot_date,
        booking_time=slot.start_time,
        total_amount=service.price,
    ))
    db.commit()

    with pytest.raises(errors.SlotUnavailable):
        reservations.reserve(db, provider.id, service.id, slot.id, client_info(), 'at-provider', gateway=gateway)

    db.refresh(slot)
    assert slot.is_booked is False
    assert db.query(Booking).filter(Booking.slot_id == slot.id).count() == 1
    assert gateway.events == []
