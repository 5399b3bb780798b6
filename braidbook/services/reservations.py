"""Turns a free slot plus a service selection into a pending booking.

``reserve`` is the only code path that sets a slot's ``is_booked`` flag. The
flag is claimed with a conditional update ("set is_booked where id=X and not
is_booked") and the booking row is inserted in the same transaction, so two
concurrent callers racing for one slot get exactly one booking between them.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from braidbook.core import errors
from braidbook.models.availability import AvailabilitySlot
from braidbook.models.booking import ACTIVE_STATUSES, AppointmentType, Booking, BookingStatus
from braidbook.models.provider import Provider
from braidbook.models.service import Service
from braidbook.services import notifications, slot_store
from braidbook.services.notifications import LifecycleEvent, NotificationGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    name: str
    email: str
    phone: str
    address: str | None = None


def normalize_client(client: ClientInfo, appointment_type: AppointmentType) -> ClientInfo:
    name = (client.name or '').strip()
    email = (client.email or '').strip().lower()
    phone = (client.phone or '').strip()
    address = (client.address or '').strip() or None

    if not name:
        raise errors.ValidationError('Client name is required.')
    if not email or '@' not in email:
        raise errors.ValidationError('A valid client email is required.')
    if not phone:
        raise errors.ValidationError('Client phone is required.')
    if appointment_type == AppointmentType.AT_HOME and address is None:
        raise errors.ValidationError('An address is required for at-home appointments.')

    return ClientInfo(name=name, email=email, phone=phone, address=address)


def _parse_appointment_type(value: AppointmentType | str) -> AppointmentType:
    try:
        return AppointmentType(value)
    except ValueError as exc:
        raise errors.ValidationError('Invalid appointment type.') from exc


def _check_preconditions(db: Session, provider_id: int, service_id: int) -> Service:
    provider = db.get(Provider, provider_id)
    if provider is None or not provider.is_bookable:
        raise errors.NotFound('Provider not found.')

    service = db.get(Service, service_id)
    if service is None or service.provider_id != provider_id:
        raise errors.NotFound('Service not found.')
    if not service.is_available:
        raise errors.ValidationError('This service is not currently offered.')

    return service


def _check_client_is_free(db: Session, client_email: str, slot: AvailabilitySlot) -> None:
    clash = db.query(Booking.id).filter(
        Booking.client_email == client_email,
        Booking.booking_date == slot.slot_date,
        Booking.booking_time == slot.start_time,
        Booking.status.in_(ACTIVE_STATUSES),
    ).first()
    if clash:
        raise errors.DuplicateBooking('You already have an appointment at this date and time.')


def reserve(
    db: Session,
    provider_id: int,
    service_id: int,
    slot_id: int,
    client: ClientInfo,
    appointment_type: AppointmentType | str,
    notes: str | None = None,
    gateway: NotificationGateway | None = None,
) -> Booking:
    appointment_type = _parse_appointment_type(appointment_type)
    client = normalize_client(client, appointment_type)

    try:
        service = _check_preconditions(db, provider_id, service_id)

        if not slot_store.mark_booked(db, slot_id, provider_id):
            db.rollback()
            # Raises NotFound when the slot is missing or belongs to someone else.
            slot_store.get_slot(db, slot_id, provider_id)
            logger.info('Reservation of slot %s lost: slot already booked', slot_id)
            raise errors.SlotUnavailable('This time slot is no longer available.')

        slot = db.get(AvailabilitySlot, slot_id)
        _check_client_is_free(db, client.email, slot)

        booking = Booking(
            provider_id=provider_id,
            service_id=service.id,
            slot_id=slot.id,
            client_name=client.name,
            client_email=client.email,
            client_phone=client.phone,
            client_address=client.address,
            appointment_type=appointment_type,
            status=BookingStatus.PENDING,
            booking_date=slot.slot_date,
            booking_time=slot.start_time,
            total_amount=service.price,
            notes=notes,
        )
        db.add(booking)
        db.commit()
    except errors.BookingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        # The active-slot unique index caught a second booking for this slot.
        db.rollback()
        logger.warning('Reservation of slot %s rejected by the active-booking index', slot_id)
        raise errors.SlotUnavailable('This time slot is no longer available.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Reservation of slot %s failed; transaction rolled back.', slot_id)
        raise errors.StorageFailure() from exc

    db.refresh(booking)
    logger.info(
        'Booking %s created for slot %s (provider %s, service %s)',
        booking.id, slot_id, provider_id, service_id,
    )
    notifications.emit(gateway, LifecycleEvent.BOOKING_CREATED, booking)
    return booking
