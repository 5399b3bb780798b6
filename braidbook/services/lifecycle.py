"""Status transitions for existing bookings.

Allowed moves::

    pending   --confirm--> confirmed
    pending   --reject---> rejected    (releases the slot)
    pending   --cancel---> cancelled   (releases the slot)
    confirmed --cancel---> cancelled   (releases the slot)

``rejected`` and ``cancelled`` are terminal. The slot release is part of the
same commit as the status change, so a cancelled booking can never leave its
slot marked booked.
"""

import enum
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from braidbook.core import errors
from braidbook.models.booking import Booking, BookingStatus
from braidbook.services import notifications, slot_store
from braidbook.services.notifications import LifecycleEvent, NotificationGateway

logger = logging.getLogger(__name__)


class BookingAction(str, enum.Enum):
    CONFIRM = 'confirm'
    REJECT = 'reject'
    CANCEL = 'cancel'


BOOKING_TRANSITIONS = {
    (BookingStatus.PENDING, BookingAction.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingAction.REJECT): BookingStatus.REJECTED,
    (BookingStatus.PENDING, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.CANCEL): BookingStatus.CANCELLED,
}

SLOT_RELEASING_STATUSES = {BookingStatus.CANCELLED, BookingStatus.REJECTED}

TRANSITION_EVENTS = {
    BookingStatus.CONFIRMED: LifecycleEvent.BOOKING_CONFIRMED,
    BookingStatus.CANCELLED: LifecycleEvent.BOOKING_CANCELLED,
    BookingStatus.REJECTED: LifecycleEvent.BOOKING_REJECTED,
}

CLIENT_ACTIONS = {BookingAction.CANCEL}


def next_status(current: BookingStatus, action: BookingAction) -> BookingStatus:
    try:
        return BOOKING_TRANSITIONS[(current, action)]
    except KeyError:
        raise errors.InvalidTransition(
            f'Cannot {action.value} a booking that is {current.value}.'
        ) from None


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise errors.NotFound('Booking not found.')
    return booking


def _authorize(booking: Booking, action: BookingAction, provider_id: int | None, client_email: str | None) -> None:
    if provider_id is not None:
        if booking.provider_id != provider_id:
            raise errors.Forbidden('Only the provider who owns this booking can change it.')
        return

    if client_email is not None:
        if action not in CLIENT_ACTIONS:
            raise errors.Forbidden('Clients can only cancel their bookings.')
        if booking.client_email != client_email.strip().lower():
            raise errors.Forbidden('Only the client who made this booking can cancel it.')
        return

    raise errors.Forbidden('A provider or the booking client must request the change.')


def transition(
    db: Session,
    booking_id: int,
    action: BookingAction | str,
    provider_id: int | None = None,
    client_email: str | None = None,
    gateway: NotificationGateway | None = None,
) -> Booking:
    try:
        action = BookingAction(action)
    except ValueError as exc:
        raise errors.ValidationError('Action must be confirm, reject or cancel.') from exc

    try:
        booking = get_booking(db, booking_id)
        _authorize(booking, action, provider_id, client_email)

        current = booking.status
        target = next_status(current, action)

        # Conditional on the status just read so two racing transitions cannot both apply.
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == current)
            .values(status=target, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise errors.InvalidTransition('The booking was changed by another request. Reload and try again.')

        if target in SLOT_RELEASING_STATUSES and not slot_store.mark_free(db, booking.slot_id):
            logger.warning('Slot %s was already free when booking %s became %s', booking.slot_id, booking_id, target.value)

        db.commit()
    except errors.BookingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Transition of booking %s failed; transaction rolled back.', booking_id)
        raise errors.StorageFailure() from exc

    db.refresh(booking)
    logger.info('Booking %s moved %s -> %s', booking_id, current.value, target.value)
    notifications.emit(gateway, TRANSITION_EVENTS[target], booking)
    return booking


def list_provider_bookings(db: Session, provider_id: int, status: BookingStatus | None = None) -> list[Booking]:
    query = db.query(Booking).filter(Booking.provider_id == provider_id)
    if status is not None:
        query = query.filter(Booking.status == status)
    return query.order_by(Booking.booking_date.asc(), Booking.booking_time.asc(), Booking.id.asc()).all()


def list_client_bookings(db: Session, client_email: str) -> list[Booking]:
    return db.query(Booking).filter(
        Booking.client_email == client_email.strip().lower(),
    ).order_by(Booking.booking_date.desc(), Booking.booking_time.desc(), Booking.id.desc()).all()
