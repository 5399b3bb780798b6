"""Durable storage of provider availability slots.

The ``is_booked`` flag is only ever flipped through ``mark_booked`` and
``mark_free``, which are conditional updates against the slot row. Callers
own the surrounding transaction for those two; every other function here
commits its own unit of work.
"""

import calendar
import logging
import re
from datetime import date, time

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from braidbook.core import errors
from braidbook.database import storage_transaction
from braidbook.models.availability import AvailabilitySlot
from braidbook.models.provider import Provider

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r'^(\d{4})-(\d{2})$')


def parse_month(value: str) -> tuple[date, date]:
    match = MONTH_PATTERN.match(value.strip())
    if not match:
        raise errors.ValidationError('Month must use the YYYY-MM format.')

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise errors.ValidationError('Month must use the YYYY-MM format.')

    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def resolve_date_window(
    month: str | None = None,
    date_start: date | None = None,
    date_end: date | None = None,
    on_date: date | None = None,
) -> tuple[date | None, date | None]:
    """Turn the accepted query shapes into an inclusive ``(first, last)`` window.

    A month wins over an explicit range, and a range wins over a single date.
    Missing bounds are left open.
    """
    if month:
        return parse_month(month)

    if date_start or date_end:
        if date_start and date_end and date_start > date_end:
            raise errors.InvalidRange('date_start must be on or before date_end.')
        return date_start, date_end

    if on_date:
        return on_date, on_date

    return None, None


def create_slot(
    db: Session,
    provider_id: int,
    slot_date: date,
    start_time: time,
    end_time: time,
) -> AvailabilitySlot:
    if start_time >= end_time:
        raise errors.InvalidRange('Start time must be before end time.')

    with storage_transaction(db):
        if db.get(Provider, provider_id) is None:
            raise errors.NotFound('Provider not found.')

        # Touching intervals (one ends exactly when the next starts) are allowed.
        overlapping = db.query(AvailabilitySlot).filter(
            AvailabilitySlot.provider_id == provider_id,
            AvailabilitySlot.slot_date == slot_date,
            AvailabilitySlot.start_time < end_time,
            AvailabilitySlot.end_time > start_time,
        ).first()
        if overlapping:
            raise errors.Overlap('This time overlaps an existing availability slot.')

        slot = AvailabilitySlot(
            provider_id=provider_id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            is_booked=False,
        )
        db.add(slot)

    db.refresh(slot)
    logger.info('Created slot %s for provider %s on %s %s-%s', slot.id, provider_id, slot_date, start_time, end_time)
    return slot


def list_slots(
    db: Session,
    provider_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    free_only: bool = False,
) -> list[AvailabilitySlot]:
    query = db.query(AvailabilitySlot).filter(AvailabilitySlot.provider_id == provider_id)

    if free_only:
        query = query.filter(AvailabilitySlot.is_booked.is_(False))
    if date_from is not None:
        query = query.filter(AvailabilitySlot.slot_date >= date_from)
    if date_to is not None:
        query = query.filter(AvailabilitySlot.slot_date <= date_to)

    return query.order_by(
        AvailabilitySlot.slot_date.asc(),
        AvailabilitySlot.start_time.asc(),
        AvailabilitySlot.id.asc(),
    ).all()


def list_free_slots(
    db: Session,
    provider_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[AvailabilitySlot]:
    return list_slots(db, provider_id, date_from, date_to, free_only=True)


def get_slot(db: Session, slot_id: int, provider_id: int | None = None) -> AvailabilitySlot:
    slot = db.get(AvailabilitySlot, slot_id)
    if slot is None or (provider_id is not None and slot.provider_id != provider_id):
        raise errors.NotFound('Slot not found.')
    return slot


def delete_slot(db: Session, slot_id: int, provider_id: int | None = None) -> None:
    with storage_transaction(db):
        slot = get_slot(db, slot_id, provider_id)
        if slot.is_booked:
            raise errors.SlotBooked('A booked slot cannot be removed.')

        # Re-check the flag in the statement itself in case a reservation landed in between.
        deleted = db.query(AvailabilitySlot).filter(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.is_booked.is_(False),
        ).delete(synchronize_session=False)
        if not deleted:
            raise errors.SlotBooked('A booked slot cannot be removed.')

    logger.info('Deleted slot %s', slot_id)


def mark_booked(db: Session, slot_id: int, provider_id: int) -> bool:
    """Claim a free slot. Returns ``False`` when no free slot matched.

    Runs inside the caller's transaction and does not commit.
    """
    result = db.execute(
        update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.provider_id == provider_id,
            AvailabilitySlot.is_booked.is_(False),
        )
        .values(is_booked=True, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_free(db: Session, slot_id: int) -> bool:
    """Release a booked slot inside the caller's transaction."""
    result = db.execute(
        update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.is_booked.is_(True),
        )
        .values(is_booked=False, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
