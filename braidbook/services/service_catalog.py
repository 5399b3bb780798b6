import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from braidbook.core import errors
from braidbook.database import storage_transaction
from braidbook.models.booking import Booking
from braidbook.models.service import Service

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('name', 'description', 'price', 'duration_minutes', 'is_available')
REQUIRED_FIELDS = ('name', 'price', 'duration_minutes', 'is_available')


def _validate_terms(price: Decimal | None, duration_minutes: int | None) -> None:
    if price is not None and price < 0:
        raise errors.ValidationError('Price cannot be negative.')
    if duration_minutes is not None and duration_minutes <= 0:
        raise errors.ValidationError('Duration must be a positive number of minutes.')


def list_services(db: Session, provider_id: int, offered_only: bool = True) -> list[Service]:
    query = db.query(Service).filter(Service.provider_id == provider_id)
    if offered_only:
        query = query.filter(Service.is_available.is_(True))
    return query.order_by(Service.name.asc(), Service.id.asc()).all()


def get_service(db: Session, service_id: int, provider_id: int | None = None) -> Service:
    service = db.get(Service, service_id)
    if service is None or (provider_id is not None and service.provider_id != provider_id):
        raise errors.NotFound('Service not found.')
    return service


def create_service(
    db: Session,
    provider_id: int,
    name: str,
    price: Decimal,
    duration_minutes: int,
    description: str | None = None,
) -> Service:
    _validate_terms(price, duration_minutes)

    with storage_transaction(db):
        service = Service(
            provider_id=provider_id,
            name=name,
            description=description,
            price=price,
            duration_minutes=duration_minutes,
            is_available=True,
        )
        db.add(service)

    db.refresh(service)
    logger.info('Provider %s added service %s (%s)', provider_id, service.id, name)
    return service


def update_service(db: Session, service_id: int, provider_id: int, /, **changes) -> Service:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise errors.ValidationError(f'Unknown service fields: {", ".join(sorted(unknown))}.')
    cleared = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
    if cleared:
        raise errors.ValidationError(f'Service fields cannot be empty: {", ".join(cleared)}.')
    _validate_terms(changes.get('price'), changes.get('duration_minutes'))

    with storage_transaction(db):
        service = get_service(db, service_id, provider_id)
        for field, value in changes.items():
            setattr(service, field, value)

    db.refresh(service)
    return service


def remove_service(db: Session, service_id: int, provider_id: int) -> bool:
    """Delete a service, or withdraw it when bookings still point at it.

    Returns ``True`` when the row was deleted.
    """
    with storage_transaction(db):
        service = get_service(db, service_id, provider_id)
        referenced = db.query(Booking.id).filter(Booking.service_id == service_id).first() is not None

        if referenced:
            service.is_available = False
        else:
            db.delete(service)

    logger.info('Provider %s %s service %s', provider_id, 'withdrew' if referenced else 'deleted', service_id)
    return not referenced
