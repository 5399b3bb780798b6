import logging

from sqlalchemy.orm import Session

from braidbook.core import errors
from braidbook.database import storage_transaction
from braidbook.models.provider import Provider, ProviderStatus

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def get_provider(db: Session, provider_id: int) -> Provider:
    provider = db.get(Provider, provider_id)
    if provider is None:
        raise errors.NotFound('Provider not found.')
    return provider


def get_bookable_provider(db: Session, provider_id: int) -> Provider:
    """Providers that are unapproved or deactivated are hidden from clients."""
    provider = db.get(Provider, provider_id)
    if provider is None or not provider.is_bookable:
        raise errors.NotFound('Provider not found.')
    return provider


def find_provider_by_email(db: Session, email: str) -> Provider | None:
    return db.query(Provider).filter(Provider.contact_email == normalize_email(email)).first()


def register_provider(
    db: Session,
    name: str,
    contact_email: str,
    contact_phone: str | None = None,
    bio: str | None = None,
    location: str | None = None,
) -> Provider:
    email = normalize_email(contact_email)

    with storage_transaction(db):
        if find_provider_by_email(db, email) is not None:
            raise errors.Conflict('A provider with this email is already registered.')

        provider = Provider(
            name=name.strip(),
            contact_email=email,
            contact_phone=contact_phone,
            bio=bio,
            location=location,
            status=ProviderStatus.PENDING,
            is_active=True,
        )
        db.add(provider)

    db.refresh(provider)
    logger.info('Registered provider %s (%s), awaiting review', provider.id, email)
    return provider


def review_provider(db: Session, provider_id: int, decision: ProviderStatus) -> Provider:
    if decision == ProviderStatus.PENDING:
        raise errors.ValidationError('A review must approve or reject the provider.')

    with storage_transaction(db):
        provider = get_provider(db, provider_id)
        provider.status = decision

    db.refresh(provider)
    logger.info('Provider %s review result: %s', provider_id, decision.value)
    return provider


def deactivate_provider(db: Session, provider_id: int) -> Provider:
    with storage_transaction(db):
        provider = get_provider(db, provider_id)
        provider.is_active = False

    db.refresh(provider)
    logger.info('Deactivated provider %s', provider_id)
    return provider
