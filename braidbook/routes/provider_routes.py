from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from braidbook.auth.dependencies import get_current_admin, get_current_provider, get_db
from braidbook.database import ensure_database_ready
from braidbook.models.booking import BookingStatus
from braidbook.models.provider import Provider, ProviderStatus
from braidbook.routes.booking_routes import BookingResponse, to_booking_response
from braidbook.services import lifecycle, providers, service_catalog

router = APIRouter(tags=['providers'])


class RegisterProviderRequest(BaseModel):
    name: str
    contact_email: str
    contact_phone: str | None = None
    bio: str | None = None
    location: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('contact_email')
    @classmethod
    def validate_contact_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid contact email is required.')
        return normalized


class ProviderResponse(BaseModel):
    id: int
    name: str
    contact_email: str
    contact_phone: str | None = None
    bio: str | None = None
    location: str | None = None
    status: ProviderStatus
    is_active: bool

    class Config:
        from_attributes = True


class ReviewProviderRequest(BaseModel):
    status: ProviderStatus


class ServiceRequest(BaseModel):
    name: str
    description: str | None = None
    price: Decimal = Field(ge=0)
    duration_minutes: int = Field(gt=0)


class UpdateServiceRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, gt=0)
    is_available: bool | None = None


class ServiceResponse(BaseModel):
    id: int
    provider_id: int
    name: str
    description: str | None = None
    price: Decimal
    duration_minutes: int
    is_available: bool

    class Config:
        from_attributes = True


@router.post('', response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
def register_provider(data: RegisterProviderRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    return providers.register_provider(
        db,
        name=data.name,
        contact_email=data.contact_email,
        contact_phone=data.contact_phone,
        bio=data.bio,
        location=data.location,
    )


@router.get('/me', response_model=ProviderResponse)
def get_my_profile(provider: Provider = Depends(get_current_provider)):
    return provider


@router.get('/me/bookings', response_model=list[BookingResponse])
def list_my_bookings(
    booking_status: BookingStatus | None = Query(default=None, alias='status'),
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    bookings = lifecycle.list_provider_bookings(db, provider.id, booking_status)
    return [to_booking_response(booking) for booking in bookings]


@router.get('/me/services', response_model=list[ServiceResponse])
def list_my_services(
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    return service_catalog.list_services(db, provider.id, offered_only=False)


@router.post('/me/services', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    return service_catalog.create_service(
        db,
        provider.id,
        name=data.name,
        price=data.price,
        duration_minutes=data.duration_minutes,
        description=data.description,
    )


@router.put('/me/services/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: UpdateServiceRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    return service_catalog.update_service(db, service_id, provider.id, **data.model_dump(exclude_unset=True))


@router.delete('/me/services/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_service(
    service_id: int,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    service_catalog.remove_service(db, service_id, provider.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/{provider_id}', response_model=ProviderResponse)
def get_provider(provider_id: int, db: Session = Depends(get_db)):
    return providers.get_bookable_provider(db, provider_id)


@router.get('/{provider_id}/services', response_model=list[ServiceResponse])
def list_provider_services(provider_id: int, db: Session = Depends(get_db)):
    providers.get_bookable_provider(db, provider_id)
    return service_catalog.list_services(db, provider_id)


@router.patch('/{provider_id}/review', response_model=ProviderResponse)
def review_provider(
    provider_id: int,
    data: ReviewProviderRequest,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    del admin
    return providers.review_provider(db, provider_id, data.status)


@router.post('/{provider_id}/deactivate', response_model=ProviderResponse)
def deactivate_provider(
    provider_id: int,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    del admin
    return providers.deactivate_provider(db, provider_id)
