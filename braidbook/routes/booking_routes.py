from datetime import date, datetime, time
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from braidbook.auth.dependencies import get_current_provider, get_db
from braidbook.core import errors
from braidbook.database import ensure_database_ready
from braidbook.models.booking import AppointmentType, Booking, BookingStatus
from braidbook.models.provider import Provider
from braidbook.services import lifecycle, reservations
from braidbook.services.lifecycle import BookingAction
from braidbook.services.notifications import NotificationGateway, get_notification_gateway

router = APIRouter(tags=['bookings'])

MAX_BOOKING_NOTES_LENGTH = 600


class CreateBookingRequest(BaseModel):
    provider_id: int
    service_id: int
    slot_id: int
    client_name: str
    client_email: str
    client_phone: str
    client_address: str | None = None
    appointment_type: AppointmentType
    notes: str | None = None

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Client email is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_BOOKING_NOTES_LENGTH} characters or fewer.')

        return normalized


class CreateBookingResponse(BaseModel):
    booking_id: int
    status: BookingStatus
    date: date
    time: time


class TransitionRequest(BaseModel):
    action: BookingAction


class TransitionResponse(BaseModel):
    booking_id: int
    status: BookingStatus


class ServiceSummary(BaseModel):
    name: str
    price: Decimal
    duration_minutes: int


class BookingResponse(BaseModel):
    id: int
    provider_id: int
    service_id: int
    slot_id: int
    client_name: str
    client_email: str
    client_phone: str
    client_address: str | None = None
    appointment_type: AppointmentType
    status: BookingStatus
    date: date
    time: time
    total_amount: Decimal | None = None
    notes: str | None = None
    created_at: datetime | None = None
    service: ServiceSummary | None = None


def to_booking_response(booking: Booking) -> BookingResponse:
    service = booking.service
    return BookingResponse(
        id=booking.id,
        provider_id=booking.provider_id,
        service_id=booking.service_id,
        slot_id=booking.slot_id,
        client_name=booking.client_name,
        client_email=booking.client_email,
        client_phone=booking.client_phone,
        client_address=booking.client_address,
        appointment_type=booking.appointment_type,
        status=booking.status,
        date=booking.booking_date,
        time=booking.booking_time,
        total_amount=booking.total_amount,
        notes=booking.notes,
        created_at=booking.created_at,
        service=ServiceSummary(
            name=service.name,
            price=service.price,
            duration_minutes=service.duration_minutes,
        ) if service else None,
    )


def _require_client_email(client_email: str) -> str:
    normalized = client_email.strip().lower()
    if not normalized:
        raise errors.ValidationError('Client email is required.')
    return normalized


@router.post('', response_model=CreateBookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    ensure_database_ready()

    booking = reservations.reserve(
        db,
        provider_id=data.provider_id,
        service_id=data.service_id,
        slot_id=data.slot_id,
        client=reservations.ClientInfo(
            name=data.client_name,
            email=data.client_email,
            phone=data.client_phone,
            address=data.client_address,
        ),
        appointment_type=data.appointment_type,
        notes=data.notes,
        gateway=gateway,
    )

    return CreateBookingResponse(
        booking_id=booking.id,
        status=booking.status,
        date=booking.booking_date,
        time=booking.booking_time,
    )


@router.get('', response_model=list[BookingResponse])
def list_client_bookings(
    client_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = _require_client_email(client_email)
    ensure_database_ready()

    return [to_booking_response(booking) for booking in lifecycle.list_client_bookings(db, normalized_email)]


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    client_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = _require_client_email(client_email)
    ensure_database_ready()

    booking = lifecycle.get_booking(db, booking_id)
    if booking.client_email != normalized_email:
        # Do not reveal other clients' bookings.
        raise errors.NotFound('Booking not found.')

    return to_booking_response(booking)


@router.post('/{booking_id}/status', response_model=TransitionResponse)
def change_booking_status(
    booking_id: int,
    data: TransitionRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    ensure_database_ready()

    booking = lifecycle.transition(db, booking_id, data.action, provider_id=provider.id, gateway=gateway)
    return TransitionResponse(booking_id=booking.id, status=booking.status)


@router.post('/{booking_id}/cancel', response_model=TransitionResponse)
def cancel_my_booking(
    booking_id: int,
    client_email: str = Query(...),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    normalized_email = _require_client_email(client_email)
    ensure_database_ready()

    booking = lifecycle.transition(
        db,
        booking_id,
        BookingAction.CANCEL,
        client_email=normalized_email,
        gateway=gateway,
    )
    return TransitionResponse(booking_id=booking.id, status=booking.status)
