from datetime import date, time

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from braidbook.auth.dependencies import get_current_provider, get_db
from braidbook.database import ensure_database_ready
from braidbook.models.availability import AvailabilitySlot
from braidbook.models.provider import Provider
from braidbook.services import providers, slot_store

router = APIRouter(tags=['availability'])


class CreateSlotRequest(BaseModel):
    date: date
    start_time: time
    end_time: time


class SlotResponse(BaseModel):
    id: int
    provider_id: int
    date: date
    start_time: time
    end_time: time
    is_booked: bool


def to_slot_response(slot: AvailabilitySlot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        provider_id=slot.provider_id,
        date=slot.slot_date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        is_booked=slot.is_booked,
    )


@router.get('/providers/{provider_id}/slots', response_model=list[SlotResponse])
def list_free_slots(
    provider_id: int,
    month: str | None = Query(default=None, description='YYYY-MM'),
    date_start: date | None = Query(default=None),
    date_end: date | None = Query(default=None),
    on_date: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    date_from, date_to = slot_store.resolve_date_window(month, date_start, date_end, on_date)
    providers.get_bookable_provider(db, provider_id)

    slots = slot_store.list_free_slots(db, provider_id, date_from, date_to)
    return [to_slot_response(slot) for slot in slots]


@router.get('/slots', response_model=list[SlotResponse])
def list_my_slots(
    month: str | None = Query(default=None, description='YYYY-MM'),
    date_start: date | None = Query(default=None),
    date_end: date | None = Query(default=None),
    on_date: date | None = Query(default=None, alias='date'),
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    date_from, date_to = slot_store.resolve_date_window(month, date_start, date_end, on_date)
    slots = slot_store.list_slots(db, provider.id, date_from, date_to)
    return [to_slot_response(slot) for slot in slots]


@router.post('/slots', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateSlotRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    slot = slot_store.create_slot(db, provider.id, data.date, data.start_time, data.end_time)
    return to_slot_response(slot)


@router.delete('/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(
    slot_id: int,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    slot_store.delete_slot(db, slot_id, provider_id=provider.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
