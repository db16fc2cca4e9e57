from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import Callable, List, Optional
from datetime import datetime

from .. import schemas
from ..dependencies import clock_dep, notifier_dep, parse_day, store_dep
from ..services.booking import BookingService
from ..services.notifications import Notifier
from ..services.slots import SlotService
from ..store import KeyValueStore

router = APIRouter(prefix="", tags=["appointments"])


@router.get("/slots", response_model=List[schemas.TimeSlot], response_model_exclude_none=True)
def get_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    store: KeyValueStore = Depends(store_dep),
    clock: Callable[[], datetime] = Depends(clock_dep),
):
    """Bookable slots only; full or blocked times are simply absent."""
    return SlotService(store, clock).bookable(parse_day(date))


@router.get("/slots/status", response_model=List[schemas.TimeSlot], response_model_exclude_none=True)
def get_slots_with_status(
    date: str = Query(..., description="YYYY-MM-DD"),
    store: KeyValueStore = Depends(store_dep),
    clock: Callable[[], datetime] = Depends(clock_dep),
):
    """Every slot of the day, unavailable ones tagged with blockedReason."""
    return SlotService(store, clock).all_with_status(parse_day(date))


@router.post("/book", response_model=schemas.BookResponse)
def book(
    req: schemas.BookRequest,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(store_dep),
    clock: Callable[[], datetime] = Depends(clock_dep),
    notifier: Notifier = Depends(notifier_dep),
):
    service = BookingService(store, notifier=notifier, clock=clock, dispatch=background_tasks.add_task)
    appt = service.book(req)
    return schemas.BookResponse(success=True, message="Appointment created successfully!", appointment=appt)


@router.get("/appointments", response_model=List[schemas.Appointment])
def list_appointments(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    store: KeyValueStore = Depends(store_dep),
):
    day = parse_day(date) if date else None
    return BookingService(store).list_appointments(day)


@router.delete("/appointments/{appointment_id}", response_model=schemas.MessageResponse)
def delete_appointment(appointment_id: str, store: KeyValueStore = Depends(store_dep)):
    BookingService(store).delete_appointment(appointment_id)
    return schemas.MessageResponse(success=True, message="Appointment deleted successfully!")
