# clinic_scheduler/services/booking.py
from __future__ import annotations
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import ConflictError, ValidationError
from ..schemas import Appointment, AppointmentStatus, BookRequest, ClinicConfig, TimeSlot
from ..store import KeyValueStore
from .clock import clinic_now, format_minutes, parse_hhmm, parse_iso_date, to_clinic, to_minutes
from .notifications import MailgunNotifier, Notifier, normalize_locale, notify_booked_safely
from .slots import REASON_FULL, REASON_LUNCH, REASON_PAST, SlotService, list_all_slots_with_status

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Notifications leave the request path; two workers are plenty for one clinic
_NOTIFY_POOL = ThreadPoolExecutor(max_workers=2, thread_name_prefix="notify")


def _run_in_background(fn: Callable[..., Any], *args: Any) -> None:
    _NOTIFY_POOL.submit(fn, *args)


def validate_booking_request(req: BookRequest) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    if len(req.user_name.strip()) < 2:
        errors["userName"] = ["Name must be at least 2 characters"]
    if not _EMAIL.match(req.user_email.strip()):
        errors["userEmail"] = ["Invalid email address"]
    if not req.date.strip():
        errors["date"] = ["Date is required"]
    elif parse_iso_date(req.date) is None:
        errors["date"] = ["Date must be in YYYY-MM-DD format"]
    if not req.time.strip():
        errors["time"] = ["Time is required"]
    elif parse_hhmm(req.time) is None:
        errors["time"] = ["Time must be in HH:MM format"]
    if req.is_emergency and not req.emergency_reason.strip():
        errors["emergencyReason"] = ["Emergency reason is required for emergency appointments"]
    return errors


def _conflict_message(slot: Optional[TimeSlot], config: ClinicConfig, minute: int) -> str:
    if slot is None:
        ws, we = parse_hhmm(config.work_hours.start), parse_hhmm(config.work_hours.end)
        if ws and we and to_minutes(ws) <= minute < to_minutes(we):
            return "This time does not match an appointment slot. Please select one of the offered times."
        return "This time is outside clinic hours. Please select a time during clinic hours."
    if slot.blocked_reason == REASON_PAST:
        return "Cannot schedule appointments in the past. Please select a future time."
    if slot.blocked_reason == REASON_LUNCH:
        return "This time is during the clinic's lunch break. Please select another time."
    if slot.blocked_reason == REASON_FULL:
        return "This time slot is fully booked. Please select another time."
    return "This time slot is not available. Please select another time."


class BookingService:
    """
    Books appointments. Availability is always recomputed from a fresh store
    read while the appointments write lock is held, so the slot list the UI
    rendered earlier is never trusted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = clinic_now,
        dispatch: Optional[Callable[..., Any]] = None,
    ):
        self.clock = clock
        self.slots = SlotService(store, clock)
        self.appointments = self.slots.appointments
        self.notifier = notifier or MailgunNotifier()
        self.dispatch = dispatch or _run_in_background

    def book(self, req: BookRequest, locale: Optional[str] = None) -> Appointment:
        # 1) fields
        errors = validate_booking_request(req)
        if errors:
            logger.info("Booking rejected (fields): %s", errors)
            raise ValidationError(errors, message="Missing Fields. Failed to Create Appointment.")

        day = parse_iso_date(req.date)
        slot_time = parse_hhmm(req.time)
        if day is None or slot_time is None:
            raise ValidationError({"date" if day is None else "time": ["Invalid value"]},
                                  message="Missing Fields. Failed to Create Appointment.")
        day_iso = day.isoformat()
        minute = to_minutes(slot_time)
        time_str = format_minutes(minute)

        # 2) past date / time, clinic offset
        now = to_clinic(self.clock())
        if day < now.date():
            raise ValidationError(
                {"date": ["Date is in the past"]},
                message="Cannot schedule appointments in the past. Please select a future date.",
            )
        if day == now.date() and to_clinic(datetime.combine(day, slot_time)) <= now:
            raise ValidationError(
                {"time": ["Time is in the past"]},
                message="Cannot schedule appointments in the past. Please select a future time.",
            )

        # 3) + 4) authoritative re-check and append under the same lock
        with self.appointments.lock():
            config, blocked, appointments = self.slots.snapshot(day_iso)
            slots = list_all_slots_with_status(day_iso, config, blocked, appointments, self.clock())
            slot = next((s for s in slots if s.time == time_str), None)
            if slot is None or not slot.available:
                logger.info("Booking conflict for %s %s: %s", day_iso, time_str,
                            slot.blocked_reason if slot else "not on grid")
                raise ConflictError(_conflict_message(slot, config, minute))

            appointment = Appointment(
                id=str(uuid.uuid4()),
                user_id=str(uuid.uuid4()),  # no accounts; one id per booking
                user_name=req.user_name.strip(),
                user_email=req.user_email.strip(),
                date=day_iso,
                time=time_str,
                reason=req.reason.strip(),
                is_emergency=req.is_emergency,
                emergency_reason=req.emergency_reason.strip() if req.is_emergency else "",
                status=AppointmentStatus.scheduled,
                created_at=to_clinic(self.clock()).isoformat(),
            )
            self.appointments.append(appointment)

        logger.info("Appointment created: id=%s date=%s time=%s emergency=%s remaining_before=%d",
                    appointment.id, day_iso, time_str, appointment.is_emergency, slot.remaining_slots)

        self.dispatch(notify_booked_safely, self.notifier, appointment, normalize_locale(locale or req.locale))
        return appointment

    def list_appointments(self, day: Optional[str] = None) -> List[Appointment]:
        items = self.appointments.all()
        if day is not None:
            items = [a for a in items if a.date == day]
        return sorted(items, key=lambda a: (a.date, a.time, a.created_at))

    def delete_appointment(self, appointment_id: str) -> None:
        self.appointments.delete_by_id(appointment_id)

    def clear_appointments(self) -> int:
        return self.appointments.clear()
