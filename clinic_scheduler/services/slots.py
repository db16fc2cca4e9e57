# clinic_scheduler/services/slots.py
"""
Slot computation.

A day's grid is every SLOT_MINUTES boundary in [workStart, workEnd), anchored
at workStart; a partial trailing slot is dropped. Each boundary is then
checked, in order, against:
  1. time already reached (today, clinic offset) or a past date
  2. lunch break
  3. blocked intervals (any covering interval, so overlaps act as a union)
  4. capacity: maxConcurrentAppointments minus active bookings at that time

Nothing here is cached: SlotService re-reads config, blocked times and
appointments from the store on every call.
"""
from __future__ import annotations
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple, Union

from ..config import settings
from ..schemas import Appointment, AppointmentStatus, BlockedInterval, ClinicConfig, TimeSlot
from ..store import KeyValueStore
from .blocked_times import BlockedTimeService
from .clinic_config import ClinicConfigService
from .clock import clinic_now, format_minutes, parse_hhmm, parse_iso_date, to_clinic, to_minutes
from .records import APPOINTMENTS_KEY, RecordList

logger = logging.getLogger(__name__)

# blockedReason tags for list_all_slots_with_status
REASON_PAST = "past"
REASON_LUNCH = "lunch"
REASON_BLOCKED = "blocked"  # used when the interval has no reason text
REASON_FULL = "fully booked"

DayLike = Union[str, date]


def _as_date(day: DayLike) -> Optional[date]:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    return parse_iso_date(day)


def _grid(start_min: int, end_min: int, step: int) -> List[int]:
    out = []
    cur = start_min
    while cur + step <= end_min:
        out.append(cur)
        cur += step
    return out


def _blocked_windows(day_iso: str, intervals: Iterable[BlockedInterval]) -> List[Tuple[int, int, str]]:
    windows = []
    for b in intervals:
        if b.date != day_iso:
            continue
        bs, be = parse_hhmm(b.start_time), parse_hhmm(b.end_time)
        if bs is None or be is None:
            logger.warning("Ignoring blocked time id=%s with unparseable bounds %r-%r", b.id, b.start_time, b.end_time)
            continue
        windows.append((to_minutes(bs), to_minutes(be), b.reason or REASON_BLOCKED))
    return windows


def _bookings_per_slot(day_iso: str, appointments: Iterable[Appointment]) -> Counter:
    counts: Counter = Counter()
    for ap in appointments:
        if ap.date != day_iso or ap.status == AppointmentStatus.cancelled:
            continue
        t = parse_hhmm(ap.time)
        if t is None:
            logger.warning("Appointment id=%s has unparseable time %r", ap.id, ap.time)
            continue
        counts[to_minutes(t)] += 1
    return counts


def compute_slots(
    day: DayLike,
    config: ClinicConfig,
    blocked_intervals: Iterable[BlockedInterval],
    appointments: Iterable[Appointment],
    now: datetime,
    include_unavailable: bool = False,
) -> List[TimeSlot]:
    """
    Annotated slots for `day` in ascending time order.

    With include_unavailable=False only bookable slots are returned; otherwise
    every grid slot is returned and unavailable ones carry a blockedReason.
    Unparseable or inverted work hours give an empty list instead of raising.
    """
    the_day = _as_date(day)
    work_start = parse_hhmm(config.work_hours.start)
    work_end = parse_hhmm(config.work_hours.end)
    if the_day is None or work_start is None or work_end is None or work_end <= work_start:
        logger.warning("No slots for day=%r: invalid date or work hours %r-%r",
                       day, config.work_hours.start, config.work_hours.end)
        return []

    day_iso = the_day.isoformat()
    step = settings.SLOT_MINUTES
    capacity = max(1, config.max_concurrent_appointments)

    # Everything at or before the cutoff has started (or is inside the lead time)
    now_local = to_clinic(now)
    cutoff = now_local + timedelta(minutes=settings.BOOKING_LEAD_MINUTES)
    day_start = to_clinic(datetime.combine(the_day, datetime.min.time()))

    lunch: Optional[Tuple[int, int]] = None
    if config.lunch_time.enabled:
        ls, le = parse_hhmm(config.lunch_time.start), parse_hhmm(config.lunch_time.end)
        if ls is None or le is None:
            logger.warning("Ignoring lunch break with unparseable bounds %r-%r",
                           config.lunch_time.start, config.lunch_time.end)
        else:
            lunch = (to_minutes(ls), to_minutes(le))

    windows = _blocked_windows(day_iso, blocked_intervals)
    booked = _bookings_per_slot(day_iso, appointments)

    slots: List[TimeSlot] = []
    for t in _grid(to_minutes(work_start), to_minutes(work_end), step):
        reason: Optional[str] = None
        remaining = 0

        if day_start + timedelta(minutes=t) <= cutoff:
            reason = REASON_PAST
        elif lunch and lunch[0] <= t < lunch[1]:
            reason = REASON_LUNCH
        else:
            covering = next((w for w in windows if w[0] <= t < w[1]), None)
            if covering:
                reason = covering[2]
            else:
                remaining = max(0, capacity - booked[t])
                if remaining == 0:
                    reason = REASON_FULL

        available = reason is None
        if available or include_unavailable:
            slots.append(TimeSlot(time=format_minutes(t), available=available,
                                  remaining_slots=remaining, blocked_reason=reason))
    return slots


def list_bookable_slots(day, config, blocked_intervals, appointments, now) -> List[TimeSlot]:
    """Booking-UI policy: fully booked or blocked slots are simply absent."""
    return compute_slots(day, config, blocked_intervals, appointments, now, include_unavailable=False)


def list_all_slots_with_status(day, config, blocked_intervals, appointments, now) -> List[TimeSlot]:
    """Admin policy: every grid slot, unavailable ones tagged with a reason."""
    return compute_slots(day, config, blocked_intervals, appointments, now, include_unavailable=True)


class SlotService:
    """Reads fresh state from the store and runs the slot computation."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = clinic_now):
        self.store = store
        self.clock = clock
        self.config_service = ClinicConfigService(store)
        self.blocked_service = BlockedTimeService(store, clock)
        self.appointments: RecordList[Appointment] = RecordList(
            store, APPOINTMENTS_KEY, Appointment, label="Appointment"
        )

    def snapshot(self, day: str) -> Tuple[ClinicConfig, List[BlockedInterval], List[Appointment]]:
        config = self.config_service.get_config()
        blocked = self.blocked_service.list_blocked_times(day)
        appointments = [a for a in self.appointments.all() if a.date == day]
        return config, blocked, appointments

    def bookable(self, day: str, now: Optional[datetime] = None) -> List[TimeSlot]:
        config, blocked, appointments = self.snapshot(day)
        return list_bookable_slots(day, config, blocked, appointments, now or self.clock())

    def all_with_status(self, day: str, now: Optional[datetime] = None) -> List[TimeSlot]:
        config, blocked, appointments = self.snapshot(day)
        return list_all_slots_with_status(day, config, blocked, appointments, now or self.clock())
