"""Builders shared by the test modules."""
from datetime import datetime

from clinic_scheduler.schemas import Appointment, BlockedInterval
from clinic_scheduler.services.clock import clinic_tz
from clinic_scheduler.services.notifications import Notifier

TODAY = "2030-03-11"
TOMORROW = "2030-03-12"


def clinic_dt(day: str, hour: int, minute: int = 0) -> datetime:
    y, m, d = (int(p) for p in day.split("-"))
    return clinic_tz().localize(datetime(y, m, d, hour, minute))


def make_appointment(day: str, time: str, n: int = 1, **overrides) -> Appointment:
    data = dict(
        id=f"appt-{day}-{time}-{n}",
        user_id=f"user-{n}",
        user_name=f"Patient {n}",
        user_email=f"patient{n}@example.com",
        date=day,
        time=time,
    )
    data.update(overrides)
    return Appointment(**data)


def make_blocked(day: str, start: str, end: str, reason: str = "Staff meeting", n: int = 1) -> BlockedInterval:
    return BlockedInterval(id=f"blk-{n}", date=day, start_time=start, end_time=end, reason=reason)


class RecordingNotifier(Notifier):
    def __init__(self, fail_with: Exception | None = None):
        self.sent = []
        self.fail_with = fail_with

    def notify_booked(self, appointment, locale="en"):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((appointment, locale))


def run_inline(fn, *args):
    fn(*args)
