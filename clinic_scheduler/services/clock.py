# clinic_scheduler/services/clock.py
from __future__ import annotations
import re
from datetime import datetime, date, time
from typing import Optional

import pytz

from ..config import settings

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ====== Clinic offset ======
def clinic_tz():
    """Fixed UTC offset of the clinic (no DST, no per-user zones)."""
    return pytz.FixedOffset(settings.CLINIC_UTC_OFFSET_MINUTES)


def clinic_now() -> datetime:
    return datetime.now(clinic_tz())


def to_clinic(dt: datetime) -> datetime:
    """Aware datetimes are converted; naive ones are taken as clinic-local."""
    tz = clinic_tz()
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)


# ====== Parsing ======
def parse_hhmm(value: Optional[str]) -> Optional[time]:
    """Strict 24h "HH:MM"; anything else is None."""
    if not isinstance(value, str):
        return None
    m = _HHMM.match(value.strip())
    if not m:
        return None
    return time(int(m.group(1)), int(m.group(2)))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not isinstance(value, str) or not _ISO_DATE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"
