# clinic_scheduler/dependencies.py
from __future__ import annotations
from datetime import datetime
from typing import Callable

from dateutil import parser as dtparser

from .errors import ValidationError
from .services.clock import clinic_now
from .services.notifications import MailgunNotifier, Notifier
from .store import KeyValueStore, get_store


def store_dep() -> KeyValueStore:
    return get_store()


def clock_dep() -> Callable[[], datetime]:
    return clinic_now


def notifier_dep() -> Notifier:
    return MailgunNotifier()


def parse_day(value: str, field: str = "date") -> str:
    """Query-string date → canonical YYYY-MM-DD."""
    try:
        return dtparser.isoparse(value.strip()).date().isoformat()
    except (ValueError, OverflowError):
        raise ValidationError({field: ["Invalid date format. Use YYYY-MM-DD."]},
                              message="Invalid date format. Use YYYY-MM-DD.")
