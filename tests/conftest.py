"""Shared fixtures for the clinic scheduler tests.

Every test runs against a fresh MemoryStore and a frozen clinic clock, so no
test depends on the machine's date, timezone or network.
"""
import pytest

from clinic_scheduler.config import settings
from clinic_scheduler.schemas import ClinicConfig, LunchTime, WorkHours
from clinic_scheduler.store import MemoryStore

from helpers import TODAY, RecordingNotifier, clinic_dt


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No sleeping between read retries; slot policy pinned to the defaults."""
    monkeypatch.setattr(settings, "STORE_RETRY_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "STORE_READ_RETRIES", 3)
    monkeypatch.setattr(settings, "SLOT_MINUTES", 30)
    monkeypatch.setattr(settings, "BOOKING_LEAD_MINUTES", 0)
    monkeypatch.setattr(settings, "CLINIC_UTC_OFFSET_MINUTES", -180)
    monkeypatch.setattr(settings, "DRY_RUN", False)
    monkeypatch.setattr(settings, "LOCK_TIMEOUT_SECONDS", 5.0)
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", None)
    monkeypatch.setattr(settings, "MAILGUN_DOMAIN", None)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    """Frozen at TODAY 08:00 clinic time (before opening)."""
    now = clinic_dt(TODAY, 8, 0)
    return lambda: now


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def no_lunch_config():
    return ClinicConfig(
        work_hours=WorkHours(start="09:00", end="17:00"),
        lunch_time=LunchTime(enabled=False),
        max_concurrent_appointments=1,
    )
