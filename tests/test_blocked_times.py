"""Blocked interval registry."""
import pytest

from clinic_scheduler.errors import NotFoundError, ValidationError
from clinic_scheduler.schemas import BlockedTimeCreate
from clinic_scheduler.services.blocked_times import BlockedTimeService, validate_blocked_time
from clinic_scheduler.services.records import BLOCKED_TIMES_KEY

from helpers import TODAY, TOMORROW


def _form(**overrides):
    data = dict(date=TOMORROW, start_time="10:00", end_time="11:00", reason="Staff meeting")
    data.update(overrides)
    return BlockedTimeCreate(**data)


@pytest.fixture
def service(store, clock):
    return BlockedTimeService(store, clock)


def test_validation_reports_each_field():
    errors = validate_blocked_time(BlockedTimeCreate(date="tomorrow", start_time="", end_time="x", reason=" "))
    assert set(errors) == {"date", "startTime", "endTime", "reason"}


def test_end_must_follow_start():
    errors = validate_blocked_time(_form(start_time="11:00", end_time="11:00"))
    assert errors == {"endTime": ["End time must be after start time"]}


def test_create_persists_camel_case_record(service, store):
    blocked = service.create(_form(reason="  Equipment maintenance "))
    stored = store.list_range(BLOCKED_TIMES_KEY)
    assert len(stored) == 1
    assert stored[0]["id"] == blocked.id
    assert stored[0]["startTime"] == "10:00"
    assert stored[0]["endTime"] == "11:00"
    assert stored[0]["reason"] == "Equipment maintenance"
    assert stored[0]["createdAt"].startswith(TODAY)


def test_invalid_form_is_not_stored(service, store):
    with pytest.raises(ValidationError):
        service.create(_form(reason=""))
    assert store.list_range(BLOCKED_TIMES_KEY) == []


def test_overlapping_intervals_are_accepted(service):
    service.create(_form(start_time="10:00", end_time="10:30"))
    service.create(_form(start_time="10:15", end_time="11:00"))
    assert len(service.list_blocked_times(TOMORROW)) == 2


def test_list_filters_by_date_and_sorts(service):
    service.create(_form(start_time="15:00", end_time="16:00"))
    service.create(_form(date=TODAY, start_time="09:00", end_time="10:00"))
    service.create(_form(start_time="09:00", end_time="09:30"))

    assert [b.start_time for b in service.list_blocked_times(TOMORROW)] == ["09:00", "15:00"]
    assert [b.date for b in service.list_blocked_times()] == [TODAY, TOMORROW, TOMORROW]


def test_delete(service):
    keep = service.create(_form(start_time="09:00", end_time="09:30"))
    gone = service.create(_form())
    service.delete(gone.id)
    assert [b.id for b in service.list_blocked_times()] == [keep.id]


def test_delete_unknown(service):
    with pytest.raises(NotFoundError):
        service.delete("nope")
