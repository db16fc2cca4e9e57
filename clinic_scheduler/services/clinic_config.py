# clinic_scheduler/services/clinic_config.py
from __future__ import annotations
import logging
from typing import Any, Dict, List

from ..errors import StoreError, ValidationError
from ..schemas import ClinicConfig, ClinicSettingsForm, LunchTime, WorkHours
from ..store import KeyValueStore
from .clock import parse_hhmm
from .records import SETTINGS_KEY, read_with_retry

logger = logging.getLogger(__name__)

# Used when the admin disables lunch without giving times
DEFAULT_LUNCH_START = "12:00"
DEFAULT_LUNCH_END = "13:00"


def _merge(defaults: Dict[str, Any], stored: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, dv in defaults.items():
        sv = stored.get(k)
        if isinstance(dv, dict):
            out[k] = _merge(dv, sv if isinstance(sv, dict) else {})
        elif sv is not None and type(sv) is type(dv):
            out[k] = sv
        else:
            out[k] = dv
    return out


def coerce_config(stored: Any) -> ClinicConfig:
    """
    Deep-defaults a stored record. Missing or wrongly typed fields fall back
    to the defaults; this never raises. Time strings are not parsed here, so
    a garbled work hour reaches the slot computer, which then offers nothing.
    """
    if not isinstance(stored, dict):
        logger.warning("Clinic settings record is not an object (%r); using defaults", type(stored).__name__)
        return ClinicConfig()

    merged = _merge(ClinicConfig().to_record(), stored)
    if merged["maxConcurrentAppointments"] < 1:
        logger.warning("maxConcurrentAppointments=%s is invalid; using 1", merged["maxConcurrentAppointments"])
        merged["maxConcurrentAppointments"] = 1
    return ClinicConfig.model_validate(merged)


def validate_settings_form(form: ClinicSettingsForm) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}

    def add(field: str, msg: str) -> None:
        errors.setdefault(field, []).append(msg)

    work_start = parse_hhmm(form.work_hours_start)
    work_end = parse_hhmm(form.work_hours_end)
    if work_start is None:
        add("workHoursStart", "Start time is required (HH:MM)")
    if work_end is None:
        add("workHoursEnd", "End time is required (HH:MM)")
    if work_start and work_end and work_end <= work_start:
        add("workHoursEnd", "End time must be after start time")

    if form.lunch_time_enabled:
        lunch_start = parse_hhmm(form.lunch_time_start)
        lunch_end = parse_hhmm(form.lunch_time_end)
        if lunch_start is None:
            add("lunchTimeStart", "Lunch time start is required (HH:MM)")
        if lunch_end is None:
            add("lunchTimeEnd", "Lunch time end is required (HH:MM)")
        if lunch_start and lunch_end:
            if lunch_end <= lunch_start:
                add("lunchTimeEnd", "Lunch end time must be after start time")
            elif work_start and work_end and (lunch_start < work_start or lunch_end > work_end):
                add("lunchTimeStart", "Lunch time must be within work hours")
                add("lunchTimeEnd", "Lunch time must be within work hours")

    if form.max_concurrent_appointments < 1:
        add("maxConcurrentAppointments", "Must allow at least 1 concurrent appointment")

    return errors


class ClinicConfigService:
    """Accessor for the single clinic settings record."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get_config(self) -> ClinicConfig:
        stored = read_with_retry(self.store.get, SETTINGS_KEY, what="get settings")
        if stored is not None:
            return coerce_config(stored)

        config = ClinicConfig()
        try:
            self.store.set(SETTINGS_KEY, config.to_record())
            logger.info("Clinic settings initialised with defaults")
        except StoreError:
            # Defaults still apply for this request; the next read retries the write
            logger.warning("Could not persist default clinic settings")
        return config

    def set_config(self, form: ClinicSettingsForm) -> ClinicConfig:
        errors = validate_settings_form(form)
        if errors:
            logger.info("Clinic settings rejected: %s", errors)
            raise ValidationError(errors, message="Invalid clinic settings. Failed to update settings.")

        current = self.get_config()
        config = ClinicConfig(
            work_hours=WorkHours(start=form.work_hours_start.strip(), end=form.work_hours_end.strip()),
            lunch_time=LunchTime(
                enabled=form.lunch_time_enabled,
                start=(form.lunch_time_start or DEFAULT_LUNCH_START).strip(),
                end=(form.lunch_time_end or DEFAULT_LUNCH_END).strip(),
            ),
            max_concurrent_appointments=form.max_concurrent_appointments,
            version=current.version + 1,
        )
        self.store.set(SETTINGS_KEY, config.to_record())
        logger.info("Clinic settings updated to version %d", config.version)
        return config
