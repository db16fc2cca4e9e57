# clinic_scheduler/routers/admin.py
from __future__ import annotations
from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import Callable, List, Optional

from ..config import settings
from .. import schemas
from ..dependencies import clock_dep, parse_day, store_dep
from ..services.blocked_times import BlockedTimeService
from ..services.booking import BookingService
from ..services.clinic_config import ClinicConfigService
from ..services.records import APPOINTMENTS_KEY, BLOCKED_TIMES_KEY, SETTINGS_KEY, read_with_retry
from ..store import KeyValueStore

router = APIRouter(tags=["admin"])


# ──────────────────────────────────────────────────────────────────────────────
# Basics
# (main.py mounts this router with prefix="/admin")
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/ping")
def admin_ping():
    return {"ok": True, "ts": datetime.utcnow().isoformat()}


@router.get("/health")
def admin_health(store: KeyValueStore = Depends(store_dep)):
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "utc_offset_minutes": settings.CLINIC_UTC_OFFSET_MINUTES,
        "store": type(store).__name__,
        "ts": datetime.utcnow().isoformat(),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Clinic settings
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/settings", response_model=schemas.ClinicConfig)
def admin_get_settings(store: KeyValueStore = Depends(store_dep)):
    return ClinicConfigService(store).get_config()


@router.put("/settings", response_model=schemas.SettingsResponse)
def admin_update_settings(form: schemas.ClinicSettingsForm, store: KeyValueStore = Depends(store_dep)):
    """Replaces the whole settings record; a rejected form changes nothing."""
    config = ClinicConfigService(store).set_config(form)
    return schemas.SettingsResponse(success=True, message="Clinic settings updated successfully!", settings=config)


# ──────────────────────────────────────────────────────────────────────────────
# Blocked times
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/blocked-times", response_model=List[schemas.BlockedInterval])
def admin_list_blocked_times(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    store: KeyValueStore = Depends(store_dep),
):
    day = parse_day(date) if date else None
    return BlockedTimeService(store).list_blocked_times(day)


@router.post("/blocked-times", response_model=schemas.BlockedTimeResponse)
def admin_create_blocked_time(
    form: schemas.BlockedTimeCreate,
    store: KeyValueStore = Depends(store_dep),
    clock: Callable[[], datetime] = Depends(clock_dep),
):
    blocked = BlockedTimeService(store, clock).create(form)
    return schemas.BlockedTimeResponse(success=True, message="Time blocked successfully!", blocked_time=blocked)


@router.delete("/blocked-times/{blocked_id}", response_model=schemas.MessageResponse)
def admin_delete_blocked_time(blocked_id: str, store: KeyValueStore = Depends(store_dep)):
    BlockedTimeService(store).delete(blocked_id)
    return schemas.MessageResponse(success=True, message="Blocked time deleted successfully!")


# ──────────────────────────────────────────────────────────────────────────────
# Store maintenance
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/appointments/clear")
def admin_clear_appointments(store: KeyValueStore = Depends(store_dep)):
    """
    Deletes EVERY appointment. Development and test data resets only.
    """
    deleted = BookingService(store).clear_appointments()
    return {"success": True, "message": "All appointments cleared successfully", "deleted": deleted}


def _counts(store: KeyValueStore) -> dict:
    appointments = read_with_retry(store.list_range, APPOINTMENTS_KEY, 0, -1, what="count appointments")
    blocked = read_with_retry(store.list_range, BLOCKED_TIMES_KEY, 0, -1, what="count blocked times")
    return {"appointments": len(appointments), "blockedTimes": len(blocked)}


@router.get("/db/verify")
def admin_verify_db(store: KeyValueStore = Depends(store_dep)):
    """
    Round-trips a throwaway key and reports what is stored. Useful to tell
    a connection problem apart from an empty clinic.
    """
    test_key = f"test:{datetime.utcnow().timestamp()}"
    store.set(test_key, "connection-test")
    result = store.get(test_key)
    store.delete(test_key)
    if result != "connection-test":
        return {"success": False, "message": "Database test failed"}

    raw_settings = store.get(SETTINGS_KEY)
    return {
        "success": True,
        "message": "Database connected successfully",
        "data": {**_counts(store), "settingsExist": raw_settings is not None, "settings": raw_settings},
    }


@router.post("/db/init")
def admin_init_db(store: KeyValueStore = Depends(store_dep)):
    """Creates the default settings record if missing; lists are created on first append."""
    config = ClinicConfigService(store).get_config()
    return {
        "success": True,
        "message": "Database initialized successfully",
        "data": {**_counts(store), "settings": config.to_record()},
    }
