# clinic_scheduler/services/blocked_times.py
from __future__ import annotations
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..errors import ValidationError
from ..schemas import BlockedInterval, BlockedTimeCreate
from ..store import KeyValueStore
from .clock import clinic_now, parse_hhmm, parse_iso_date
from .records import BLOCKED_TIMES_KEY, RecordList

logger = logging.getLogger(__name__)


def validate_blocked_time(form: BlockedTimeCreate) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    if parse_iso_date(form.date) is None:
        errors["date"] = ["Date is required (YYYY-MM-DD)"]
    start = parse_hhmm(form.start_time)
    end = parse_hhmm(form.end_time)
    if start is None:
        errors["startTime"] = ["Start time is required (HH:MM)"]
    if end is None:
        errors["endTime"] = ["End time is required (HH:MM)"]
    if start and end and end <= start:
        errors["endTime"] = ["End time must be after start time"]
    if not form.reason.strip():
        errors["reason"] = ["Reason is required"]
    return errors


class BlockedTimeService:
    """
    Admin-declared unavailable windows. Entries are immutable once created
    and may overlap; consumers treat them as a union.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = clinic_now):
        self.records: RecordList[BlockedInterval] = RecordList(
            store, BLOCKED_TIMES_KEY, BlockedInterval, label="Blocked time"
        )
        self.clock = clock

    def list_blocked_times(self, day: Optional[str] = None) -> List[BlockedInterval]:
        items = self.records.all()
        if day is not None:
            items = [b for b in items if b.date == day]
        return sorted(items, key=lambda b: (b.date, b.start_time, b.end_time))

    def create(self, form: BlockedTimeCreate) -> BlockedInterval:
        errors = validate_blocked_time(form)
        if errors:
            raise ValidationError(errors, message="Missing Fields. Failed to Block Time.")

        blocked = BlockedInterval(
            id=str(uuid.uuid4()),
            date=form.date.strip(),
            start_time=form.start_time.strip(),
            end_time=form.end_time.strip(),
            reason=form.reason.strip(),
            created_at=self.clock().isoformat(),
        )
        # Held so a concurrent delete-and-rewrite cannot drop this entry
        with self.records.lock():
            self.records.append(blocked)
        logger.info("Blocked %s %s-%s (%s) id=%s", blocked.date, blocked.start_time, blocked.end_time,
                    blocked.reason, blocked.id)
        return blocked

    def delete(self, blocked_id: str) -> None:
        self.records.delete_by_id(blocked_id)
