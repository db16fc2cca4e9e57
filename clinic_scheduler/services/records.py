# clinic_scheduler/services/records.py
"""
Typed access to the list keys of the store (appointments, blocked times).

Reads are retried a bounded number of times on StoreError; writes are not.
Deleting one record uses the store's indexed removal when it has one and
falls back to delete-all + re-append otherwise. Both paths run under the
collection's write lock, the same lock bookings hold while they re-check
capacity and append.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, Generic, List, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..config import settings
from ..errors import NotFoundError, StoreError
from ..store import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "clinic:settings"
APPOINTMENTS_KEY = "clinic:appointments"
BLOCKED_TIMES_KEY = "clinic:blockedTimes"

T = TypeVar("T", bound=BaseModel)


def read_with_retry(read: Callable[..., Any], *args, what: str = "read") -> Any:
    attempts = settings.STORE_READ_RETRIES
    attempt = 1
    while True:
        try:
            return read(*args)
        except StoreError as e:
            logger.warning("Store %s failed (attempt %d/%d): %s", what, attempt, attempts, e)
            if attempt >= attempts:
                raise
            time.sleep(settings.STORE_RETRY_DELAY_SECONDS * attempt)
            attempt += 1


class RecordList(Generic[T]):
    def __init__(self, store: KeyValueStore, key: str, model: Type[T], label: str = "Record"):
        self.store = store
        self.key = key
        self.model = model
        self.label = label

    def lock(self):
        return self.store.lock(self.key)

    def entries(self) -> List[Any]:
        """Every entry of the list as decoded, objects or not."""
        return read_with_retry(self.store.list_range, self.key, 0, -1, what=f"lrange {self.key}")

    def raw(self) -> List[Dict[str, Any]]:
        out = []
        for item in self.entries():
            if isinstance(item, dict):
                out.append(item)
            else:
                logger.warning("Skipping non-object entry in %s: %r", self.key, item)
        return out

    def all(self) -> List[T]:
        records: List[T] = []
        for item in self.raw():
            try:
                records.append(self.model.model_validate(item))
            except PydanticValidationError as e:
                logger.warning("Skipping malformed %s in %s (id=%s): %s", self.label, self.key, item.get("id"), e)
        return records

    def append(self, record: T) -> None:
        self.store.list_append(self.key, record.to_record())

    def delete_by_id(self, record_id: str) -> None:
        with self.lock():
            items = self.entries()
            index = next(
                (n for n, i in enumerate(items) if isinstance(i, dict) and i.get("id") == record_id), None
            )
            if index is None:
                raise NotFoundError(f"{self.label} not found.")

            if self.store.supports_remove:
                removed = self.store.list_remove(self.key, items[index])
                logger.info("Deleted %s id=%s from %s (indexed, removed=%d)", self.label, record_id, self.key, removed)
                return

            # Rewrite: every other entry goes back exactly as read, in its original order
            survivors = items[:index] + items[index + 1:]
            self.store.delete(self.key)
            try:
                for item in survivors:
                    self.store.list_append(self.key, item)
            except StoreError:
                logger.error("Rewrite of %s interrupted after delete; %d survivor(s) expected",
                             self.key, len(survivors))
                raise
            logger.info("Deleted %s id=%s from %s (rewrite, survivors=%d)", self.label, record_id, self.key, len(survivors))

    def clear(self) -> int:
        with self.lock():
            count = len(self.entries())
            self.store.delete(self.key)
        logger.info("Cleared %s (%d entries)", self.key, count)
        return count
