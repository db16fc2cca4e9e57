# clinic_scheduler/store.py
"""
Store adapter: a keyed value/list store in the shape of Redis (get, set,
list_append, list_range, delete).

Every value crosses exactly one serialization boundary: it is JSON-encoded
once in `encode()` on the way in and decoded once in `decode()` on the way
out. Callers only ever see plain dicts/lists/scalars; text that is not JSON
comes back as the raw string.

Backends, picked from STORE_URL:
  - memory://          MemoryStore (tests, local demos)
  - redis:// rediss:// RedisStore  (keys and JSON layout of the Vercel KV deployment)
  - anything else      SqlStore    (SQLAlchemy URL, SQLite by default)
"""
from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional

import redis
from redis.exceptions import LockError, RedisError
from sqlalchemy import delete as sa_delete, select
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import build_engine, init_db, make_session_factory
from .errors import StoreError
from .models import KeyValue, ListItem

logger = logging.getLogger(__name__)


# ====== Serialization ======
def encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def decode(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        value = json.loads(raw)
    except ValueError:
        # Not written by encode(); hand back the text so callers can skip it
        logger.warning("Stored value is not valid JSON: %r", raw[:80])
        return raw
    # Older writers stored some list entries JSON-encoded twice
    if isinstance(value, str) and value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _slice(items: List[Any], start: int, end: int) -> List[Any]:
    """LRANGE semantics: inclusive end, negative indexes count from the tail."""
    n = len(items)
    if start < 0:
        start = max(n + start, 0)
    if end < 0:
        end = n + end
    if start > end or start >= n:
        return []
    return items[start:end + 1]


# ====== Process-local locks ======
class _LocalLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, name: str, timeout: float) -> Iterator[None]:
        with self._guard:
            lk = self._locks.setdefault(name, threading.Lock())
        if not lk.acquire(timeout=timeout):
            logger.warning("Lock %s not acquired within %.1fs", name, timeout)
            raise StoreError()
        try:
            yield
        finally:
            lk.release()


class KeyValueStore:
    """Interface every backend implements."""

    # Backends that can remove one list entry in place set this to True
    supports_remove = False

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def list_append(self, key: str, item: Any) -> None:
        raise NotImplementedError

    def list_range(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def list_remove(self, key: str, item: Any) -> int:
        """Removes every entry equal to `item`; returns how many were removed."""
        raise NotImplementedError(f"{type(self).__name__} has no indexed list removal")

    def ping(self) -> bool:
        raise NotImplementedError

    def lock(self, name: str):
        """Context manager serialising writers on `name`."""
        raise NotImplementedError


# ====== Memory ======
class MemoryStore(KeyValueStore):
    """
    In-process store. Values are kept encoded so nothing handed to a caller
    aliases stored state. Deliberately has no list_remove: it models the plain
    KV interface and exercises the delete-and-rewrite path.
    """

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._lists: Dict[str, List[str]] = {}
        self._mutex = threading.RLock()
        self._locks = _LocalLocks()

    def get(self, key: str) -> Any:
        with self._mutex:
            return decode(self._values.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._mutex:
            self._values[key] = encode(value)

    def list_append(self, key: str, item: Any) -> None:
        with self._mutex:
            self._lists.setdefault(key, []).append(encode(item))

    def list_range(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        with self._mutex:
            raw = list(self._lists.get(key, []))
        return [decode(r) for r in _slice(raw, start, end)]

    def delete(self, key: str) -> None:
        with self._mutex:
            self._values.pop(key, None)
            self._lists.pop(key, None)

    def ping(self) -> bool:
        return True

    def lock(self, name: str):
        return self._locks.hold(name, settings.LOCK_TIMEOUT_SECONDS)


# ====== Redis ======
class RedisStore(KeyValueStore):
    supports_remove = True

    def __init__(self, url: str, client: Optional[redis.Redis] = None):
        self.url = url
        self.client = client or redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=settings.STORE_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
        )

    @contextmanager
    def _guard(self, op: str, key: str) -> Iterator[None]:
        try:
            yield
        except RedisError as e:
            logger.error("Redis %s failed for key=%s: %s", op, key, e)
            raise StoreError() from e

    def get(self, key: str) -> Any:
        with self._guard("get", key):
            return decode(self.client.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._guard("set", key):
            self.client.set(key, encode(value))

    def list_append(self, key: str, item: Any) -> None:
        with self._guard("rpush", key):
            self.client.rpush(key, encode(item))

    def list_range(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        with self._guard("lrange", key):
            raw = self.client.lrange(key, start, end) or []
        return [decode(r) for r in raw]

    def delete(self, key: str) -> None:
        with self._guard("del", key):
            self.client.delete(key)

    def list_remove(self, key: str, item: Any) -> int:
        # Match on the decoded value; the raw text may come from another writer
        with self._guard("lrem", key):
            removed = 0
            for raw in self.client.lrange(key, 0, -1) or []:
                if decode(raw) == item:
                    removed += self.client.lrem(key, 1, raw)
            return removed

    def ping(self) -> bool:
        with self._guard("ping", "-"):
            return bool(self.client.ping())

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        lk = self.client.lock(
            f"lock:{name}",
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_TIMEOUT_SECONDS,
        )
        with self._guard("lock", name):
            acquired = lk.acquire()
        if not acquired:
            logger.warning("Redis lock %s not acquired within %.1fs", name, settings.LOCK_TIMEOUT_SECONDS)
            raise StoreError()
        try:
            yield
        finally:
            try:
                lk.release()
            except LockError as e:
                # Expired while held; the write already happened
                logger.warning("Redis lock %s release failed: %s", name, e)


# ====== SQL ======
class SqlStore(KeyValueStore):
    supports_remove = True

    def __init__(self, url: str):
        self.url = url
        self.engine = build_engine(url)
        self.SessionLocal = make_session_factory(self.engine)
        self._locks = _LocalLocks()
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            logger.error("SQL store init failed for %s: %s", self.engine.url.render_as_string(hide_password=True), e)
            raise StoreError() from e

    @contextmanager
    def _session(self, op: str, key: str):
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("SQL store %s failed for key=%s: %s", op, key, e)
            raise StoreError() from e
        finally:
            db.close()

    def get(self, key: str) -> Any:
        with self._session("get", key) as db:
            row = db.execute(select(KeyValue).where(KeyValue.key == key)).scalar_one_or_none()
            return decode(row.value) if row else None

    def set(self, key: str, value: Any) -> None:
        with self._session("set", key) as db:
            row = db.execute(select(KeyValue).where(KeyValue.key == key)).scalar_one_or_none()
            if row is None:
                db.add(KeyValue(key=key, value=encode(value)))
            else:
                row.value = encode(value)

    def list_append(self, key: str, item: Any) -> None:
        with self._session("append", key) as db:
            db.add(ListItem(key=key, value=encode(item)))

    def list_range(self, key: str, start: int = 0, end: int = -1) -> List[Any]:
        with self._session("range", key) as db:
            raw = db.execute(
                select(ListItem.value).where(ListItem.key == key).order_by(ListItem.id.asc())
            ).scalars().all()
        return [decode(r) for r in _slice(list(raw), start, end)]

    def delete(self, key: str) -> None:
        with self._session("delete", key) as db:
            db.execute(sa_delete(KeyValue).where(KeyValue.key == key))
            db.execute(sa_delete(ListItem).where(ListItem.key == key))

    def list_remove(self, key: str, item: Any) -> int:
        with self._session("remove", key) as db:
            rows = db.execute(select(ListItem).where(ListItem.key == key)).scalars().all()
            matches = [r for r in rows if decode(r.value) == item]
            for r in matches:
                db.delete(r)
            return len(matches)

    def ping(self) -> bool:
        with self._session("ping", "-") as db:
            db.execute(select(1))
        return True

    def lock(self, name: str):
        # Single-process deployments only; use the Redis backend across workers
        return self._locks.hold(name, settings.LOCK_TIMEOUT_SECONDS)


def create_store(url: str) -> KeyValueStore:
    if url.startswith("memory://"):
        store: KeyValueStore = MemoryStore()
    elif url.startswith(("redis://", "rediss://", "unix://")):
        store = RedisStore(url)
    else:
        store = SqlStore(url)
    logger.info("Store initialised: backend=%s", type(store).__name__)
    return store


@lru_cache
def get_store() -> KeyValueStore:
    """Process-wide store built from settings.STORE_URL."""
    return create_store(settings.STORE_URL)
