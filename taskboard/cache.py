# taskboard/cache.py
"""
Two-tier sheet cache in front of RemoteStoreClient.

    memory tier  : dict in this process, short TTL (MEMORY_TTL)
    durable tier : one JSON file {sheet: {"data": [...], "timestamp": t}}, longer TTL (DURABLE_TTL)

Lookup order is memory -> durable (promoted to memory on hit) -> remote.
Failures are never cached. Successful writes invalidate the written sheet.
"""
import json
import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from .config import (
    BATCH_WORKERS, DURABLE_TTL, MEMORY_TTL, REFRESH_INTERVAL, SESSION_IDLE_TIMEOUT, SHEET_USERS,
)
from .scheduler import get_scheduler
from .store import RemoteStoreClient, is_failure

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float

    def fresh(self, now: float, ttl: float) -> bool:
        return now - self.timestamp < ttl


class DurableStore:
    """The durable tier: a single JSON blob on disk. path=None keeps it disabled."""

    def __init__(self, path=None):
        self.path = Path(path) if path else None

    def load(self) -> Dict[str, dict]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            blob = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, e)
            return {}
        if not isinstance(blob, dict):
            return {}
        return {
            k: v for k, v in blob.items()
            if isinstance(v, dict) and "data" in v and "timestamp" in v
        }

    def save(self, entries: Dict[str, dict]) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_name(self.path.name + ".tmp")
            tmp.write_text(json.dumps(entries), encoding="utf-8")
            tmp.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save cache file %s: %s", self.path, e)

    def remove(self) -> None:
        if self.path is None:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove cache file %s: %s", self.path, e)


class CacheLayer:
    def __init__(
        self,
        client: RemoteStoreClient,
        path=None,
        memory_ttl: float = MEMORY_TTL,
        durable_ttl: float = DURABLE_TTL,
        clock: Callable[[], float] = time.time,
        workers: int = BATCH_WORKERS,
    ):
        self.client = client
        self.memory_ttl = memory_ttl
        self.durable_ttl = durable_ttl
        self.workers = workers
        self._clock = clock

        self._lock = threading.RLock()
        self._memory: Dict[str, CacheEntry] = {}
        self._durable = DurableStore(path)
        self._local: Dict[str, dict] = self._durable.load()

        # single-flight reads + guard against stale reads landing after invalidate()
        self._inflight: Dict[str, Future] = {}
        self._generation: Dict[str, int] = {}
        self._epoch = 0

    # --- reads ---

    def get(self, sheet_name: str, allow_cache: bool = True):
        if not allow_cache:
            return self.client.read(sheet_name)

        entry = self._lookup(sheet_name)
        if entry is not None:
            return entry.data
        return self._fetch(sheet_name)

    def get_many(self, sheet_names: Iterable[str]) -> Dict[str, Any]:
        """Read several sheets concurrently and join: {sheet: result}"""
        names = list(dict.fromkeys(sheet_names))
        if not names:
            return {}
        with ThreadPoolExecutor(max_workers=min(self.workers, len(names))) as pool:
            results = list(pool.map(self.get, names))
        return dict(zip(names, results))

    def _lookup(self, sheet_name: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._memory.get(sheet_name)
            if entry is not None and entry.fresh(now, self.memory_ttl):
                logger.debug("cache hit (memory): %s", sheet_name)
                return entry

            raw = self._local.get(sheet_name)
            if raw is not None:
                entry = CacheEntry(raw["data"], float(raw["timestamp"]))
                if entry.fresh(now, self.durable_ttl):
                    logger.debug("cache hit (durable): %s", sheet_name)
                    self._memory[sheet_name] = entry
                    return entry
        logger.debug("cache miss: %s", sheet_name)
        return None

    def _fetch(self, sheet_name: str):
        with self._lock:
            future = self._inflight.get(sheet_name)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[sheet_name] = future
                token = self._token(sheet_name)

        if not owner:
            logger.debug("joining in-flight read: %s", sheet_name)
            return future.result()

        try:
            started = self._clock()
            result = self.client.read(sheet_name)
            if isinstance(result, list) and not is_failure(result):
                self._store(sheet_name, result, started, token)
            future.set_result(result)
            return result
        except BaseException as e:
            future.set_exception(e)
            raise
        finally:
            with self._lock:
                self._inflight.pop(sheet_name, None)

    def _token(self, sheet_name: str):
        return self._epoch, self._generation.get(sheet_name, 0)

    def _store(self, sheet_name: str, data, timestamp: float, token) -> None:
        with self._lock:
            if token != self._token(sheet_name):
                logger.debug("dropping stale read for %s", sheet_name)
                return
            self._memory[sheet_name] = CacheEntry(data, timestamp)
            self._local[sheet_name] = {"data": data, "timestamp": timestamp}
            self._durable.save(self._local)

    # --- writes ---

    def append(self, sheet_name: str, row):
        result = self.client.append(sheet_name, row)
        if not is_failure(result):
            self.invalidate(sheet_name)
        return result

    def update_password(self, username: str, new_password: str, via_query: bool = False):
        if via_query:
            result = self.client.update_password_via_query(username, new_password)
        else:
            result = self.client.update_password(username, new_password)
        if not is_failure(result):
            self.invalidate(SHEET_USERS)
        return result

    # --- invalidation ---

    def invalidate(self, sheet_name: str) -> None:
        with self._lock:
            self._generation[sheet_name] = self._generation.get(sheet_name, 0) + 1
            self._memory.pop(sheet_name, None)
            if self._local.pop(sheet_name, None) is not None:
                self._durable.save(self._local)
        logger.debug("invalidated %s", sheet_name)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._memory.clear()
            self._local = {}
            self._durable.remove()
        logger.info("cache cleared")

    def cached_sheets(self) -> List[str]:
        with self._lock:
            return sorted(set(self._memory) | set(self._local))


class BackgroundRefresher:
    """
    Re-primes the session's critical sheets as a scheduler interval job.
    The job removes itself once the session has not been touched for idle_timeout seconds.
    """

    def __init__(
        self,
        cache: CacheLayer,
        sheets_fn: Callable[[], List[str]],
        interval: float = REFRESH_INTERVAL,
        initial_delay: float = 0.1,
        idle_timeout: Optional[float] = SESSION_IDLE_TIMEOUT,
        scheduler: Optional[BaseScheduler] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.interval = interval
        self.initial_delay = initial_delay
        self.idle_timeout = idle_timeout
        self._sheets_fn = sheets_fn
        self._scheduler = scheduler
        self._clock = clock
        self._lock = threading.Lock()
        self._job: Optional[Job] = None
        self.last_seen = clock()

    @property
    def running(self) -> bool:
        return self._job is not None

    def touch(self) -> None:
        self.last_seen = self._clock()

    def idle(self) -> bool:
        if not self.idle_timeout:
            return False
        return self._clock() - self.last_seen >= self.idle_timeout

    def start(self) -> None:
        with self._lock:
            if self._job is not None:
                return
            scheduler = self._scheduler if self._scheduler is not None else get_scheduler()
            self.touch()
            self._job = scheduler.add_job(
                self.tick,
                trigger="interval",
                seconds=self.interval,
                next_run_time=datetime.now(timezone.utc) + timedelta(seconds=self.initial_delay),
                id=f"taskboard-refresh-{uuid.uuid4().hex}",
                max_instances=1,
                coalesce=True,
            )
            logger.debug("refresh job %s scheduled every %ss", self._job.id, self.interval)

    def stop(self) -> None:
        with self._lock:
            job, self._job = self._job, None
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError:
            logger.debug("refresh job %s already gone", job.id)

    def refresh_once(self) -> Dict[str, Any]:
        sheets = self._sheets_fn()
        if not sheets:
            return {}
        logger.debug("refreshing %d sheets", len(sheets))
        return self.cache.get_many(sheets)

    def tick(self) -> Dict[str, Any]:
        """One scheduled run: refresh, or retire the job when the session went idle"""
        if self.idle():
            logger.info("session idle for %ss, stopping background refresh", self.idle_timeout)
            self.stop()
            return {}
        try:
            return self.refresh_once()
        except Exception:
            logger.exception("background refresh failed")
            return {}
