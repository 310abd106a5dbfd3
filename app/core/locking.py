import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger("otp.lock")


class LockTimeout(Exception):
    """Raised when a key lock cannot be acquired within the wait timeout."""


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyLockRegistry:
    """Process-local re-entrant mutex per key.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the registry does not grow with every phone number seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.users += 1
        try:
            acquired = entry.lock.acquire(timeout=-1 if timeout is None else max(timeout, 0))
            if not acquired:
                logger.warning("lock_contention_local", extra={"lock": key})
                raise LockTimeout(f"Timed out waiting for lock {key}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    self._locks.pop(key, None)


class DistributedLock:
    """
    Lightweight distributed mutex backed by Redis (NX + EX).
    Used on top of the process-local lock when several workers share a store.
    """

    def __init__(
        self,
        name: str,
        *,
        redis_client: Redis,
        ttl_seconds: int = 20,
        wait_timeout: float = 5,
        retry_interval: float = 0.05,
        log: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.wait_timeout = wait_timeout
        self.retry_interval = retry_interval
        self._owner_token: str | None = None
        self._logger = log or logger

    def acquire(self) -> bool:
        deadline = time.monotonic() + self.wait_timeout
        token = uuid.uuid4().hex
        contention_logged = False

        while True:
            if self.redis_client.set(self.name, token, nx=True, ex=self.ttl_seconds):
                self._owner_token = token
                self._logger.debug("lock_acquired", extra={"lock": self.name})
                return True
            if time.monotonic() >= deadline:
                break
            if not contention_logged:
                self._logger.warning("lock_contention", extra={"lock": self.name})
                contention_logged = True
            time.sleep(self.retry_interval)
        self._logger.warning("lock_acquire_timeout", extra={"lock": self.name})
        return False

    def release(self) -> None:
        if self._owner_token is None:
            return
        release_script = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        try:
            self.redis_client.eval(release_script, 1, self.name, self._owner_token)
            self._logger.debug("lock_released", extra={"lock": self.name})
        except RedisError:
            # The key expires on its own after ttl_seconds.
            self._logger.exception("lock_release_failed", extra={"lock": self.name})
        finally:
            self._owner_token = None


class KeyedLock:
    """Per-key mutual exclusion: local re-entrant lock, plus Redis when configured."""

    def __init__(
        self,
        *,
        namespace: str = "otp",
        redis_client: Optional[Redis] = None,
        wait_timeout: float = 5.0,
        ttl_seconds: int = 20,
    ) -> None:
        self.namespace = namespace
        self.redis_client = redis_client
        self.wait_timeout = wait_timeout
        self.ttl_seconds = ttl_seconds
        self._local = KeyLockRegistry()

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        wait = self.wait_timeout if timeout is None else min(timeout, self.wait_timeout)
        started = time.monotonic()
        with self._local.hold(key, timeout=wait):
            if self.redis_client is None:
                yield
                return
            remaining = max(wait - (time.monotonic() - started), 0)
            lock = DistributedLock(
                f"{self.namespace}:lock:{key}",
                redis_client=self.redis_client,
                ttl_seconds=self.ttl_seconds,
                wait_timeout=remaining,
            )
            try:
                acquired = lock.acquire()
            except RedisError as exc:
                raise LockTimeout(f"Lock backend unavailable for {key}") from exc
            if not acquired:
                raise LockTimeout(f"Timed out waiting for lock {key}")
            try:
                yield
            finally:
                lock.release()

    def hold_local(self, key: str):
        return self._local.hold(key, timeout=self.wait_timeout)
