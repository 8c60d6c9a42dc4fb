"""
Replay guard: set of transaction hashes already consumed by a successful verification.
In-process backend for single-instance deployments, Redis backend for shared state.
"""
import threading
import time
from typing import Protocol

import redis


class ReplayStore(Protocol):
    def exists(self, tx_hash: str) -> bool: ...

    def insert(self, tx_hash: str) -> None: ...

    def insert_if_absent(self, tx_hash: str) -> bool: ...

    def ping(self) -> bool: ...


def normalize_tx_hash(tx_hash: str) -> str:
    return tx_hash.strip().lower()


class InMemoryReplayStore:
    """Process-local replay set. Grows for the process lifetime, lost on restart."""

    def __init__(self) -> None:
        self._used: dict[str, float] = {}
        self._lock = threading.Lock()

    def exists(self, tx_hash: str) -> bool:
        return normalize_tx_hash(tx_hash) in self._used

    def insert(self, tx_hash: str) -> None:
        with self._lock:
            self._used.setdefault(normalize_tx_hash(tx_hash), time.time())

    def insert_if_absent(self, tx_hash: str) -> bool:
        key = normalize_tx_hash(tx_hash)
        with self._lock:
            if key in self._used:
                return False
            self._used[key] = time.time()
            return True

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._used)


class RedisReplayStore:
    """Redis-backed replay set: key per transaction hash, value = insertion timestamp."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 0, prefix: str = "replay:tx") -> None:
        self.client = client
        self.ttl = ttl_seconds or None
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 0) -> "RedisReplayStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    def _key(self, tx_hash: str) -> str:
        return f"{self.prefix}:{normalize_tx_hash(tx_hash)}"

    def exists(self, tx_hash: str) -> bool:
        return bool(self.client.exists(self._key(tx_hash)))

    def insert(self, tx_hash: str) -> None:
        self.client.set(self._key(tx_hash), str(int(time.time())), ex=self.ttl)

    def insert_if_absent(self, tx_hash: str) -> bool:
        """Atomic operation: SET NX (+ EX when a TTL is configured)."""
        created = self.client.set(self._key(tx_hash), str(int(time.time())), nx=True, ex=self.ttl)
        return created is not None

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False
