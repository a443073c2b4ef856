"""
Per-account lockout with exponential backoff.

Each failed login for a subject (an account ID, or the e-mail address that
was tried if no account matched) is recorded in an :class:`AttemptRecord`.
After ``n`` recorded failures the subject must wait :func:`backoff` seconds
before the next attempt is considered. Records are forgotten ``ttl``
seconds after the last failure; expiry is computed on read, and expired
records are swept out of a shard when it grows past a size limit.

The table is split into shards, each guarded by its own lock, so that
attempts against unrelated accounts do not contend with each other while
read-modify-write sequences on a single key remain atomic.
"""

from typing import Dict, List, NamedTuple, Optional
from datetime import datetime
from threading import Lock
import hashlib
import logging

from . import util

logger = logging.getLogger(__name__)

DEFAULT_TTL = 1800


class AttemptRecord(NamedTuple):
    """Failed attempts for a single subject."""

    last_attempt_at: int
    """UNIX time of the most recent failure."""

    count: int = 0
    """Number of failures after the first one."""

    @property
    def failures(self) -> int:
        """Total number of recorded failures."""
        return self.count + 1


def backoff(n: int, ttl: int = DEFAULT_TTL) -> int:
    """Seconds to wait after a subject's ``n``-th recorded failure."""
    if n >= ttl.bit_length():   # Avoid building huge powers of two.
        return ttl
    return min(2 ** n, ttl)


class _Shard(object):
    def __init__(self) -> None:
        self.lock = Lock()
        self.records: Dict[str, AttemptRecord] = {}


class AttemptTracker(object):
    """Tracks failed attempts per subject key."""

    def __init__(self, ttl: int = DEFAULT_TTL, shards: int = 64,
                 max_records_per_shard: int = 10000) -> None:
        if shards < 1:
            raise ValueError('At least one shard is required')
        self.ttl = ttl
        self.max_records_per_shard = max_records_per_shard
        self._shards: List[_Shard] = [_Shard() for _ in range(shards)]

    def _shard(self, key: str) -> _Shard:
        digest = hashlib.blake2b(key.encode('utf-8'), digest_size=8).digest()
        return self._shards[int.from_bytes(digest, 'big') % len(self._shards)]

    def _live(self, shard: _Shard, key: str, now: int) \
            -> Optional[AttemptRecord]:
        """Get the record for ``key``, evicting it if it has expired."""
        record = shard.records.get(key)
        if record is None:
            return None
        if now - record.last_attempt_at >= self.ttl:
            del shard.records[key]
            return None
        return record

    def backoff(self, n: int) -> int:
        """Seconds to wait after the ``n``-th recorded failure."""
        return backoff(n, self.ttl)

    def is_locked(self, key: str, now: datetime) -> bool:
        """Whether ``key`` is still inside its backoff period."""
        return self.retry_after(key, now) > 0

    def retry_after(self, key: str, now: datetime) -> int:
        """Seconds until ``key`` may try again; 0 if it is not locked."""
        t = util.epoch(now)
        shard = self._shard(key)
        with shard.lock:
            record = self._live(shard, key, t)
        if record is None:
            return 0
        wait = self.backoff(record.failures) - (t - record.last_attempt_at)
        return max(wait, 0)

    def record_failure(self, key: str, now: datetime) -> AttemptRecord:
        """Record a failed attempt for ``key``."""
        t = util.epoch(now)
        shard = self._shard(key)
        with shard.lock:
            record = self._live(shard, key, t)
            if record is None:
                record = AttemptRecord(last_attempt_at=t, count=0)
            else:
                record = AttemptRecord(last_attempt_at=t,
                                       count=record.count + 1)
            shard.records[key] = record
            if len(shard.records) > self.max_records_per_shard:
                self._compact(shard, t)
        logger.debug('Failure %i recorded; next attempt in %i seconds',
                     record.failures, self.backoff(record.failures))
        return record

    def reset(self, key: str) -> None:
        """Forget all failed attempts for ``key``."""
        shard = self._shard(key)
        with shard.lock:
            shard.records.pop(key, None)

    def get(self, key: str, now: datetime) -> Optional[AttemptRecord]:
        """Get the live record for ``key``, if any."""
        shard = self._shard(key)
        with shard.lock:
            return self._live(shard, key, util.epoch(now))

    def compact(self, now: datetime) -> int:
        """Drop every expired record. Returns the number dropped."""
        t = util.epoch(now)
        dropped = 0
        for shard in self._shards:
            with shard.lock:
                dropped += self._compact(shard, t)
        if dropped:
            logger.debug('Compacted %i expired attempt records', dropped)
        return dropped

    def _compact(self, shard: _Shard, now: int) -> int:
        expired = [key for key, record in shard.records.items()
                   if now - record.last_attempt_at >= self.ttl]
        for key in expired:
            del shard.records[key]
        return len(expired)

    def __len__(self) -> int:
        count = 0
        for shard in self._shards:
            with shard.lock:
                count += len(shard.records)
        return count
