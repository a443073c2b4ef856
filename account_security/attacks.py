"""
Global brute-force detection.

Login outcomes are counted in a ring of fixed-width time buckets. A bucket
is identified by ``epoch // bucket_seconds`` and lives in slot
``bucket % num_buckets``; when a slot is reached again after a full turn of
the ring, its stale counts are overwritten. Memory is therefore constant in
the number of buckets, however much traffic arrives.

The monitor never blocks a request. It only tells the login flow whether
the failure ratio over the window is high enough to start asking for a
captcha.
"""

from typing import List, NamedTuple
from datetime import datetime
from threading import Lock
import logging

from . import util

logger = logging.getLogger(__name__)


class WindowTotals(NamedTuple):
    """Counts of login outcomes over the retained window."""

    successes: int
    failures: int

    @property
    def attempts(self) -> int:
        """Total number of outcomes."""
        return self.successes + self.failures


class _Bucket(object):
    def __init__(self) -> None:
        self.lock = Lock()
        self.stamp = -1
        self.successes = 0
        self.failures = 0


class AttackMonitor(object):
    """Sliding-window counter of login successes and failures."""

    def __init__(self, bucket_seconds: int = 60, num_buckets: int = 60,
                 min_sample_size: int = 1000,
                 threshold: float = 0.99) -> None:
        if bucket_seconds < 1 or num_buckets < 1:
            raise ValueError('Window must have at least one bucket')
        self.bucket_seconds = bucket_seconds
        self.num_buckets = num_buckets
        self.min_sample_size = min_sample_size
        self.threshold = threshold
        self._buckets: List[_Bucket] = [_Bucket() for _ in range(num_buckets)]

    def _stamp(self, now: datetime) -> int:
        return util.epoch(now) // self.bucket_seconds

    def record_outcome(self, success: bool, now: datetime) -> None:
        """Count a login success or failure in the current bucket."""
        stamp = self._stamp(now)
        bucket = self._buckets[stamp % self.num_buckets]
        with bucket.lock:
            if bucket.stamp != stamp:
                if bucket.stamp > stamp:    # Late arrival for a past turn.
                    return
                bucket.stamp = stamp
                bucket.successes = 0
                bucket.failures = 0
            if success:
                bucket.successes += 1
            else:
                bucket.failures += 1

    def totals(self, now: datetime) -> WindowTotals:
        """Sum the buckets that fall inside the window ending at ``now``."""
        stamp = self._stamp(now)
        oldest = stamp - self.num_buckets
        successes = failures = 0
        for bucket in self._buckets:
            with bucket.lock:
                if oldest < bucket.stamp <= stamp:
                    successes += bucket.successes
                    failures += bucket.failures
        return WindowTotals(successes, failures)

    def is_under_attack(self, now: datetime) -> bool:
        """Whether the recent failure ratio looks like a brute-force run."""
        totals = self.totals(now)
        if totals.attempts < self.min_sample_size:
            return False
        under_attack = totals.failures / totals.attempts >= self.threshold
        if under_attack:
            logger.warning('Login failure ratio %i/%i over the last %i'
                           ' seconds; captcha required', totals.failures,
                           totals.attempts,
                           self.bucket_seconds * self.num_buckets)
        return under_attack
