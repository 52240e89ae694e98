"""
Request Statistics Module

This module provides the in-memory request counters behind the statistics
middleware. The state is an explicit object so several independent
instances can coexist (one per app, one per test).

Tracked Counters:
    - request_count: Total requests since the last reset
    - start_time_ms: Timestamp of the last reset (or creation)
    - ips: Request count per client IP, in first-seen order
    - urls: Request count per URL (path and query), in first-seen order

Each list holds at most max_entries keys. When a new key arrives at a full
list, the key with the lowest count is evicted (oldest first among ties).

Usage:
    statistics = RequestStatistics()
    statistics.record(ip="203.0.113.7", url="/index.html")

    for entry in statistics.top_urls():
        print(entry.key, entry.request_count)
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class StatEntry:
    """
    Request count for a single IP or URL.

    Attributes:
        key: The client IP or URL
        request_count: Number of requests recorded for the key
    """
    key: str
    request_count: int


def round_half_up(value: float) -> int:
    """Round a non-negative number to the nearest integer, halves up."""
    return int(math.floor(value + 0.5))


def requests_per_second(request_count: int, elapsed_seconds: int) -> int:
    """Average rate over the elapsed time, 0 when no time has elapsed."""
    if elapsed_seconds <= 0:
        return 0
    return round_half_up(request_count / elapsed_seconds)


class RequestStatistics:
    """
    Per-IP and per-URL request counters.

    Attributes:
        request_count: Total requests since the last reset
        start_time_ms: Reset timestamp in milliseconds
        max_entries: Maximum number of keys per list (None = unbounded)
    """

    def __init__(
        self,
        max_entries: Optional[int] = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize empty counters.

        Args:
            max_entries: Cap on distinct IPs and distinct URLs
            clock: Returns the current time in seconds

        Raises:
            ValueError: If max_entries is less than 1
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")

        self.max_entries = max_entries
        self._clock = clock
        self.request_count = 0
        self.start_time_ms = self._now_ms()
        self._ips: Dict[str, int] = {}
        self._urls: Dict[str, int] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def reset(self) -> None:
        """Zero all counters and restart the clock."""
        self.request_count = 0
        self.start_time_ms = self._now_ms()
        self._ips.clear()
        self._urls.clear()

    def record(self, ip: Optional[str], url: str) -> None:
        """
        Count one request.

        Args:
            ip: Client address, not counted per-IP when None or empty
            url: Requested path and query string
        """
        self.request_count += 1

        if ip:
            self._increment(self._ips, ip)

        self._increment(self._urls, url)

    def _increment(self, counts: Dict[str, int], key: str) -> None:
        if key not in counts and self.max_entries is not None:
            while counts and len(counts) >= self.max_entries:
                # min() keeps the first of equal counts, i.e. the oldest key
                evicted = min(counts, key=counts.__getitem__)
                del counts[evicted]

        counts[key] = counts.get(key, 0) + 1

    def elapsed_seconds(self) -> int:
        """Whole seconds since the last reset, rounded up."""
        elapsed_ms = max(0, self._now_ms() - self.start_time_ms)
        return math.ceil(elapsed_ms / 1000)

    def ip_count(self, ip: str) -> int:
        """Requests recorded for one client IP (0 if unseen or evicted)."""
        return self._ips.get(ip, 0)

    def url_count(self, url: str) -> int:
        """Requests recorded for one URL (0 if unseen or evicted)."""
        return self._urls.get(url, 0)

    def top_ips(self) -> List[StatEntry]:
        """IP entries sorted by descending count, stable for ties."""
        return self._sorted(self._ips)

    def top_urls(self) -> List[StatEntry]:
        """URL entries sorted by descending count, stable for ties."""
        return self._sorted(self._urls)

    @staticmethod
    def _sorted(counts: Dict[str, int]) -> List[StatEntry]:
        entries = [StatEntry(key, count) for key, count in counts.items()]
        return sorted(entries, key=lambda entry: entry.request_count, reverse=True)
