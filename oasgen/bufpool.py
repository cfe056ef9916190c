"""Tiered, thread-safe pool of text buffers used while rendering files.

Buffers are picked by anticipated size. A returned buffer is cleared and
kept only if its content stayed within the retention limit, so one huge
file does not pin memory for the rest of the process.
"""

from __future__ import annotations

import io
import threading
from contextlib import contextmanager
from typing import Iterator

# Anticipated sizes of the small / medium / large tiers
TIERS: tuple[int, ...] = (4096, 65536, 1 << 20)
MAX_RETAINED = 1 << 20
MAX_PER_TIER = 8


class BufferPool:
    def __init__(
        self,
        tiers: tuple[int, ...] = TIERS,
        max_retained: int = MAX_RETAINED,
        max_per_tier: int = MAX_PER_TIER,
    ) -> None:
        self.tiers = tiers
        self.max_retained = max_retained
        self.max_per_tier = max_per_tier
        self._free: list[list[io.StringIO]] = [[] for _ in tiers]
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def tier_for(self, size_hint: int) -> int:
        for index, capacity in enumerate(self.tiers):
            if size_hint <= capacity:
                return index
        return len(self.tiers) - 1

    def get(self, size_hint: int = 0) -> io.StringIO:
        tier = self.tier_for(size_hint)
        with self._lock:
            free = self._free[tier]
            if free:
                self.hits += 1
                buf = free.pop()
            else:
                self.misses += 1
                buf = None
        if buf is None:
            return io.StringIO()
        _clear(buf)
        return buf

    def put(self, buf: io.StringIO) -> None:
        size = buf.tell()
        _clear(buf)
        if size > self.max_retained:
            return
        tier = self.tier_for(size)
        with self._lock:
            free = self._free[tier]
            if len(free) < self.max_per_tier:
                free.append(buf)

    @contextmanager
    def borrow(self, size_hint: int = 0) -> Iterator[io.StringIO]:
        buf = self.get(size_hint)
        try:
            yield buf
        finally:
            self.put(buf)

    def retained(self) -> int:
        with self._lock:
            return sum(len(free) for free in self._free)


def _clear(buf: io.StringIO) -> None:
    buf.seek(0)
    buf.truncate(0)


default_pool = BufferPool()
