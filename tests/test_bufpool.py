"""Tests for the render buffer pool."""

import threading

from oasgen.bufpool import BufferPool


class TestBufferPool:
    def test_tier_selection(self):
        pool = BufferPool(tiers=(10, 100))
        assert pool.tier_for(0) == 0
        assert pool.tier_for(10) == 0
        assert pool.tier_for(11) == 1
        assert pool.tier_for(10_000) == 1

    def test_reuse_is_cleared(self):
        pool = BufferPool()
        buf = pool.get()
        buf.write("hello")
        pool.put(buf)
        again = pool.get()
        assert again is buf
        assert again.getvalue() == ""
        assert (pool.hits, pool.misses) == (1, 1)

    def test_large_buffers_dropped(self):
        pool = BufferPool(tiers=(4, 8), max_retained=8)
        buf = pool.get()
        buf.write("x" * 9)
        pool.put(buf)
        assert pool.retained() == 0

    def test_per_tier_cap(self):
        pool = BufferPool(max_per_tier=2)
        buffers = [pool.get() for _ in range(3)]
        for buf in buffers:
            pool.put(buf)
        assert pool.retained() == 2

    def test_borrow_returns_buffer(self):
        pool = BufferPool()
        with pool.borrow(100) as buf:
            buf.write("abc")
        assert pool.retained() == 1

    def test_concurrent_borrow(self):
        pool = BufferPool(max_per_tier=4)
        errors = []

        def worker(n):
            for _ in range(50):
                with pool.borrow() as buf:
                    buf.write(str(n))
                    if buf.getvalue() != str(n):
                        errors.append(buf.getvalue())

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert pool.retained() <= 4
